from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from grantflow.storage.models import TOKEN_TYPE, TokenResponse


class ErrorBody(BaseModel):
    """OAuth2 error payload; the only error detail that leaves the service."""

    error: str
    error_description: str
    status: int = Field(ge=400, le=599)


class TokenResponseBody(BaseModel):
    """Successful token endpoint payload (RFC 6749 §5.1)."""

    model_config = ConfigDict(extra="forbid")

    access_token: str
    token_type: Literal["Bearer"] = TOKEN_TYPE
    expires_in: int = Field(ge=0)
    scope: str
    refresh_token: Optional[str] = None

    @classmethod
    def from_response(cls, response: TokenResponse) -> "TokenResponseBody":
        return cls(**response.to_dict())

    def to_payload(self) -> dict:
        # refresh_token is absent, not null, when none was issued
        return self.model_dump(exclude_none=True)


class HealthBody(BaseModel):
    status: Literal["ok"] = "ok"
