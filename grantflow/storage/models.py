from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional, Union

Identifier = Union[str, int]

PASSWORD_GRANT_TYPE = "password"
REFRESH_GRANT_TYPE = "refresh_token"
TOKEN_TYPE = "Bearer"


@dataclass
class AccessToken:
    token: str
    scope: str
    user_id: Identifier
    expires: datetime


@dataclass
class RefreshToken:
    token: str
    access_token: str
    user_id: Identifier
    expires: datetime


@dataclass
class User:
    user_id: Identifier
    scope: str


@dataclass
class TokenRequest:
    """A token request whose grant type the orchestrator may not support."""

    grant_type: str
    scope: Optional[str] = None
    params: Dict[str, str] = field(default_factory=dict)


@dataclass
class PasswordTokenRequest:
    username: str
    password: str
    scope: Optional[str] = None
    grant_type: str = field(default=PASSWORD_GRANT_TYPE, init=False)

    def __repr__(self) -> str:
        return (
            f"PasswordTokenRequest(username={self.username!r}, password='***', "
            f"scope={self.scope!r})"
        )


@dataclass
class RefreshTokenRequest:
    refresh_token: str
    # RFC 6749 §6 allows it, but a refresh never changes scope
    scope: Optional[str] = None
    grant_type: str = field(default=REFRESH_GRANT_TYPE, init=False)


AnyTokenRequest = Union[PasswordTokenRequest, RefreshTokenRequest, TokenRequest]


@dataclass
class TokenResponse:
    access_token: str
    expires_in: int
    scope: str
    refresh_token: Optional[str] = None
    token_type: str = TOKEN_TYPE

    def to_dict(self) -> Dict[str, object]:
        payload: Dict[str, object] = {
            "access_token": self.access_token,
            "token_type": self.token_type,
            "expires_in": self.expires_in,
            "scope": self.scope,
        }
        if self.refresh_token is not None:
            payload["refresh_token"] = self.refresh_token
        return payload


__all__ = [
    "Identifier",
    "AccessToken",
    "RefreshToken",
    "User",
    "TokenRequest",
    "PasswordTokenRequest",
    "RefreshTokenRequest",
    "AnyTokenRequest",
    "TokenResponse",
    "PASSWORD_GRANT_TYPE",
    "REFRESH_GRANT_TYPE",
    "TOKEN_TYPE",
]
