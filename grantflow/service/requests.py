from __future__ import annotations

from typing import Mapping, Optional

from grantflow.service.errors import InvalidRequestError
from grantflow.storage.models import (
    PASSWORD_GRANT_TYPE,
    REFRESH_GRANT_TYPE,
    AnyTokenRequest,
    PasswordTokenRequest,
    RefreshTokenRequest,
    TokenRequest,
)


def _optional(params: Mapping[str, str], name: str) -> Optional[str]:
    value = params.get(name)
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _required(params: Mapping[str, str], name: str) -> str:
    value = params.get(name)
    if value is None or str(value) == "":
        raise InvalidRequestError(
            f"{name}: Missing required parameter", "parse_token_request"
        )
    return str(value)


def parse_token_request(params: Mapping[str, str]) -> AnyTokenRequest:
    """Build a typed token request from form-style parameters.

    Unknown grant types are returned as a plain :class:`TokenRequest` so the
    orchestrator can reject them with ``unsupported_grant_type``.
    """
    grant_type = _required(params, "grant_type")
    scope = _optional(params, "scope")
    if grant_type == PASSWORD_GRANT_TYPE:
        return PasswordTokenRequest(
            username=_required(params, "username"),
            password=_required(params, "password"),
            scope=scope,
        )
    if grant_type == REFRESH_GRANT_TYPE:
        return RefreshTokenRequest(
            refresh_token=_required(params, "refresh_token"),
            scope=scope,
        )
    extra = {
        key: str(value)
        for key, value in params.items()
        if key not in {"grant_type", "scope"} and value is not None
    }
    return TokenRequest(grant_type=grant_type, scope=scope, params=extra)


__all__ = ["parse_token_request"]
