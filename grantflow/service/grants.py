"""Password and refresh-token grant flows.

Each flow is a fixed sequence of handler calls separated by validation gates.
A gate either advances or ends the flow with an :class:`OAuthError`; nothing
is retried. Handler failures are wrapped with the name of the step that
failed, while errors that are already part of the taxonomy pass through.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Awaitable, Optional, Type, TypeVar

from grantflow.logging import get_logger
from grantflow.service.errors import (
    InvalidGrantError,
    InvalidScopeError,
    InvalidTokenError,
    OAuthError,
)
from grantflow.service.handlers import OrchestratorHandlers
from grantflow.service.options import OrchestratorOptions
from grantflow.service.scope import included
from grantflow.storage.models import (
    AccessToken,
    Identifier,
    PasswordTokenRequest,
    RefreshToken,
    RefreshTokenRequest,
    TokenResponse,
)

logger = get_logger(__name__)

T = TypeVar("T")


async def guarded(step: str, error_cls: Type[OAuthError], call: Awaitable[T]) -> T:
    """Await a handler call, re-raising foreign failures as ``error_cls``."""
    try:
        return await call
    except OAuthError:
        raise
    except Exception as exc:
        raise error_cls(exc, step) from exc


def expires_after(now: datetime, seconds: int) -> datetime:
    return now + timedelta(seconds=seconds)


def is_expired(expires: datetime, now: datetime) -> bool:
    """True once ``now`` is strictly past ``expires``; naive values are read as UTC."""
    if expires.tzinfo is None:
        expires = expires.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now > expires


async def _issue_refresh_token(
    handlers: OrchestratorHandlers,
    options: OrchestratorOptions,
    access_token: AccessToken,
    user_id: Identifier,
    now: datetime,
    step: str,
) -> Optional[RefreshToken]:
    if not options.issue_refresh_token:
        return None
    return await guarded(
        step,
        InvalidTokenError,
        handlers.create_refresh_token(
            access_token.token,
            expires_after(now, options.refresh_token_lifetime),
            user_id,
        ),
    )


def _compose(
    options: OrchestratorOptions,
    access_token: AccessToken,
    refresh_token: Optional[RefreshToken],
    scope: str,
) -> TokenResponse:
    return TokenResponse(
        access_token=access_token.token,
        expires_in=options.access_token_lifetime,
        scope=scope,
        refresh_token=refresh_token.token if refresh_token else None,
    )


async def password_grant(
    handlers: OrchestratorHandlers,
    options: OrchestratorOptions,
    request: PasswordTokenRequest,
    now: datetime,
) -> TokenResponse:
    """Exchange a username and password for a new token pair."""
    user = await guarded(
        "Orchestrator.password.authenticate_user",
        InvalidGrantError,
        handlers.authenticate_user(request.username, request.password),
    )

    if request.scope:
        if not included(request.scope, user.scope, options.superuser_scope):
            raise InvalidScopeError(
                f"scope: Scope '{request.scope}' not allowed",
                "Orchestrator.password.check_scope",
            )
        # may be narrower than what the user is entitled to
        granted_scope = request.scope
    else:
        granted_scope = user.scope

    access_token = await guarded(
        "Orchestrator.password.create_access_token",
        InvalidTokenError,
        handlers.create_access_token(
            expires_after(now, options.access_token_lifetime),
            granted_scope,
            user.user_id,
        ),
    )
    refresh_token = await _issue_refresh_token(
        handlers,
        options,
        access_token,
        user.user_id,
        now,
        "Orchestrator.password.create_refresh_token",
    )

    logger.info(
        "token_granted",
        grant_type=request.grant_type,
        user_id=str(user.user_id),
        scope=granted_scope,
        refresh_issued=refresh_token is not None,
    )
    return _compose(options, access_token, refresh_token, granted_scope)


async def _rollback(handlers: OrchestratorHandlers, new_access: AccessToken) -> None:
    try:
        await handlers.revoke_access_token(new_access.token)
    except Exception as exc:
        logger.error(
            "refresh_rollback_failed",
            user_id=str(new_access.user_id),
            error=str(exc),
            error_type=type(exc).__name__,
        )
    else:
        logger.warning("refresh_rolled_back", user_id=str(new_access.user_id))


async def refresh_grant(
    handlers: OrchestratorHandlers,
    options: OrchestratorOptions,
    request: RefreshTokenRequest,
    now: datetime,
) -> TokenResponse:
    """Exchange a refresh token for a new token pair and revoke the old pair.

    Scope and user carry over unchanged from the old access token, whose own
    expiry is irrelevant. The old pair is revoked last, so an earlier failure
    never destroys a still-valid credential. If that final revocation fails,
    the freshly minted pair is revoked again before the error is raised.
    """
    old_refresh = await guarded(
        "Orchestrator.refresh.retrieve_refresh_token",
        InvalidTokenError,
        handlers.retrieve_refresh_token(request.refresh_token),
    )
    if is_expired(old_refresh.expires, now):
        raise InvalidTokenError(
            "token: Expired refresh token", "Orchestrator.refresh.check_expiration"
        )

    old_access = await guarded(
        "Orchestrator.refresh.retrieve_access_token",
        InvalidTokenError,
        handlers.retrieve_access_token(old_refresh.access_token),
    )

    new_access = await guarded(
        "Orchestrator.refresh.create_access_token",
        InvalidTokenError,
        handlers.create_access_token(
            expires_after(now, options.access_token_lifetime),
            old_access.scope,
            old_access.user_id,
        ),
    )
    new_refresh = await _issue_refresh_token(
        handlers,
        options,
        new_access,
        old_access.user_id,
        now,
        "Orchestrator.refresh.create_refresh_token",
    )

    try:
        await handlers.revoke_access_token(old_access.token)
    except Exception as exc:
        await _rollback(handlers, new_access)
        if isinstance(exc, OAuthError):
            raise
        raise InvalidTokenError(exc, "Orchestrator.refresh.revoke_access_token") from exc

    logger.info(
        "token_refreshed",
        user_id=str(old_access.user_id),
        scope=new_access.scope,
        refresh_issued=new_refresh is not None,
    )
    return _compose(options, new_access, new_refresh, new_access.scope)


__all__ = [
    "guarded",
    "expires_after",
    "is_expired",
    "password_grant",
    "refresh_grant",
]
