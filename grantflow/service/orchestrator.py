"""Framework-agnostic OAuth2 authorization orchestration.

Supported grants (RFC 6749):

* Resource Owner Password Credentials (section 4.3)
* Refreshing an Access Token (section 6)

plus explicit access-token revocation and a per-request ``authorize`` gate for
resource servers. Translating HTTP requests and responses is left to the
integrating application; see :mod:`grantflow.api` for a FastAPI binding.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional, TypeVar

from grantflow.logging import get_logger
from grantflow.service.errors import (
    InvalidRequestError,
    InvalidScopeError,
    InvalidTokenError,
    OAuthError,
    ServerError,
    UnsupportedGrantTypeError,
)
from grantflow.service.grants import guarded, is_expired, password_grant, refresh_grant
from grantflow.service.handlers import OrchestratorHandlers
from grantflow.service.options import OrchestratorOptions
from grantflow.service.scope import included
from grantflow.storage.models import (
    PASSWORD_GRANT_TYPE,
    REFRESH_GRANT_TYPE,
    AnyTokenRequest,
    PasswordTokenRequest,
    RefreshTokenRequest,
    TokenResponse,
)

logger = get_logger(__name__)

T = TypeVar("T")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Orchestrator:
    """Grants, refreshes, validates and revokes bearer tokens.

    The orchestrator holds no token state: every call is a fresh round trip
    through ``handlers``, so one instance may serve concurrent requests.
    """

    def __init__(
        self,
        handlers: OrchestratorHandlers,
        options: Optional[OrchestratorOptions] = None,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.handlers = handlers
        self.options = options or OrchestratorOptions()
        self._clock = clock

    @property
    def access_token_lifetime(self) -> int:
        return self.options.access_token_lifetime

    @property
    def issue_refresh_token(self) -> bool:
        return self.options.issue_refresh_token

    @property
    def refresh_token_lifetime(self) -> int:
        return self.options.refresh_token_lifetime

    async def _bounded(self, event: str, context: str, call: Awaitable[T]) -> T:
        try:
            return await call
        except OAuthError as exc:
            log_fn = logger.error if exc.status >= 500 else logger.info
            log_fn(
                event,
                error=exc.error,
                error_description=exc.error_description,
                context=exc.context,
            )
            raise
        except Exception as exc:
            logger.exception(
                "unexpected_error",
                context=context,
                error_type=type(exc).__name__,
            )
            raise ServerError(exc, context) from exc

    async def token(self, request: AnyTokenRequest) -> TokenResponse:
        """Process a token request for one of the supported grant types.

        :raises UnsupportedGrantTypeError: before any handler is called, when
            ``request.grant_type`` is neither ``password`` nor ``refresh_token``.
        """
        grant_type = request.grant_type
        if grant_type == PASSWORD_GRANT_TYPE and isinstance(request, PasswordTokenRequest):
            return await self._bounded(
                "grant_failed",
                "Orchestrator.password",
                password_grant(self.handlers, self.options, request, self._clock()),
            )
        if grant_type == REFRESH_GRANT_TYPE and isinstance(request, RefreshTokenRequest):
            return await self._bounded(
                "grant_failed",
                "Orchestrator.refresh",
                refresh_grant(self.handlers, self.options, request, self._clock()),
            )
        if grant_type in (PASSWORD_GRANT_TYPE, REFRESH_GRANT_TYPE):
            raise InvalidRequestError(
                f"grant_type: '{grant_type}' request is missing its parameters",
                "Orchestrator.token",
            )
        logger.info("grant_failed", error="unsupported_grant_type", grant_type=grant_type)
        raise UnsupportedGrantTypeError(
            f"grant_type: '{grant_type}' is not supported", "Orchestrator.token"
        )

    async def authorize(self, token: str, required: Optional[str] = "") -> None:
        """Return if ``token`` exists, has not expired and covers ``required``.

        An empty ``required`` scope accepts any token. Nothing is mutated, so
        the same token may be authorized any number of times concurrently.
        """
        await self._bounded(
            "authorize_denied", "Orchestrator.authorize", self._authorize(token, required)
        )

    async def _authorize(self, token: str, required: Optional[str]) -> None:
        access_token = await guarded(
            "Orchestrator.authorize.retrieve_access_token",
            InvalidTokenError,
            self.handlers.retrieve_access_token(token),
        )
        if is_expired(access_token.expires, self._clock()):
            raise InvalidTokenError(
                "token: Expired access token", "Orchestrator.authorize.check_expiration"
            )
        if not included(required, access_token.scope, self.options.superuser_scope):
            raise InvalidScopeError(
                "scope: Required scope not authorized for this access token",
                "Orchestrator.authorize.check_scope",
            )

    async def revoke(self, token: str) -> None:
        """Revoke an access token and every refresh token bound to it."""
        try:
            await self.handlers.revoke_access_token(token)
        except OAuthError:
            raise
        except Exception as exc:
            logger.info("revoke_failed", error_type=type(exc).__name__, error=str(exc))
            raise InvalidTokenError(
                "token: Invalid access token", "Orchestrator.revoke"
            ) from exc
        logger.info("token_revoked")


__all__ = ["Orchestrator"]
