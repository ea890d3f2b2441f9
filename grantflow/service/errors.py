from __future__ import annotations

from enum import Enum
from typing import Optional, Union


class ErrorKind(str, Enum):
    """Stable OAuth2 error codes (RFC 6749 §5.2, RFC 6750 §3.1)."""

    INVALID_GRANT = "invalid_grant"
    INVALID_REQUEST = "invalid_request"
    INVALID_SCOPE = "invalid_scope"
    INVALID_TOKEN = "invalid_token"
    UNSUPPORTED_GRANT_TYPE = "unsupported_grant_type"
    SERVER_ERROR = "server_error"


Source = Union[str, BaseException]


class OAuthError(Exception):
    """Base class for every error the orchestrator raises.

    Each subclass pins a ``kind`` (the OAuth ``error`` code) and a default
    HTTP ``status``. An instance is built from either a message or another
    exception; in the latter case the exception is kept as ``inner`` and its
    message becomes the ``error_description``. ``context`` names the step that
    failed (e.g. ``Orchestrator.refresh.retrieve_refresh_token``).

    Only ``error``, ``error_description`` and ``status`` are meant to cross a
    trust boundary; see :meth:`to_dict`.
    """

    kind: ErrorKind = ErrorKind.SERVER_ERROR
    status: int = 500

    def __init__(
        self,
        source: Source,
        context: Optional[str] = None,
        *,
        status: Optional[int] = None,
    ) -> None:
        if isinstance(source, BaseException):
            description = str(source) or type(source).__name__
            self.inner: Optional[BaseException] = source
        else:
            description = source
            self.inner = None
        super().__init__(description)
        self.error_description = description
        self.context = context or None
        if status is not None:
            self.status = status

    @property
    def error(self) -> str:
        return self.kind.value

    @property
    def message(self) -> str:
        return self.error_description

    def to_dict(self) -> dict:
        """Public representation; never includes ``inner`` or ``context``."""
        return {
            "error": self.error,
            "error_description": self.error_description,
            "status": self.status,
        }

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(error={self.error!r}, "
            f"error_description={self.error_description!r}, context={self.context!r})"
        )


class InvalidGrantError(OAuthError):
    """Credentials were rejected (401)."""
    kind = ErrorKind.INVALID_GRANT
    status = 401


class InvalidRequestError(OAuthError):
    """The request is missing a parameter or is otherwise malformed (400)."""
    kind = ErrorKind.INVALID_REQUEST
    status = 400


class InvalidScopeError(OAuthError):
    """Requested scope exceeds the entitlement, or a token lacks the required scope (403)."""
    kind = ErrorKind.INVALID_SCOPE
    status = 403


class InvalidTokenError(OAuthError):
    """Access or refresh token is missing, unknown, expired or revoked (401)."""
    kind = ErrorKind.INVALID_TOKEN
    status = 401


class UnsupportedGrantTypeError(OAuthError):
    """The ``grant_type`` is not one this server supports (400)."""
    kind = ErrorKind.UNSUPPORTED_GRANT_TYPE
    status = 400


class ServerError(OAuthError):
    """Unclassified failure escaping a flow (500)."""
    kind = ErrorKind.SERVER_ERROR
    status = 500


ERROR_CLASSES: dict[ErrorKind, type[OAuthError]] = {
    ErrorKind.INVALID_GRANT: InvalidGrantError,
    ErrorKind.INVALID_REQUEST: InvalidRequestError,
    ErrorKind.INVALID_SCOPE: InvalidScopeError,
    ErrorKind.INVALID_TOKEN: InvalidTokenError,
    ErrorKind.UNSUPPORTED_GRANT_TYPE: UnsupportedGrantTypeError,
    ErrorKind.SERVER_ERROR: ServerError,
}


__all__ = [
    "ErrorKind",
    "OAuthError",
    "InvalidGrantError",
    "InvalidRequestError",
    "InvalidScopeError",
    "InvalidTokenError",
    "UnsupportedGrantTypeError",
    "ServerError",
    "ERROR_CLASSES",
]
