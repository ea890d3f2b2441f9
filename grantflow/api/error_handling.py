from __future__ import annotations

from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from grantflow.api.schemas import ErrorBody
from grantflow.logging import get_logger
from grantflow.service.errors import ErrorKind, OAuthError

logger = get_logger(__name__)

# Token endpoint responses must never be cached (RFC 6749 §5.1)
NO_STORE_HEADERS = {"Cache-Control": "no-store", "Pragma": "no-cache"}


def _challenge(error: str, description: Optional[str] = None) -> str:
    """Build a ``WWW-Authenticate`` value per RFC 6750 §3."""
    if description:
        safe = description.replace("\\", "").replace('"', "'")
        return f'Bearer error="{error}", error_description="{safe}"'
    return f'Bearer error="{error}"'


def _error_response(
    status_code: int,
    error: str,
    description: str,
) -> JSONResponse:
    """Render the public ``{error, error_description, status}`` body."""
    body = ErrorBody(error=error, error_description=description, status=status_code)
    headers = dict(NO_STORE_HEADERS)
    if status_code == 401:
        headers["WWW-Authenticate"] = _challenge(error, description)
    return JSONResponse(status_code=status_code, content=body.model_dump(), headers=headers)


def oauth_error_response(exc: OAuthError) -> JSONResponse:
    return _error_response(exc.status, exc.error, exc.error_description)


def register_exception_handlers(app: FastAPI) -> None:
    """Install handlers that translate failures into OAuth2 error bodies."""

    @app.exception_handler(OAuthError)
    async def handle_oauth_error(request: Request, exc: OAuthError):
        # inner is logged, never returned
        log_fn = logger.error if exc.status >= 500 else logger.warning
        log_fn(
            "oauth_error",
            path=request.url.path,
            method=request.method,
            status_code=exc.status,
            error_code=exc.error,
            message=exc.error_description,
            context=exc.context,
            inner=repr(exc.inner) if exc.inner is not None else None,
        )
        if exc.status >= 500:
            return _error_response(exc.status, exc.error, "internal server error")
        return oauth_error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        logger.warning(
            "request_validation_error",
            path=request.url.path,
            method=request.method,
            errors=len(exc.errors()),
        )
        return _error_response(400, ErrorKind.INVALID_REQUEST.value, "malformed request")

    @app.exception_handler(Exception)
    async def handle_uncaught(request: Request, exc: Exception):
        logger.exception(
            "unhandled_exception",
            exc_info=exc,
            path=request.url.path,
            method=request.method,
            error_type=type(exc).__name__,
        )
        return _error_response(500, ErrorKind.SERVER_ERROR.value, "internal server error")
