from __future__ import annotations

from typing import Awaitable, Callable, Optional

from fastapi import APIRouter, Depends, Header, Request, Response
from fastapi.responses import JSONResponse

from grantflow.api.error_handling import NO_STORE_HEADERS
from grantflow.api.schemas import HealthBody, TokenResponseBody
from grantflow.logging import get_logger
from grantflow.service.errors import InvalidRequestError, InvalidTokenError
from grantflow.service.requests import parse_token_request
from grantflow.service.runtime import get_runtime

logger = get_logger(__name__)

router = APIRouter()

_FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


def _is_form(request: Request) -> bool:
    content_type = request.headers.get("content-type", "")
    return content_type.split(";", 1)[0].strip().lower() == _FORM_CONTENT_TYPE


def extract_bearer(header: Optional[str]) -> str:
    """Return the token from an ``Authorization: Bearer`` header value."""
    if not header:
        raise InvalidTokenError("token: Missing bearer token", "extract_bearer")
    scheme, _, value = header.partition(" ")
    value = value.strip()
    if scheme.lower() != "bearer" or not value or " " in value:
        raise InvalidTokenError("token: Malformed Authorization header", "extract_bearer")
    return value


async def _reject_alternate_transports(request: Request) -> None:
    # RFC 6750 §2.2/2.3 transports are not accepted
    if "access_token" in request.query_params:
        raise InvalidRequestError(
            "access_token: Tokens are only accepted in the Authorization header",
            "require_scope",
        )
    if request.method not in {"GET", "HEAD"} and _is_form(request):
        form = await request.form()
        if "access_token" in form:
            raise InvalidRequestError(
                "access_token: Tokens are only accepted in the Authorization header",
                "require_scope",
            )


async def bearer_token(
    request: Request,
    authorization: Optional[str] = Header(None),
) -> str:
    await _reject_alternate_transports(request)
    return extract_bearer(authorization)


def require_scope(required: str = "") -> Callable[..., Awaitable[str]]:
    """Dependency factory guarding a resource route.

    The returned dependency resolves to the presented access token once the
    orchestrator has authorized it for ``required``.
    """

    async def _dependency(token: str = Depends(bearer_token)) -> str:
        await get_runtime().orchestrator.authorize(token, required)
        return token

    return _dependency


@router.post("/oauth/token", response_model=TokenResponseBody, tags=["oauth"])
async def issue_token(request: Request):
    if not _is_form(request):
        raise InvalidRequestError(
            f"content-type: Token requests must be {_FORM_CONTENT_TYPE}", "issue_token"
        )
    form = await request.form()
    params = {key: value for key, value in form.items() if isinstance(value, str)}
    token_request = parse_token_request(params)
    response = await get_runtime().orchestrator.token(token_request)
    body = TokenResponseBody.from_response(response)
    return JSONResponse(content=body.to_payload(), headers=NO_STORE_HEADERS)


@router.delete("/oauth/token", status_code=204, tags=["oauth"])
async def revoke_token(token: str = Depends(bearer_token)):
    await get_runtime().orchestrator.revoke(token)
    return Response(status_code=204)


@router.get("/healthz", response_model=HealthBody, tags=["health"])
async def health() -> HealthBody:
    return HealthBody()
