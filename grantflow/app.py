from __future__ import annotations

from fastapi import FastAPI

from grantflow.api.error_handling import register_exception_handlers
from grantflow.api.routes import router
from grantflow.logging import get_logger, set_correlation_id

logger = get_logger(__name__)

__version__ = "0.1.0"


def create_app() -> FastAPI:
    """Build the token service application."""
    application = FastAPI(title="grantflow", version=__version__)
    register_exception_handlers(application)

    @application.middleware("http")
    async def add_correlation_id(request, call_next):
        """Tag every log entry of a request with its X-Request-ID."""
        correlation_id = set_correlation_id(request.headers.get("X-Request-ID"))
        response = await call_next(request)
        response.headers["X-Request-ID"] = correlation_id
        return response

    application.include_router(router)
    return application


app = create_app()
