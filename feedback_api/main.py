# =============================================================================
# FastAPI Application
# =============================================================================
#
# create_app() wires routers, middleware and exception handlers. All errors
# leave the service as `{"error": "<message>"}`:
#
#   FeedbackApiError subclasses → their own status and message
#   Starlette HTTPException      → its status, detail as the message
#   RequestValidationError       → 400, first validation message
#   anything else                → 500 (RequestLoggingMiddleware)
#
# Run locally:
#   uvicorn feedback_api.main:app --reload
# =============================================================================

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from feedback_api.api import account, feedbacks
from feedback_api.api.middleware import OpenCorsMiddleware, RequestLoggingMiddleware
from feedback_api.config import Settings, get_settings
from feedback_api.db.engine import create_tables, dispose_engine
from feedback_api.exceptions import FeedbackApiError
from feedback_api.logging_config import configure_logging
from feedback_api.models.responses import HealthResponse

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings: Settings = app.state.settings
    if settings.db_create_tables:
        logger.info("Creating missing database tables")
        await create_tables()
    yield
    await dispose_engine()


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------


async def _handle_api_error(request: Request, exc: FeedbackApiError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message},
        headers=exc.headers,
    )


async def _handle_http_error(
    request: Request, exc: StarletteHTTPException,
) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


async def _handle_validation_error(
    request: Request, exc: RequestValidationError,
) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = first.get("msg", "Invalid request")
        if location:
            message = f"{location}: {message}"
    else:
        message = "Invalid request"
    return JSONResponse(status_code=400, content={"error": message})


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.include_router(feedbacks.router)
    app.include_router(account.router)

    app.add_exception_handler(FeedbackApiError, _handle_api_error)
    app.add_exception_handler(StarletteHTTPException, _handle_http_error)
    app.add_exception_handler(RequestValidationError, _handle_validation_error)

    # Last added runs first: CORS wraps the request logger
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        OpenCorsMiddleware,
        allow_headers=settings.cors_allow_headers,
        allow_methods=settings.cors_allow_methods,
    )

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health() -> HealthResponse:
        return HealthResponse(version=settings.app_version, service=settings.app_name)

    return app


app = create_app()
