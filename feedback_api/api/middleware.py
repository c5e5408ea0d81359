# =============================================================================
# HTTP Middleware — Open CORS and Request Logging
# =============================================================================
#
# OpenCorsMiddleware
#   The ingestion endpoint is called directly from third-party browser apps,
#   so every response advertises `Access-Control-Allow-Origin: *` and every
#   OPTIONS request is answered with 204 and an empty body, before routing
#   and without authentication.
#   Starlette's CORSMiddleware is not used: it passes an OPTIONS request
#   without Origin/Access-Control-Request-Method through to routing, where
#   it would get a 405 instead of the 204 preflight answer.
#
# RequestLoggingMiddleware
#   Logs method, path, status and latency of each request, plus the tenant
#   when a dependency resolved one (request.state.tenant_id). Exceptions
#   nothing else handled are logged with their traceback and turned into a
#   generic 500 so the client never sees internals.
#
# Registration order matters: OpenCorsMiddleware must be added last so it
# wraps the logger and decorates its 500 responses too.
# =============================================================================

from __future__ import annotations

import logging
import time

from starlette.middleware.base import (
    BaseHTTPMiddleware,
    RequestResponseEndpoint,
)
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from feedback_api.config import settings
from feedback_api.exceptions import InternalError

logger = logging.getLogger(__name__)

# Endpoints to skip request logging (health check, docs)
_SKIP_PATHS = {"/health", "/docs", "/redoc", "/openapi.json"}


def cors_headers(
    allow_headers: list[str] | None = None,
    allow_methods: list[str] | None = None,
) -> dict[str, str]:
    """The CORS headers attached to every response."""
    return {
        "Access-Control-Allow-Origin": "*",
        "Access-Control-Allow-Headers": ", ".join(
            allow_headers if allow_headers is not None else settings.cors_allow_headers
        ),
        "Access-Control-Allow-Methods": ", ".join(
            allow_methods if allow_methods is not None else settings.cors_allow_methods
        ),
    }


class OpenCorsMiddleware(BaseHTTPMiddleware):
    """Permissive CORS: any origin, preflight answered without auth."""

    def __init__(
        self,
        app: ASGIApp,
        allow_headers: list[str] | None = None,
        allow_methods: list[str] | None = None,
    ) -> None:
        super().__init__(app)
        self._headers = cors_headers(allow_headers, allow_methods)

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        if request.method == "OPTIONS":
            return Response(status_code=204, headers=self._headers)

        response = await call_next(request)
        response.headers.update(self._headers)
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Per-request access log and last-resort error boundary."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        start_time = time.monotonic()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "Unhandled error on %s %s", request.method, request.url.path,
            )
            response = JSONResponse(
                status_code=InternalError.status_code,
                content={"error": InternalError.default_message},
            )

        if request.url.path in _SKIP_PATHS:
            return response

        elapsed_ms = int((time.monotonic() - start_time) * 1000)
        logger.info(
            "%s %s -> %d (%d ms) tenant=%s",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
            getattr(request.state, "tenant_id", None) or "-",
        )
        return response
