"""
Request middleware: a correlation ID and one log line per request.

The ID comes from the caller's ``X-Request-ID`` header or is generated,
lives on ``request.state.request_id`` and in the logging context for the
duration of the request, and is echoed back with the handling time.
"""

from __future__ import annotations

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from backend.app.core.logging_config import set_request_context

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
PROCESS_TIME_HEADER = "X-Process-Time"

# Docs and liveness traffic stay out of the log
UNLOGGED_PREFIXES = ("/docs", "/redoc", "/openapi", "/favicon", "/health/live")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Tag each request with an ID and log its status and duration."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request.state.request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:16]
        set_request_context(
            request_id=request.state.request_id,
            method=request.method,
            endpoint=request.url.path,
        )
        start = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers[REQUEST_ID_HEADER] = request.state.request_id
            response.headers[PROCESS_TIME_HEADER] = f"{self._elapsed_ms(start):.1f}ms"
            return response
        finally:
            self._log(request, status_code, self._elapsed_ms(start))
            set_request_context()

    @staticmethod
    def _elapsed_ms(start: float) -> float:
        return (time.perf_counter() - start) * 1000

    @staticmethod
    def _log(request: Request, status_code: int, duration_ms: float) -> None:
        path = request.url.path
        if status_code < 500 and path.startswith(UNLOGGED_PREFIXES):
            return
        if status_code >= 500:
            level = logging.ERROR
        elif status_code >= 400:
            level = logging.WARNING
        else:
            level = logging.INFO
        logger.log(
            level, "%s %s → %d (%.1fms)", request.method, path, status_code, duration_ms,
            extra={"endpoint": path, "status_code": status_code, "duration_ms": duration_ms},
        )
