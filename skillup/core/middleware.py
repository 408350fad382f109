"""
Request logging middleware — one line per request with status and timing.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

logger = logging.getLogger(__name__)

# Paths that are not worth a log line
QUIET_PATHS = {"/api/health", "/docs", "/redoc", "/openapi.json"}


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        path = request.url.path

        # For OPTIONS (CORS preflight), pass through
        if request.method == "OPTIONS" or path in QUIET_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000

        logger.info(
            "%s %s -> %s (%.1f ms)",
            request.method, path, response.status_code, elapsed_ms,
        )
        return response
