"""
Logging Middleware
Prescription Scanner

Logs every HTTP request with method, path, status, timing and a request ID.
"""

import time
import uuid
import logging
from starlette.middleware.base import BaseHTTPMiddleware
from fastapi import Request

logger = logging.getLogger(__name__)


class LoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:8]
        start_time = time.monotonic()
        request.state.request_id = request_id
        client = request.client.host if request.client else "unknown"

        try:
            response = await call_next(request)
        except Exception as exc:
            duration_ms = (time.monotonic() - start_time) * 1000
            logger.error(
                "[%s] %s %s -> ERROR (%.1fms) %s",
                request_id, request.method, request.url.path, duration_ms, exc,
            )
            raise

        duration_ms = (time.monotonic() - start_time) * 1000
        log_level = logging.WARNING if response.status_code >= 400 else logging.INFO
        logger.log(
            log_level,
            "[%s] %s %s -> %d (%.1fms) client=%s",
            request_id, request.method, request.url.path,
            response.status_code, duration_ms, client,
        )
        response.headers["X-Request-ID"] = request_id
        return response
