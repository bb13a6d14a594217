"""
HTTP middleware for security headers, request size limits, logging and correlation IDs.
"""
import time
import uuid
from typing import Callable
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

import structlog

logger = structlog.get_logger()


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log all requests with timing and correlation ID propagation using structlog."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()

        # Generate or propagate correlation / request ID
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        # Bind context vars for structured logging across the full request lifecycle
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        response = await call_next(request)

        process_time = (time.time() - start_time) * 1000

        # Skip health checks to reduce noise
        if not request.url.path.startswith("/api/health"):
            status_code = response.status_code
            log = logger.error if status_code >= 500 else (logger.warning if status_code >= 400 else logger.info)
            log(
                "request_processed",
                status_code=status_code,
                process_time_ms=round(process_time, 2),
            )

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = f"{process_time:.2f}ms"

        return response


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Limit request body size. Targeting updates carry at most a few thousand ids."""

    def __init__(self, app, max_size: int = 1024 * 1024):
        super().__init__(app)
        self.max_size = max_size  # Size in bytes

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        content_length = request.headers.get("content-length")

        if content_length and content_length.isdigit() and int(content_length) > self.max_size:
            return JSONResponse(
                status_code=413,
                content={
                    "error": True,
                    "code": "REQUEST_TOO_LARGE",
                    "message": f"Request body too large. Maximum size is {self.max_size} bytes",
                },
            )

        return await call_next(request)
