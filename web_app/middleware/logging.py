"""Logging middleware."""

import time
import logging
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from typing import Callable


class LoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for request/response logging."""

    def __init__(self, app, logger: logging.Logger = None, slow_request_ms: float = 1000.0):
        """Initialize logging middleware.

        Args:
            app: ASGI application
            logger: Optional logger (defaults to shortener.web)
            slow_request_ms: Requests slower than this are logged as warnings
        """
        super().__init__(app)
        self.logger = logger or logging.getLogger("shortener.web")
        self.slow_request_ms = slow_request_ms

    async def dispatch(self, request: Request, call_next: Callable):
        """Log request and response."""
        start_time = time.perf_counter()

        client_ip = request.headers.get("x-forwarded-for", "").split(",")[0].strip()
        if not client_ip:
            client_ip = request.client.host if request.client else "unknown"
        self.logger.debug(f"Request: {request.method} {request.url.path} from {client_ip}")

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        log = self.logger.warning if duration_ms > self.slow_request_ms else self.logger.info
        log(
            f"{request.method} {request.url.path} from {client_ip} - "
            f"Status: {response.status_code} - Duration: {duration_ms:.2f}ms"
        )

        return response
