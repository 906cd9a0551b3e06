"""
Request logging middleware with request-id propagation.
"""

import logging
import time
import contextvars
from uuid import uuid4

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

NO_REQUEST_ID = 'no-request-id'

# Context variable for request ID
request_id_var: contextvars.ContextVar[str] = contextvars.ContextVar('request_id', default=NO_REQUEST_ID)


class LoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for request/response logging and request tracing."""

    def __init__(self, app, log_requests: bool = True, log_responses: bool = True):
        super().__init__(app)
        self.log_requests = log_requests
        self.log_responses = log_responses

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("x-request-id") or str(uuid4())
        request.state.request_id = request_id
        token = request_id_var.set(request_id)

        start_time = time.time()

        if self.log_requests:
            self._log_request(request)

        try:
            response = await call_next(request)

            process_time = time.time() - start_time
            response.headers["X-Request-ID"] = request_id
            response.headers["X-Process-Time"] = f"{process_time:.4f}"

            if self.log_responses:
                logger.info(
                    f"Response: {request.method} {request.url.path} -> {response.status_code} "
                    f"in {process_time:.4f}s",
                    extra={"status_code": response.status_code, "process_time": process_time}
                )

            return response

        except Exception as exc:
            process_time = time.time() - start_time
            logger.error(
                f"Request failed: {request.method} {request.url.path} after {process_time:.4f}s: {exc}",
                extra={"error_type": type(exc).__name__}
            )
            raise
        finally:
            request_id_var.reset(token)

    def _log_request(self, request: Request) -> None:
        if request.url.path in ["/health", "/", "/docs", "/redoc"]:
            logger.debug(f"Health check: {request.method} {request.url.path}")
        elif request.url.path.startswith(("/api/v1/bookings", "/api/v1/payments")):
            logger.info(f"Booking request: {request.method} {request.url.path}")
        else:
            logger.info(f"API request: {request.method} {request.url.path}")
