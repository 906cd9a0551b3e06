"""
Error handling middleware for the MovieTime booking service.
"""

import logging
import traceback
from datetime import datetime, timezone
from uuid import uuid4

from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from sqlalchemy.exc import IntegrityError, OperationalError, TimeoutError as SQLTimeoutError

from ..utils.exceptions import (
    MovieTimeError,
    ErrorCode,
    ValidationError,
    NotFoundError,
    BookingStateConflictError,
    ConcurrencyError,
    ExternalServiceError,
)

logger = logging.getLogger(__name__)


STATUS_MAP = {
    ErrorCode.VALIDATION_ERROR: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.INVALID_SEAT_SELECTION: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.SEATS_UNAVAILABLE: status.HTTP_409_CONFLICT,
    ErrorCode.BOOKING_ALREADY_PAID: status.HTTP_409_CONFLICT,
    ErrorCode.BOOKING_ALREADY_EXPIRED: status.HTTP_410_GONE,
    ErrorCode.CONCURRENCY_CONFLICT: status.HTTP_409_CONFLICT,
    ErrorCode.LEDGER_WRITE_CONFLICT: status.HTTP_409_CONFLICT,
    ErrorCode.EXTERNAL_SERVICE_ERROR: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def status_code_for(exc: MovieTimeError) -> int:
    """Map error codes to HTTP status codes."""
    return STATUS_MAP.get(exc.error_code, status.HTTP_500_INTERNAL_SERVER_ERROR)


def error_response(exc: MovieTimeError, error_id: str) -> JSONResponse:
    """Build the JSON error envelope for a service error."""
    headers = {}
    if exc.retry_after:
        headers["Retry-After"] = str(exc.retry_after)

    return JSONResponse(
        status_code=status_code_for(exc),
        content={
            "error": exc.to_dict(),
            "error_id": error_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
        headers=headers,
    )


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Middleware that turns service exceptions into structured JSON responses."""

    def __init__(self, app, debug: bool = False):
        super().__init__(app)
        self.debug = debug

    async def dispatch(self, request: Request, call_next):
        error_id = str(uuid4())

        try:
            return await call_next(request)
        except Exception as exc:
            return self._handle_exception(request, exc, error_id)

    def _handle_exception(self, request: Request, exc: Exception, error_id: str) -> JSONResponse:
        self._log_error(request, exc, error_id)

        if isinstance(exc, MovieTimeError):
            return error_response(exc, error_id)
        elif isinstance(exc, IntegrityError):
            return error_response(
                ValidationError("Data integrity constraint violation", details={"constraint_type": "unknown"}),
                error_id,
            )
        elif isinstance(exc, (OperationalError, SQLTimeoutError)):
            response = error_response(
                ExternalServiceError(
                    "database",
                    "Database service temporarily unavailable",
                    details={"error_type": type(exc).__name__},
                ),
                error_id,
            )
            response.headers["Retry-After"] = "30"
            return response

        unexpected = MovieTimeError(
            "An unexpected error occurred",
            error_code=ErrorCode.INTERNAL_ERROR,
            details={"error_type": type(exc).__name__} if self.debug else None
        )
        response = error_response(unexpected, error_id)
        if self.debug:
            response = JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "error": unexpected.to_dict(),
                    "error_id": error_id,
                    "debug": {"exception": str(exc), "traceback": traceback.format_exc()},
                },
            )
        return response

    def _log_error(self, request: Request, exc: Exception, error_id: str) -> None:
        request_info = {
            "method": request.method,
            "url": str(request.url),
            "client_ip": request.client.host if request.client else None,
        }

        if isinstance(exc, (ValidationError, NotFoundError, BookingStateConflictError)):
            logger.info(
                f"Client error [{error_id}]: {exc.message}",
                extra={"error_id": error_id, "error_code": exc.error_code.value, "request": request_info}
            )
        elif isinstance(exc, (ConcurrencyError, ExternalServiceError)):
            logger.error(
                f"System error [{error_id}]: {exc.message}",
                extra={"error_id": error_id, "error_code": exc.error_code.value, "request": request_info}
            )
        elif isinstance(exc, MovieTimeError):
            logger.warning(
                f"Business error [{error_id}]: {exc.message}",
                extra={"error_id": error_id, "error_code": exc.error_code.value, "request": request_info}
            )
        else:
            logger.error(
                f"Unexpected error [{error_id}]: {exc}",
                extra={"error_id": error_id, "error_type": type(exc).__name__, "request": request_info},
                exc_info=exc,
            )
