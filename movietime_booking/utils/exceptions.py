"""
Custom exceptions for the MovieTime booking service.
"""

from typing import Any, Dict, Optional, List
from enum import Enum


class ErrorCode(str, Enum):
    """Standard error codes for the platform."""

    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"

    # Reservation errors
    SEATS_UNAVAILABLE = "SEATS_UNAVAILABLE"
    INVALID_SEAT_SELECTION = "INVALID_SEAT_SELECTION"
    BOOKING_ALREADY_PAID = "BOOKING_ALREADY_PAID"
    BOOKING_ALREADY_EXPIRED = "BOOKING_ALREADY_EXPIRED"

    # Concurrency errors
    CONCURRENCY_CONFLICT = "CONCURRENCY_CONFLICT"
    LEDGER_WRITE_CONFLICT = "LEDGER_WRITE_CONFLICT"

    # External service errors
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"


class MovieTimeError(Exception):
    """Base exception class for the booking service."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None,
        suggestions: Optional[List[str]] = None,
        retry_after: Optional[int] = None
    ):
        """Initialize the exception with comprehensive error information."""
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.suggestions = suggestions or []
        self.retry_after = retry_after
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        result = {
            "error_code": self.error_code.value,
            "message": self.message,
        }

        if self.details:
            result["details"] = self.details

        if self.suggestions:
            result["suggestions"] = self.suggestions

        if self.retry_after:
            result["retry_after"] = self.retry_after

        return result


class ValidationError(MovieTimeError):
    """Exception raised for validation errors."""

    def __init__(self, message: str, field_errors: Optional[Dict[str, List[str]]] = None, **kwargs):
        super().__init__(
            message,
            error_code=kwargs.pop("error_code", ErrorCode.VALIDATION_ERROR),
            details=kwargs.pop("details", None) or ({"field_errors": field_errors} if field_errors else None),
            **kwargs
        )
        self.field_errors = field_errors or {}


class InvalidSeatSelectionError(ValidationError):
    """Exception raised when a seat selection is malformed or outside the show's seat space."""

    def __init__(self, reason: str, invalid_seats: Optional[List[str]] = None, **kwargs):
        super().__init__(
            f"Invalid seat selection: {reason}",
            error_code=ErrorCode.INVALID_SEAT_SELECTION,
            details={"reason": reason, "invalid_seats": invalid_seats or []},
            suggestions=["Select between 1 and the allowed number of distinct seats from the seat map"],
            **kwargs
        )
        self.invalid_seats = invalid_seats or []


class NotFoundError(MovieTimeError):
    """Base exception for resource not found errors."""

    def __init__(self, message: str, resource_type: Optional[str] = None, resource_id: Optional[str] = None, **kwargs):
        super().__init__(
            message,
            error_code=ErrorCode.NOT_FOUND,
            details={"resource_type": resource_type, "resource_id": resource_id} if resource_type else None,
            **kwargs
        )


class ShowNotFoundError(NotFoundError):
    """Exception raised when a show is not found."""

    def __init__(self, show_id: str, **kwargs):
        super().__init__(
            f"Show {show_id} not found",
            resource_type="show",
            resource_id=str(show_id),
            suggestions=["Check the show ID", "Browse available shows"],
            **kwargs
        )


class MovieNotFoundError(NotFoundError):
    """Exception raised when a movie is not found."""

    def __init__(self, movie_id: str, **kwargs):
        super().__init__(
            f"Movie {movie_id} not found",
            resource_type="movie",
            resource_id=str(movie_id),
            **kwargs
        )


class BookingNotFoundError(NotFoundError):
    """Exception raised when a booking is not found."""

    def __init__(self, booking_id: str, **kwargs):
        super().__init__(
            f"Booking {booking_id} not found",
            resource_type="booking",
            resource_id=str(booking_id),
            suggestions=["Check the booking ID", "View your booking history"],
            **kwargs
        )


class BusinessLogicError(MovieTimeError):
    """Base exception for business logic violations."""
    pass


class SeatsUnavailableError(BusinessLogicError):
    """Exception raised when one or more requested seats are already held."""

    def __init__(self, show_id: str, unavailable_seats: List[str], **kwargs):
        super().__init__(
            "Seats no longer available, please reselect",
            error_code=ErrorCode.SEATS_UNAVAILABLE,
            details={"show_id": str(show_id), "unavailable_seats": list(unavailable_seats)},
            suggestions=["Choose different seats", "Refresh the seat map"],
            **kwargs
        )
        self.show_id = show_id
        self.unavailable_seats = list(unavailable_seats)


class BookingStateConflictError(BusinessLogicError):
    """Base exception for a lost race on a terminal booking transition."""

    def __init__(self, booking_id: str, current_state: str, message: str, **kwargs):
        super().__init__(
            message,
            details={"booking_id": str(booking_id), "current_state": current_state},
            **kwargs
        )
        self.booking_id = booking_id
        self.current_state = current_state


class BookingAlreadyPaidError(BookingStateConflictError):
    """Exception raised when expiring a booking that was already paid."""

    def __init__(self, booking_id: str, **kwargs):
        super().__init__(
            booking_id,
            "paid",
            f"Booking {booking_id} is already paid",
            error_code=ErrorCode.BOOKING_ALREADY_PAID,
            **kwargs
        )


class BookingAlreadyExpiredError(BookingStateConflictError):
    """Exception raised when confirming payment for a booking whose hold has expired."""

    def __init__(self, booking_id: str, **kwargs):
        super().__init__(
            booking_id,
            "expired",
            "Hold expired, please rebook",
            error_code=ErrorCode.BOOKING_ALREADY_EXPIRED,
            suggestions=["Create a new booking", "The payment will be voided"],
            **kwargs
        )


class ConcurrencyError(MovieTimeError):
    """Exception raised for concurrency-related issues."""

    def __init__(self, message: str, retry_after: int = 1, **kwargs):
        super().__init__(
            message,
            error_code=kwargs.pop("error_code", ErrorCode.CONCURRENCY_CONFLICT),
            retry_after=retry_after,
            suggestions=["Please try again", "Wait a moment and retry"],
            **kwargs
        )


class LedgerWriteConflictError(ConcurrencyError):
    """Exception raised when a show's seat ledger was modified by another transaction."""

    def __init__(self, show_id: str, **kwargs):
        super().__init__(
            f"Seat ledger of show {show_id} was modified by another transaction",
            details={"resource_type": "show", "resource_id": str(show_id)},
            error_code=ErrorCode.LEDGER_WRITE_CONFLICT,
            **kwargs
        )
        self.show_id = show_id


class ExternalServiceError(MovieTimeError):
    """Exception raised when an external service fails."""

    def __init__(self, service_name: str, message: str, status_code: Optional[int] = None, **kwargs):
        super().__init__(
            f"{service_name} service error: {message}",
            error_code=kwargs.pop("error_code", ErrorCode.EXTERNAL_SERVICE_ERROR),
            details=kwargs.pop("details", None) or {"service": service_name, "status_code": status_code},
            **kwargs
        )

