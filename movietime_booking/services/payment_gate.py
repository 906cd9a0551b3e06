"""
Payment gate: turns payment provider callbacks into booking transitions.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from ..models.booking import BookingStatus
from ..utils.exceptions import BookingAlreadyExpiredError, BookingAlreadyPaidError
from .reservation_service import ReservationService

logger = logging.getLogger(__name__)


class PaymentOutcome(str, enum.Enum):
    SUCCESS = "success"
    FAILURE = "failure"


class PaymentAction(str, enum.Enum):
    """What the caller has to do with the money after a callback."""
    CONFIRMED = "confirmed"
    RELEASED = "released"
    VOID = "void"
    NONE = "none"


@dataclass
class PaymentCallbackResult:
    booking_id: UUID
    status: BookingStatus
    action: PaymentAction


class PaymentGate:
    """
    Maps payment callbacks onto the reservation service.

    A successful payment confirms the booking. A failed payment expires it
    right away so its seats go back on sale without waiting for the hold to
    time out. Losing the race against the other terminal transition is not an
    error here: it is reported back through ``action``.
    """

    def __init__(self, reservations: ReservationService):
        self.reservations = reservations

    async def handle_callback(
        self,
        booking_id: UUID,
        outcome: PaymentOutcome,
        payment_reference: Optional[str] = None,
    ) -> PaymentCallbackResult:
        """
        Apply one payment callback.

        Raises:
            BookingNotFoundError: When the booking does not exist
        """
        logger.info(f"Payment callback for booking {booking_id}: {outcome.value}")

        if outcome == PaymentOutcome.SUCCESS:
            try:
                booking = await self.reservations.confirm_payment(booking_id, payment_reference)
            except BookingAlreadyExpiredError:
                logger.info(f"Booking {booking_id} expired before payment, payment must be voided")
                return PaymentCallbackResult(booking_id, BookingStatus.EXPIRED, PaymentAction.VOID)
            return PaymentCallbackResult(booking.id, booking.status, PaymentAction.CONFIRMED)

        try:
            booking = await self.reservations.expire(booking_id)
        except BookingAlreadyPaidError:
            logger.info(f"Ignoring failed payment for booking {booking_id}, it is already paid")
            return PaymentCallbackResult(booking_id, BookingStatus.PAID, PaymentAction.NONE)
        return PaymentCallbackResult(booking.id, booking.status, PaymentAction.RELEASED)
