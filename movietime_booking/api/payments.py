"""
Payment provider callback endpoint.
"""

import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..schemas.payment import PaymentCallbackRequest, PaymentCallbackResponse
from ..services.payment_gate import PaymentAction, PaymentGate
from ..services.reservation_service import ReservationService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/payments", tags=["payments"])


def get_payment_gate(db: AsyncSession = Depends(get_db)) -> PaymentGate:
    """Dependency to get payment gate instance."""
    return PaymentGate(ReservationService(db))


@router.post(
    "/callback",
    response_model=PaymentCallbackResponse,
    responses={status.HTTP_410_GONE: {"model": PaymentCallbackResponse}},
)
async def payment_callback(
    request: PaymentCallbackRequest,
    gate: PaymentGate = Depends(get_payment_gate),
):
    """
    Receive a payment outcome for a booking.

    ``success`` confirms the booking. If the hold already expired the response
    is 410 with action ``void`` and the payment must be refunded. ``failure``
    releases the seats right away.
    """
    result = await gate.handle_callback(request.booking_id, request.outcome, request.payment_reference)
    response = PaymentCallbackResponse(
        booking_id=result.booking_id,
        status=result.status,
        action=result.action,
    )

    if result.action == PaymentAction.VOID:
        response.message = "Hold expired, please rebook"
        return JSONResponse(status_code=status.HTTP_410_GONE, content=response.model_dump(mode="json"))
    if result.action == PaymentAction.NONE:
        response.message = "Booking already paid"

    return response
