"""
Pydantic schemas for payment provider callbacks.
"""

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from ..models.booking import BookingStatus
from ..services.payment_gate import PaymentAction, PaymentOutcome


class PaymentCallbackRequest(BaseModel):
    """Schema for a payment provider callback."""

    booking_id: UUID
    outcome: PaymentOutcome
    payment_reference: Optional[str] = Field(None, max_length=255, description="Payment reference from payment processor")


class PaymentCallbackResponse(BaseModel):
    """Schema for the callback acknowledgement."""

    booking_id: UUID
    status: BookingStatus
    action: PaymentAction
    message: Optional[str] = None
