"""
Pydantic schemas for booking-related API requests and responses.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..models.booking import BookingStatus


class ReserveRequest(BaseModel):
    """Schema for holding seats on a show."""

    show_id: UUID = Field(..., description="ID of the show to book")
    user_id: UUID = Field(..., description="ID of the user making the booking")
    seat_ids: List[str] = Field(..., min_length=1, description="Seat ids such as A1, in pick order")

    @field_validator("seat_ids")
    @classmethod
    def normalize_seat_ids(cls, v: List[str]) -> List[str]:
        return [seat.strip().upper() for seat in v]


class BookingResponse(BaseModel):
    """Schema for booking responses."""

    id: UUID
    user_id: UUID
    show_id: UUID
    seats: List[str]
    amount: Decimal
    status: BookingStatus
    created_at: datetime
    expires_at: datetime
    paid_at: Optional[datetime] = None
    expired_at: Optional[datetime] = None
    payment_reference: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class BookingDetailResponse(BookingResponse):
    """Booking with the show and movie it belongs to."""

    movie_title: Optional[str] = None
    show_time: Optional[datetime] = None

    @classmethod
    def from_booking(cls, booking) -> "BookingDetailResponse":
        response = cls.model_validate(booking)
        if booking.show is not None:
            response.show_time = booking.show.show_time
            if booking.show.movie is not None:
                response.movie_title = booking.show.movie.title
        return response


class BookingListResponse(BaseModel):
    """Schema for a user's bookings."""

    bookings: List[BookingDetailResponse]
    total: int
