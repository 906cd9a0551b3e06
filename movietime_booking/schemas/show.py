"""
Pydantic schemas for show management.
"""

from datetime import datetime
from decimal import Decimal
from typing import List
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ShowCreate(BaseModel):
    """Schema for creating a new show."""

    movie_id: UUID
    show_time: datetime
    price: Decimal = Field(..., ge=0, description="Price per seat")
    seat_rows: str = Field("ABCDEFGHIJ", min_length=1, max_length=26, description="One letter per row")
    seats_per_row: int = Field(10, ge=1, le=99)


class ShowResponse(BaseModel):
    """Schema for show response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    movie_id: UUID
    show_time: datetime
    price: Decimal
    seat_rows: str
    seats_per_row: int
    created_at: datetime


class SeatAvailabilityResponse(BaseModel):
    """Occupied seats of a show; every other seat in its seat space is free."""

    show_id: UUID
    occupied_seats: List[str]
    capacity: int
    available: int
