"""
FastAPI routes for seat reservation and booking lookup.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..schemas.common import ErrorResponse
from ..schemas.booking import (
    BookingDetailResponse,
    BookingListResponse,
    BookingResponse,
    ReserveRequest,
)
from ..services.reservation_service import ReservationService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/bookings", tags=["bookings"])


def get_reservation_service(db: AsyncSession = Depends(get_db)) -> ReservationService:
    """Dependency to get reservation service instance."""
    return ReservationService(db)


@router.post(
    "",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        status.HTTP_404_NOT_FOUND: {"model": ErrorResponse},
        status.HTTP_409_CONFLICT: {"model": ErrorResponse},
        status.HTTP_422_UNPROCESSABLE_ENTITY: {"model": ErrorResponse},
    },
)
async def reserve_seats(
    request: ReserveRequest,
    service: ReservationService = Depends(get_reservation_service),
):
    """
    Hold seats on a show.

    The booking stays ``pending`` until the payment callback arrives. Holds
    not paid by ``expires_at`` are released automatically. Responds with 409
    and ``details.unavailable_seats`` when another booking got a seat first.
    """
    booking = await service.reserve(request.show_id, request.seat_ids, request.user_id)
    return BookingResponse.model_validate(booking)


@router.get("/user/{user_id}", response_model=BookingListResponse)
async def get_user_bookings(
    user_id: UUID,
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    service: ReservationService = Depends(get_reservation_service),
):
    """Get a user's bookings, newest first."""
    bookings = await service.get_user_bookings(user_id, limit=limit, offset=offset)
    return BookingListResponse(
        bookings=[BookingDetailResponse.from_booking(booking) for booking in bookings],
        total=len(bookings),
    )


@router.get("/{booking_id}", response_model=BookingDetailResponse)
async def get_booking(
    booking_id: UUID,
    service: ReservationService = Depends(get_reservation_service),
):
    """Get a booking with its show details."""
    booking = await service.get_booking(booking_id)
    return BookingDetailResponse.from_booking(booking)
