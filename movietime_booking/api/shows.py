"""
Show management API endpoints.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..schemas.show import SeatAvailabilityResponse, ShowCreate, ShowResponse
from ..services.show_service import ShowService

router = APIRouter(prefix="/shows", tags=["shows"])


def get_show_service(db: AsyncSession = Depends(get_db)) -> ShowService:
    """Dependency to get show service instance."""
    return ShowService(db)


@router.post("", response_model=ShowResponse, status_code=status.HTTP_201_CREATED)
async def create_show(
    show_data: ShowCreate,
    show_service: ShowService = Depends(get_show_service),
):
    """
    Create a show for a movie (admin action).

    Every user is notified that the movie has a new show.
    """
    show = await show_service.create_show(
        movie_id=show_data.movie_id,
        show_time=show_data.show_time,
        price=show_data.price,
        seat_rows=show_data.seat_rows,
        seats_per_row=show_data.seats_per_row,
    )
    return ShowResponse.model_validate(show)


@router.get("/{show_id}/seats", response_model=SeatAvailabilityResponse)
async def get_occupied_seats(
    show_id: UUID,
    show_service: ShowService = Depends(get_show_service),
):
    """Get the seats currently held on a show."""
    show = await show_service.get_show(show_id)
    occupied = await show_service.get_occupied_seats(show_id)
    return SeatAvailabilityResponse(
        show_id=show_id,
        occupied_seats=occupied,
        capacity=show.capacity,
        available=show.capacity - len(occupied),
    )
