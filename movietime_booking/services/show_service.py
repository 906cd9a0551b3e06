"""
Show service for creating shows and reading their seat maps.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import List
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from ..models.movie import Movie
from ..models.show import Show
from ..schemas.notification import NotificationEvent
from ..utils.exceptions import MovieNotFoundError, ShowNotFoundError, ValidationError
from .seat_ledger import SeatLedger

logger = logging.getLogger(__name__)


class ShowService:
    """Service class for show management operations."""

    def __init__(self, session: AsyncSession, notifier=None):
        self.session = session
        self.ledger = SeatLedger(session)

        if notifier is None:
            from .notification_service import Notifier
            notifier = Notifier()
        self.notifier = notifier

    async def create_show(
        self,
        movie_id: UUID,
        show_time: datetime,
        price: Decimal,
        seat_rows: str = "ABCDEFGHIJ",
        seats_per_row: int = 10,
    ) -> Show:
        """
        Create a new show with an empty seat ledger and announce it.

        Raises:
            MovieNotFoundError: When the movie does not exist
            ValidationError: When the seat space is malformed
        """
        if not seat_rows or not seat_rows.isalpha() or not seat_rows.isupper() or len(set(seat_rows)) != len(seat_rows):
            raise ValidationError("seat_rows must be distinct uppercase letters", details={"seat_rows": seat_rows})

        try:
            movie = await self.session.get(Movie, movie_id)
            if movie is None:
                raise MovieNotFoundError(str(movie_id))

            show = Show(
                movie_id=movie_id,
                show_time=show_time,
                price=price,
                seat_rows=seat_rows,
                seats_per_row=seats_per_row,
                occupied_seats={},
                version=1,
            )
            self.session.add(show)
            await self.session.commit()

        except Exception:
            await self.session.rollback()
            raise

        self.notifier.publish(NotificationEvent.show_added(movie_id))
        logger.info(f"Show {show.id} created for movie {movie_id} at {show_time}")
        return show

    async def get_show(self, show_id: UUID) -> Show:
        show = await self.session.get(Show, show_id)
        if show is None:
            raise ShowNotFoundError(str(show_id))
        return show

    async def get_occupied_seats(self, show_id: UUID) -> List[str]:
        """Seat ids currently held on a show, sorted."""
        occupied = await self.ledger.occupied(show_id)
        return sorted(occupied)
