"""
Show model holding the per-show seat ledger.
"""

import re
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, TYPE_CHECKING

from sqlalchemy import JSON, CheckConstraint, DateTime, ForeignKey, Integer, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base

if TYPE_CHECKING:
    from .movie import Movie
    from .booking import Booking


SEAT_ID_PATTERN = re.compile(r"^([A-Z])([1-9][0-9]*)$")


class Show(Base):
    """
    A screening of a movie.

    ``occupied_seats`` maps seat id (``"A1"``) to the id of the booking holding it.
    A seat absent from the map is free. The map is only written by
    :class:`~movietime_booking.services.seat_ledger.SeatLedger`, which replaces
    it wholesale under a ``version`` check.
    """

    __tablename__ = "shows"

    movie_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("movies.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    show_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True
    )

    price: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        default=Decimal('0.00')
    )

    # Seat space: one letter per row, seats numbered 1..seats_per_row
    seat_rows: Mapped[str] = mapped_column(String(26), nullable=False, default="ABCDEFGHIJ")
    seats_per_row: Mapped[int] = mapped_column(Integer, nullable=False, default=10)

    occupied_seats: Mapped[Dict[str, str]] = mapped_column(JSON, nullable=False, default=dict)

    # Optimistic locking for the seat ledger
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    movie: Mapped["Movie"] = relationship("Movie", back_populates="shows")
    bookings: Mapped[List["Booking"]] = relationship("Booking", back_populates="show")

    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_shows_price_non_negative"),
        CheckConstraint("seats_per_row > 0", name="ck_shows_seats_per_row_positive"),
        CheckConstraint("version > 0", name="ck_shows_version_positive"),
    )

    def is_valid_seat(self, seat_id: str) -> bool:
        """Check that a seat id lies inside this show's seat space."""
        match = SEAT_ID_PATTERN.match(seat_id)
        if not match:
            return False
        row, number = match.group(1), int(match.group(2))
        return row in self.seat_rows and number <= self.seats_per_row

    @property
    def capacity(self) -> int:
        return len(self.seat_rows) * self.seats_per_row

    def __repr__(self) -> str:
        return (
            f"<Show(id={self.id}, movie_id={self.movie_id}, "
            f"show_time={self.show_time}, occupied={len(self.occupied_seats or {})}/{self.capacity})>"
        )
