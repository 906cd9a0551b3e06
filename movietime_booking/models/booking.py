"""
Booking model for seat reservations.
"""

import enum
import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, TYPE_CHECKING

from sqlalchemy import JSON, CheckConstraint, DateTime, Enum, ForeignKey, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base

if TYPE_CHECKING:
    from .user import User
    from .show import Show


class BookingStatus(enum.Enum):
    """Enumeration for booking payment state."""
    PENDING = "pending"
    PAID = "paid"
    EXPIRED = "expired"


class Booking(Base):
    """Booking model for one reservation attempt."""

    __tablename__ = "bookings"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    show_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("shows.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    # Ordered, duplicate-free seat ids
    seats: Mapped[List[str]] = mapped_column(JSON, nullable=False)

    amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        default=Decimal('0.00')
    )

    status: Mapped[BookingStatus] = mapped_column(
        Enum(BookingStatus),
        default=BookingStatus.PENDING,
        nullable=False,
        index=True
    )

    # Hold deadline; pending bookings past it are released
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True
    )

    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    expired_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    payment_reference: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    user: Mapped["User"] = relationship("User", back_populates="bookings")
    show: Mapped["Show"] = relationship("Show", back_populates="bookings")

    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_bookings_amount_non_negative"),
    )

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, user_id={self.user_id}, show_id={self.show_id}, "
            f"seats={self.seats}, status={self.status.value})>"
        )
