"""
Events emitted by the booking core for the notifier.
"""

import enum
from datetime import datetime
from typing import Any, Dict
from uuid import UUID

from pydantic import BaseModel, Field


class NotificationType(str, enum.Enum):
    """Event types understood by the notifier."""
    BOOKING_CONFIRMED = "booking.confirmed"
    SHOW_ADDED = "show.added"
    REMINDER_DUE = "reminder.due"


class NotificationEvent(BaseModel):
    """A single event handed to the notifier."""

    type: NotificationType
    data: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def booking_confirmed(cls, booking_id: UUID) -> "NotificationEvent":
        return cls(type=NotificationType.BOOKING_CONFIRMED, data={"booking_id": str(booking_id)})

    @classmethod
    def show_added(cls, movie_id: UUID) -> "NotificationEvent":
        return cls(type=NotificationType.SHOW_ADDED, data={"movie_id": str(movie_id)})

    @classmethod
    def reminder_due(
        cls,
        user_email: str,
        movie_title: str,
        show_time: datetime,
        user_name: str = "",
    ) -> "NotificationEvent":
        return cls(
            type=NotificationType.REMINDER_DUE,
            data={
                "user_email": user_email,
                "user_name": user_name,
                "movie_title": movie_title,
                "show_time": show_time.isoformat(),
            },
        )
