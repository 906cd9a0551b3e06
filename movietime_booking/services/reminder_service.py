"""
Showtime reminder sweep.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Awaitable, Callable, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..config import get_settings
from ..models.base import utcnow
from ..models.booking import Booking, BookingStatus
from ..models.show import Show
from ..models.user import User
from ..schemas.notification import NotificationEvent
from .notification_service import NotificationService
from .seat_ledger import SeatLedger

logger = logging.getLogger(__name__)


@dataclass
class ReminderSweepResult:
    sent: int = 0
    failed: int = 0

    def to_dict(self) -> dict:
        return {
            "sent": self.sent,
            "failed": self.failed,
            "message": f"Sent {self.sent} reminder(s), {self.failed} failed",
        }


class ReminderService:
    """Sends one reminder per distinct seat holder of each upcoming show."""

    def __init__(
        self,
        session: AsyncSession,
        deliver: Optional[Callable[[NotificationEvent], Awaitable[bool]]] = None,
    ):
        self.session = session
        self.settings = get_settings()
        self.deliver = deliver or NotificationService(session).deliver

    async def collect_reminders(self, now: Optional[datetime] = None) -> List[NotificationEvent]:
        """Build ``reminder.due`` events for shows starting within the look-ahead window."""
        now = now or utcnow()
        window_end = now + timedelta(hours=self.settings.reminder_lookahead_hours)

        result = await self.session.execute(
            select(Show)
            .options(selectinload(Show.movie))
            .where(Show.show_time >= now, Show.show_time <= window_end)
            .order_by(Show.show_time)
            .execution_options(populate_existing=True)
        )

        events: List[NotificationEvent] = []
        for show in result.scalars().all():
            if not show.movie or not show.occupied_seats:
                continue
            movie_title, show_time = show.movie.title, show.show_time

            # Holders come straight from the ledger values, one entry per user
            booking_ids = await SeatLedger(self.session).holders(show.id)
            users = await self._holders(booking_ids)

            for user in users:
                events.append(
                    NotificationEvent.reminder_due(
                        user_email=user.email,
                        user_name=user.name,
                        movie_title=movie_title,
                        show_time=show_time,
                    )
                )

        return events

    async def send_show_reminders(self, now: Optional[datetime] = None) -> ReminderSweepResult:
        """
        Deliver reminders independently of each other.

        A failed delivery is counted and logged; it never stops the sweep.
        """
        events = await self.collect_reminders(now)
        result = ReminderSweepResult()

        if not events:
            logger.info("No reminders to send")
            return result

        for event in events:
            try:
                delivered = await self.deliver(event)
            except Exception as e:
                logger.error(f"Reminder delivery raised for {event.data.get('movie_title')}: {e}")
                delivered = False

            if delivered:
                result.sent += 1
            else:
                result.failed += 1

        logger.info(result.to_dict()["message"])
        return result

    async def _holders(self, booking_ids: set) -> List[User]:
        result = await self.session.execute(
            select(User)
            .join(Booking, Booking.user_id == User.id)
            .where(
                Booking.id.in_(booking_ids),
                Booking.status.in_([BookingStatus.PENDING, BookingStatus.PAID]),
            )
            .distinct()
            .order_by(User.email)
        )
        return list(result.scalars().all())
