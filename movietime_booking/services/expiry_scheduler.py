"""
Expiry scheduler: durable release of unpaid holds.

Celery ETA tasks fire each hold's release on time. They are not the source of
truth: every pending booking carries its deadline (``expires_at``), and the
periodic sweep plus the re-arm run at worker start rebuild the task set from
the database, so a lost or revoked task only delays a release.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from ..models.base import as_utc, utcnow
from ..utils.exceptions import BookingAlreadyPaidError, BookingNotFoundError, MovieTimeError

logger = logging.getLogger(__name__)


def expiry_task_id(booking_id: UUID) -> str:
    """Deterministic Celery task id for a booking's expiry."""
    return f"expire-booking-{booking_id}"


@dataclass
class SweepResult:
    """Outcome of a pass over pending bookings."""
    expired: int = 0
    scheduled: int = 0
    skipped: int = 0
    failed: int = 0

    def to_dict(self) -> dict:
        return {
            "expired": self.expired,
            "scheduled": self.scheduled,
            "skipped": self.skipped,
            "failed": self.failed,
        }


class ExpiryScheduler:
    """Schedules, cancels and re-derives booking expiry tasks."""

    def schedule_at(self, booking_id: UUID, fire_at: datetime) -> str:
        """
        Register an expiry task for ``booking_id`` firing at or after ``fire_at``.

        Returns:
            The Celery task id
        """
        from ..tasks.booking_tasks import expire_booking_task

        task_id = expiry_task_id(booking_id)
        expire_booking_task.apply_async(
            args=[str(booking_id)],
            eta=as_utc(fire_at),
            task_id=task_id,
        )
        logger.info(f"Scheduled expiry for booking {booking_id} at {fire_at}")
        return task_id

    def cancel(self, booking_id: UUID) -> None:
        """Revoke a booking's pending expiry task. Advisory: a task already running still completes."""
        from ..tasks.celery_app import celery_app

        celery_app.control.revoke(expiry_task_id(booking_id))
        logger.info(f"Cancelled expiry task for booking {booking_id}")

    async def sweep_due(
        self,
        session: AsyncSession,
        horizon: Optional[timedelta] = None,
        now: Optional[datetime] = None,
        batch_size: int = 500,
    ) -> SweepResult:
        """
        Expire overdue pending bookings and schedule the ones due within ``horizon``.

        Pending bookings are read in batches of ``batch_size`` until none are
        left. A booking that fails to expire is logged and counted, and the
        sweep moves on to the next one; it stays pending for the next pass.

        Args:
            session: Database session
            horizon: Look-ahead for scheduling; ``None`` re-arms every pending booking
            now: Reference time, defaults to the current time
            batch_size: Pending bookings read per query
        """
        from .reservation_service import ReservationService

        now = now or utcnow()
        service = ReservationService(session, scheduler=self)
        due_before = now + horizon if horizon is not None else None

        result = SweepResult()
        offset = 0
        while True:
            # Plain values: a rolled back expire would otherwise expire the loaded instances
            batch = [
                (booking.id, as_utc(booking.expires_at))
                for booking in await service.get_pending_bookings(
                    due_before=due_before, limit=batch_size, offset=offset
                )
            ]
            if not batch:
                break

            settled = 0
            for booking_id, deadline in batch:
                if deadline > now:
                    try:
                        self.schedule_at(booking_id, deadline)
                        result.scheduled += 1
                    except Exception as e:
                        logger.error(f"Failed to schedule expiry for booking {booking_id}: {e}")
                        result.failed += 1
                    continue

                try:
                    await service.expire(booking_id)
                    result.expired += 1
                    settled += 1
                except (BookingAlreadyPaidError, BookingNotFoundError) as e:
                    logger.info(f"Skipping expiry of booking {booking_id}: {e}")
                    result.skipped += 1
                    settled += 1
                except MovieTimeError as e:
                    logger.error(f"Failed to expire booking {booking_id}: {e}")
                    result.failed += 1
                except Exception as e:
                    logger.error(f"Unexpected error expiring booking {booking_id}: {e}", exc_info=True)
                    result.failed += 1

            if len(batch) < batch_size:
                break
            # Settled bookings left the pending set, the rest are still ahead of the next batch
            offset += len(batch) - settled

        logger.info(f"Expiry sweep finished: {result.to_dict()}")
        return result

    async def rearm_pending(
        self,
        session: AsyncSession,
        now: Optional[datetime] = None,
        batch_size: int = 500,
    ) -> SweepResult:
        """Re-derive expiry tasks for every pending booking, e.g. after a restart."""
        logger.info("Re-arming expiry tasks for pending bookings")
        return await self.sweep_due(session, horizon=None, now=now, batch_size=batch_size)
