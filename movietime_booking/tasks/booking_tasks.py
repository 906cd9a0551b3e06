"""
Celery tasks for booking expiry.
"""

import logging
from datetime import timedelta
from uuid import UUID

from .celery_app import celery_app, run_async
from ..config import get_settings
from ..database import get_db_session
from ..models.base import utcnow
from ..services.expiry_scheduler import ExpiryScheduler
from ..services.reservation_service import ReservationService
from ..utils.exceptions import BookingAlreadyPaidError, BookingNotFoundError

logger = logging.getLogger(__name__)


async def expire_booking_job(booking_id: str) -> dict:
    """Expire one booking. Paid or missing bookings are a normal outcome, not a failure."""
    async with get_db_session() as session:
        service = ReservationService(session, scheduler=ExpiryScheduler())
        try:
            booking = await service.expire(UUID(booking_id))
        except BookingAlreadyPaidError:
            logger.info(f"Booking {booking_id} already paid, nothing to expire")
            return {"booking_id": booking_id, "status": "already_paid"}
        except BookingNotFoundError:
            logger.info(f"Booking {booking_id} no longer exists, nothing to expire")
            return {"booking_id": booking_id, "status": "not_found"}

        return {"booking_id": booking_id, "status": booking.status.value}


@celery_app.task(bind=True, name="expire_booking_task", acks_late=True, max_retries=None)
def expire_booking_task(self, booking_id: str):
    """
    Release a booking's hold when its deadline passes.

    Scheduled per booking at reservation time with an ETA. Transient failures
    are retried with exponential backoff; the periodic sweep covers the case
    where retries never succeed.
    """
    settings = get_settings()
    logger.info(f"Expiry task fired for booking {booking_id}")

    try:
        return run_async(expire_booking_job, booking_id)
    except Exception as e:
        countdown = min(2 ** self.request.retries, settings.expiry_retry_max_delay_seconds)
        logger.error(f"Expiry of booking {booking_id} failed, retrying in {countdown}s: {e}")
        raise self.retry(exc=e, countdown=countdown)


@celery_app.task(bind=True, name="sweep_booking_expirations_task")
def sweep_booking_expirations_task(self):
    """
    Periodic pass over pending bookings.

    Overdue holds are expired inline and holds due before the next pass are
    (re)scheduled, so no deadline depends on a single ETA task surviving.
    """
    settings = get_settings()

    async def _sweep():
        async with get_db_session() as session:
            result = await ExpiryScheduler().sweep_due(
                session,
                horizon=timedelta(seconds=settings.expiry_sweep_interval_seconds),
            )
            return result.to_dict()

    return run_async(_sweep)


@celery_app.task(bind=True, name="rearm_booking_expirations_task")
def rearm_booking_expirations_task(self):
    """Re-derive an expiry task for every pending booking."""

    async def _rearm():
        async with get_db_session() as session:
            result = await ExpiryScheduler().rearm_pending(session)
            return result.to_dict()

    return run_async(_rearm)


@celery_app.task(bind=True, name="purge_expired_bookings_task")
def purge_expired_bookings_task(self):
    """Delete expired bookings past the retention window."""
    settings = get_settings()

    async def _purge():
        cutoff = utcnow() - timedelta(days=settings.expired_booking_retention_days)
        async with get_db_session() as session:
            purged = await ReservationService(session).purge_expired_bookings(cutoff)
            return {"purged_count": purged}

    return run_async(_purge)
