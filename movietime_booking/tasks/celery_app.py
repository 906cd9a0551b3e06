"""
Celery application configuration for background tasks.
"""

import asyncio
import logging

from celery import Celery
from celery.signals import setup_logging as celery_setup_logging, worker_ready

from ..config import get_settings
from ..database import close_database, init_database
from ..utils.logging_config import setup_logging

logger = logging.getLogger(__name__)

settings = get_settings()

# Create Celery app
celery_app = Celery(
    "movietime_booking",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "movietime_booking.tasks.booking_tasks",
        "movietime_booking.tasks.notification_tasks",
    ]
)

# Celery configuration
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=30 * 60,  # 30 minutes
    task_soft_time_limit=25 * 60,  # 25 minutes
    # Expiry tasks are acknowledged after they run so a crashed worker redelivers them
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=1000,
)

# Periodic tasks configuration
celery_app.conf.beat_schedule = {
    "sweep-booking-expirations": {
        "task": "sweep_booking_expirations_task",
        "schedule": float(settings.expiry_sweep_interval_seconds),
    },
    "send-show-reminders": {
        "task": "send_show_reminders_task",
        "schedule": float(settings.reminder_interval_hours * 3600),
    },
    "purge-expired-bookings": {
        "task": "purge_expired_bookings_task",
        "schedule": 86400.0,  # Once a day
    },
}


def run_async(job, *args):
    """
    Run an async job on a fresh event loop inside a worker.

    The engine is bound to the loop that created its connections, so each run
    gets its own and disposes of it afterwards.
    """

    async def _run():
        await init_database(create_tables=False)
        try:
            return await job(*args)
        finally:
            await close_database()

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(_run())
    finally:
        loop.close()


@worker_ready.connect
def rearm_on_worker_ready(sender=None, **kwargs):
    """Rebuild expiry tasks from pending bookings whenever a worker comes up."""
    logger.info("Worker ready, dispatching expiry re-arm")
    celery_app.send_task("rearm_booking_expirations_task")


@celery_setup_logging.connect
def configure_worker_logging(**kwargs):
    """Use the service's logging setup in workers instead of Celery's own."""
    setup_logging(log_level=settings.log_level, enable_json_logging=settings.enable_json_logging)
