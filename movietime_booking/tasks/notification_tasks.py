"""
Celery tasks for notification delivery.
"""

import logging

from .celery_app import celery_app, run_async
from ..database import get_db_session
from ..schemas.notification import NotificationEvent
from ..services.notification_service import NotificationService
from ..services.reminder_service import ReminderService

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, name="deliver_notification_task")
def deliver_notification_task(self, event_data: dict):
    """
    Deliver one notification event.

    Args:
        event_data: A serialized NotificationEvent
    """
    event = NotificationEvent.model_validate(event_data)

    async def _deliver():
        async with get_db_session() as session:
            return await NotificationService(session).deliver(event)

    logger.info(f"Delivering {event.type.value} notification")
    delivered = run_async(_deliver)

    if not delivered:
        logger.error(f"Delivery of {event.type.value} notification failed")
    return {"type": event.type.value, "status": "sent" if delivered else "failed"}


@celery_app.task(bind=True, name="send_show_reminders_task")
def send_show_reminders_task(self):
    """Periodic task reminding seat holders of shows starting soon."""

    async def _send_reminders():
        async with get_db_session() as session:
            result = await ReminderService(session).send_show_reminders()
            return result.to_dict()

    logger.info("Starting show reminder sweep")
    return run_async(_send_reminders)
