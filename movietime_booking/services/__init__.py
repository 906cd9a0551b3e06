"""Business logic services for the MovieTime booking service."""

from .seat_ledger import SeatLedger
from .reservation_service import ReservationService
from .expiry_scheduler import ExpiryScheduler
from .payment_gate import PaymentGate
from .show_service import ShowService
from .notification_service import NotificationService, Notifier
from .reminder_service import ReminderService

__all__ = [
    "SeatLedger",
    "ReservationService",
    "ExpiryScheduler",
    "PaymentGate",
    "ShowService",
    "NotificationService",
    "Notifier",
    "ReminderService",
]
