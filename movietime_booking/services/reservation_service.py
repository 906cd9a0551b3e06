"""
Reservation service: seat holds and the pending -> paid / pending -> expired transitions.
"""

import logging
from datetime import datetime, timedelta
from typing import Iterable, List, Optional
from uuid import UUID, uuid4

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..config import get_settings
from ..models.base import utcnow
from ..models.booking import Booking, BookingStatus
from ..models.show import Show
from ..schemas.notification import NotificationEvent
from ..utils.exceptions import (
    BookingAlreadyExpiredError,
    BookingAlreadyPaidError,
    BookingNotFoundError,
    InvalidSeatSelectionError,
    ShowNotFoundError,
)
from ..utils.logging_config import log_business_event
from ..utils.retry import retry_on_concurrency_error
from .seat_ledger import SeatLedger

logger = logging.getLogger(__name__)


class ReservationService:
    """
    Service for reserving seats and settling the resulting bookings.

    Correctness under concurrency rests on two store-level primitives: the seat
    ledger's version-checked write (per show) and a compare-and-set on the
    booking status (per booking). Nothing here holds an in-process lock.
    """

    def __init__(self, session: AsyncSession, scheduler=None, notifier=None):
        self.session = session
        self.settings = get_settings()
        self.ledger = SeatLedger(session)

        if scheduler is None:
            from .expiry_scheduler import ExpiryScheduler
            scheduler = ExpiryScheduler()
        if notifier is None:
            from .notification_service import Notifier
            notifier = Notifier()

        self.scheduler = scheduler
        self.notifier = notifier

    @property
    def hold_ttl(self) -> timedelta:
        return timedelta(minutes=self.settings.hold_ttl_minutes)

    @retry_on_concurrency_error()
    async def reserve(self, show_id: UUID, seat_ids: Iterable[str], user_id: UUID) -> Booking:
        """
        Hold seats on a show for a user and create a pending booking.

        Args:
            show_id: ID of the show
            seat_ids: Seat ids such as ``"A1"``, in the order the user picked them
            user_id: ID of the user making the reservation

        Returns:
            The pending booking

        Raises:
            InvalidSeatSelectionError: Empty, duplicate, too many or out-of-range seats
            ShowNotFoundError: When the show does not exist
            SeatsUnavailableError: When any seat is already held; nothing is written
            LedgerWriteConflictError: When contention persists after retries
        """
        seat_ids = list(seat_ids)
        logger.info(f"Reserving seats {seat_ids} on show {show_id} for user {user_id}")

        self._validate_seat_selection(seat_ids)

        try:
            show = await self.session.get(Show, show_id)
            if show is None:
                raise ShowNotFoundError(str(show_id))

            invalid = [seat for seat in seat_ids if not show.is_valid_seat(seat)]
            if invalid:
                raise InvalidSeatSelectionError("seats outside the show's seat map", invalid)

            booking_id = uuid4()
            await self.ledger.try_claim(show_id, seat_ids, booking_id)

            now = utcnow()
            booking = Booking(
                id=booking_id,
                user_id=user_id,
                show_id=show_id,
                seats=seat_ids,
                amount=show.price * len(seat_ids),
                status=BookingStatus.PENDING,
                created_at=now,
                updated_at=now,
                expires_at=now + self.hold_ttl,
            )
            self.session.add(booking)
            await self.session.commit()

        except Exception:
            await self.session.rollback()
            raise

        self._schedule_expiry(booking.id, booking.expires_at)

        log_business_event(
            "booking.reserved",
            {"booking_id": str(booking.id), "show_id": str(show_id), "seats": seat_ids},
            user_id=str(user_id),
        )
        logger.info(f"Booking {booking.id} created, hold expires at {booking.expires_at}")
        return booking

    async def confirm_payment(self, booking_id: UUID, payment_reference: Optional[str] = None) -> Booking:
        """
        Mark a pending booking as paid.

        A duplicate confirmation of an already paid booking returns it unchanged.

        Raises:
            BookingNotFoundError: When the booking does not exist
            BookingAlreadyExpiredError: When the hold expired first; the payment must be voided
        """
        logger.info(f"Confirming payment for booking {booking_id}")

        try:
            result = await self.session.execute(
                update(Booking)
                .where(Booking.id == booking_id, Booking.status == BookingStatus.PENDING)
                .values(
                    status=BookingStatus.PAID,
                    paid_at=utcnow(),
                    payment_reference=payment_reference,
                )
                .execution_options(synchronize_session=False)
            )
            won = result.rowcount == 1
            booking = await self._get_booking(booking_id)
            await self.session.commit()

        except Exception:
            await self.session.rollback()
            raise

        if not won:
            if booking.status == BookingStatus.EXPIRED:
                logger.info(f"Payment for booking {booking_id} arrived after the hold expired")
                raise BookingAlreadyExpiredError(str(booking_id))
            logger.info(f"Booking {booking_id} already paid, ignoring duplicate confirmation")
            return booking

        self._cancel_expiry(booking.id)
        self._publish(NotificationEvent.booking_confirmed(booking.id))

        log_business_event(
            "booking.paid",
            {"booking_id": str(booking.id), "amount": str(booking.amount)},
            user_id=str(booking.user_id),
        )
        logger.info(f"Booking {booking_id} paid")
        return booking

    @retry_on_concurrency_error()
    async def expire(self, booking_id: UUID) -> Booking:
        """
        Expire a pending booking and release its seats.

        Expiring an already expired booking is a no-op that returns it.

        Raises:
            BookingNotFoundError: When the booking does not exist
            BookingAlreadyPaidError: When payment won the race; no seats are released
        """
        logger.info(f"Expiring booking {booking_id}")

        released: List[str] = []
        try:
            result = await self.session.execute(
                update(Booking)
                .where(Booking.id == booking_id, Booking.status == BookingStatus.PENDING)
                .values(status=BookingStatus.EXPIRED, expired_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            won = result.rowcount == 1
            booking = await self._get_booking(booking_id)

            if won:
                # Same transaction as the status change: a ledger conflict rolls both back
                released = await self.ledger.release(booking.show_id, booking.seats, booking_id=booking.id)

            await self.session.commit()

        except Exception:
            await self.session.rollback()
            raise

        if not won:
            if booking.status == BookingStatus.PAID:
                logger.info(f"Booking {booking_id} was paid before it could expire")
                raise BookingAlreadyPaidError(str(booking_id))
            logger.info(f"Booking {booking_id} already expired")
            return booking

        self._cancel_expiry(booking.id)

        log_business_event(
            "booking.expired",
            {"booking_id": str(booking.id), "released_seats": released},
            user_id=str(booking.user_id),
        )
        logger.info(f"Booking {booking_id} expired, released seats {released}")
        return booking

    async def get_booking(self, booking_id: UUID) -> Booking:
        """Get a booking with its show and movie loaded."""
        return await self._get_booking(booking_id, with_show=True)

    async def get_user_bookings(self, user_id: UUID, limit: int = 50, offset: int = 0) -> List[Booking]:
        """Get a user's bookings, newest first."""
        result = await self.session.execute(
            select(Booking)
            .options(selectinload(Booking.show).selectinload(Show.movie))
            .where(Booking.user_id == user_id)
            .order_by(Booking.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all())

    async def get_pending_bookings(
        self,
        due_before: Optional[datetime] = None,
        limit: int = 500,
        offset: int = 0,
    ) -> List[Booking]:
        """
        Get pending bookings, oldest deadline first.

        Args:
            due_before: Only bookings whose hold deadline is at or before this time
            limit: Maximum number of bookings to return
            offset: Number of bookings to skip
        """
        query = select(Booking).where(Booking.status == BookingStatus.PENDING)
        if due_before is not None:
            query = query.where(Booking.expires_at <= due_before)

        result = await self.session.execute(
            query.order_by(Booking.expires_at, Booking.id).limit(limit).offset(offset)
        )
        return list(result.scalars().all())

    async def purge_expired_bookings(self, older_than: datetime) -> int:
        """Delete expired bookings whose hold ended before ``older_than``."""
        try:
            result = await self.session.execute(
                delete(Booking)
                .where(Booking.status == BookingStatus.EXPIRED, Booking.expired_at < older_than)
                .execution_options(synchronize_session=False)
            )
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info(f"Purged {result.rowcount} expired bookings older than {older_than}")
        return result.rowcount

    def _validate_seat_selection(self, seat_ids: List[str]) -> None:
        if not seat_ids:
            raise InvalidSeatSelectionError("no seats selected")

        if len(seat_ids) > self.settings.max_seats_per_booking:
            raise InvalidSeatSelectionError(
                f"at most {self.settings.max_seats_per_booking} seats per booking"
            )

        seen = set()
        duplicates = []
        for seat in seat_ids:
            if seat in seen and seat not in duplicates:
                duplicates.append(seat)
            seen.add(seat)
        if duplicates:
            raise InvalidSeatSelectionError("duplicate seats", duplicates)

    async def _get_booking(self, booking_id: UUID, with_show: bool = False) -> Booking:
        query = (
            select(Booking)
            .where(Booking.id == booking_id)
            .execution_options(populate_existing=True)
        )
        if with_show:
            query = query.options(selectinload(Booking.show).selectinload(Show.movie))

        result = await self.session.execute(query)
        booking = result.scalar_one_or_none()

        if booking is None:
            raise BookingNotFoundError(str(booking_id))

        return booking

    def _schedule_expiry(self, booking_id: UUID, fire_at: datetime) -> None:
        # The periodic sweep re-derives deadlines from the database, so a lost enqueue only delays release
        try:
            self.scheduler.schedule_at(booking_id, fire_at)
        except Exception as e:
            logger.warning(f"Failed to schedule expiry for booking {booking_id}: {e}")

    def _cancel_expiry(self, booking_id: UUID) -> None:
        try:
            self.scheduler.cancel(booking_id)
        except Exception as e:
            logger.warning(f"Failed to cancel expiry task for booking {booking_id}: {e}")

    def _publish(self, event: NotificationEvent) -> None:
        self.notifier.publish(event)
