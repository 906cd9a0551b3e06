"""
Tests for seat reservation and the paid / expired transitions, including concurrency scenarios.
"""

import asyncio
from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from movietime_booking.models import BookingStatus
from movietime_booking.models.base import as_utc, utcnow
from movietime_booking.schemas.notification import NotificationType
from movietime_booking.services.reservation_service import ReservationService
from movietime_booking.services.seat_ledger import SeatLedger
from movietime_booking.utils.exceptions import (
    BookingAlreadyExpiredError,
    BookingAlreadyPaidError,
    BookingNotFoundError,
    InvalidSeatSelectionError,
    LedgerWriteConflictError,
    SeatsUnavailableError,
    ShowNotFoundError,
)


@pytest.fixture
def service(db_session, scheduler, notifier):
    return ReservationService(db_session, scheduler=scheduler, notifier=notifier)


@pytest.mark.asyncio
async def test_reserve_creates_pending_booking(service, scheduler, show, user):
    before = utcnow()
    booking = await service.reserve(show.id, ["A1", "A2"], user.id)

    assert booking.status == BookingStatus.PENDING
    assert booking.seats == ["A1", "A2"]
    assert booking.amount == Decimal("25.00")
    assert before + timedelta(minutes=10) <= as_utc(booking.expires_at) <= utcnow() + timedelta(minutes=10)
    assert scheduler.scheduled == {booking.id: booking.expires_at}

    occupied = await SeatLedger(service.session).occupied(show.id)
    assert occupied == {"A1": str(booking.id), "A2": str(booking.id)}


@pytest.mark.asyncio
async def test_overlapping_reserve_then_retry(service, show, users):
    """X holds A1+A2; Y asking for A2+A3 is told A2 is gone, then gets A3 alone."""
    # The failed reserve rolls the shared session back and expires the fixture objects
    show_id, price = show.id, show.price
    x_id, y_id = users[0].id, users[1].id

    b1 = await service.reserve(show_id, ["A1", "A2"], x_id)
    b1_id = b1.id
    assert b1.status == BookingStatus.PENDING
    assert b1.amount == 2 * price

    with pytest.raises(SeatsUnavailableError) as exc_info:
        await service.reserve(show_id, ["A2", "A3"], y_id)
    assert exc_info.value.unavailable_seats == ["A2"]

    # The failed attempt left nothing behind
    occupied = await SeatLedger(service.session).occupied(show_id)
    assert set(occupied) == {"A1", "A2"}

    b2 = await service.reserve(show_id, ["A3"], y_id)
    assert b2.status == BookingStatus.PENDING

    occupied = await SeatLedger(service.session).occupied(show_id)
    assert occupied == {"A1": str(b1_id), "A2": str(b1_id), "A3": str(b2.id)}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "seats, reason",
    [
        ([], "no seats selected"),
        (["A1", "B2", "A1"], "duplicate seats"),
        (["A6"], "seats outside the show's seat map"),
        (["D1"], "seats outside the show's seat map"),
        (["a1"], "seats outside the show's seat map"),
    ],
)
async def test_reserve_rejects_invalid_selection(service, show, user, seats, reason):
    with pytest.raises(InvalidSeatSelectionError) as exc_info:
        await service.reserve(show.id, seats, user.id)
    assert reason in exc_info.value.message


@pytest.mark.asyncio
async def test_reserve_rejects_too_many_seats(service, show, user):
    seats = [f"{row}{number}" for row in "AB" for number in range(1, 6)] + ["C1"]

    with pytest.raises(InvalidSeatSelectionError):
        await service.reserve(show.id, seats, user.id)


@pytest.mark.asyncio
async def test_reserve_unknown_show(service, user, scheduler):
    with pytest.raises(ShowNotFoundError):
        await service.reserve(uuid4(), ["A1"], user.id)
    assert scheduler.scheduled == {}


@pytest.mark.asyncio
async def test_scheduling_failure_does_not_fail_reserve(db_session, show, user, notifier):
    class BrokenScheduler:
        def schedule_at(self, booking_id, fire_at):
            raise ConnectionError("broker unavailable")

        def cancel(self, booking_id):
            pass

    service = ReservationService(db_session, scheduler=BrokenScheduler(), notifier=notifier)
    booking = await service.reserve(show.id, ["B1"], user.id)

    assert booking.status == BookingStatus.PENDING


@pytest.mark.asyncio
async def test_confirm_payment(service, scheduler, notifier, show, user):
    booking = await service.reserve(show.id, ["A1", "A2"], user.id)

    paid = await service.confirm_payment(booking.id, payment_reference="pay_123")

    assert paid.status == BookingStatus.PAID
    assert paid.paid_at is not None
    assert paid.payment_reference == "pay_123"
    assert scheduler.cancelled == [booking.id]
    assert [event.type for event in notifier.events] == [NotificationType.BOOKING_CONFIRMED]
    assert notifier.events[0].data == {"booking_id": str(booking.id)}

    occupied = await SeatLedger(service.session).occupied(show.id)
    assert occupied == {"A1": str(booking.id), "A2": str(booking.id)}


@pytest.mark.asyncio
async def test_duplicate_confirmation_is_idempotent(service, notifier, show, user):
    booking = await service.reserve(show.id, ["A1"], user.id)
    await service.confirm_payment(booking.id)

    again = await service.confirm_payment(booking.id)

    assert again.status == BookingStatus.PAID
    assert len(notifier.events) == 1


@pytest.mark.asyncio
async def test_confirm_after_expiry(service, notifier, show, user):
    booking = await service.reserve(show.id, ["A1"], user.id)
    await service.expire(booking.id)

    with pytest.raises(BookingAlreadyExpiredError):
        await service.confirm_payment(booking.id)

    assert notifier.events == []
    assert await SeatLedger(service.session).occupied(show.id) == {}


@pytest.mark.asyncio
async def test_expire_releases_seats(service, scheduler, show, user):
    booking = await service.reserve(show.id, ["A1", "A2"], user.id)

    expired = await service.expire(booking.id)

    assert expired.status == BookingStatus.EXPIRED
    assert expired.expired_at is not None
    assert scheduler.cancelled == [booking.id]
    assert await SeatLedger(service.session).occupied(show.id) == {}


@pytest.mark.asyncio
async def test_duplicate_expiry_is_noop(service, show, users):
    """A second fire does not touch seats re-sold to someone else in between."""
    first = await service.reserve(show.id, ["A1"], users[0].id)
    await service.expire(first.id)
    second = await service.reserve(show.id, ["A1"], users[1].id)

    again = await service.expire(first.id)

    assert again.status == BookingStatus.EXPIRED
    assert await SeatLedger(service.session).occupied(show.id) == {"A1": str(second.id)}


@pytest.mark.asyncio
async def test_expire_after_payment_keeps_seats(service, show, user):
    booking = await service.reserve(show.id, ["A1", "A2"], user.id)
    await service.confirm_payment(booking.id)

    with pytest.raises(BookingAlreadyPaidError):
        await service.expire(booking.id)

    booking = await service.get_booking(booking.id)
    assert booking.status == BookingStatus.PAID
    assert set(await SeatLedger(service.session).occupied(show.id)) == {"A1", "A2"}


@pytest.mark.asyncio
async def test_unknown_booking(service):
    with pytest.raises(BookingNotFoundError):
        await service.confirm_payment(uuid4())

    with pytest.raises(BookingNotFoundError):
        await service.expire(uuid4())


@pytest.mark.asyncio
async def test_get_user_bookings_newest_first(service, show, user):
    older = await service.reserve(show.id, ["A1"], user.id)
    newer = await service.reserve(show.id, ["A2"], user.id)

    bookings = await service.get_user_bookings(user.id)

    assert [b.id for b in bookings] == [newer.id, older.id]
    assert bookings[0].show.movie.title == "Interstellar"


@pytest.mark.asyncio
async def test_purge_expired_bookings(service, show, user):
    expired = await service.reserve(show.id, ["A1"], user.id)
    await service.expire(expired.id)
    pending = await service.reserve(show.id, ["A2"], user.id)

    assert await service.purge_expired_bookings(utcnow() - timedelta(days=1)) == 0
    assert await service.purge_expired_bookings(utcnow() + timedelta(seconds=1)) == 1

    with pytest.raises(BookingNotFoundError):
        await service.get_booking(expired.id)
    assert (await service.get_booking(pending.id)).status == BookingStatus.PENDING


@pytest.mark.asyncio
async def test_concurrent_overlapping_reserves(session_factory, show, users, scheduler, notifier):
    """Each seat ends up with at most one booking, and the ledger holds exactly the winners' seats."""
    requests = [
        ["A1", "A2"],
        ["A2", "A3"],
        ["A3", "A4"],
        ["A4", "A5"],
        ["A1", "A5"],
        ["B1"],
    ]

    async def attempt(seats, user):
        async with session_factory() as session:
            service = ReservationService(session, scheduler=scheduler, notifier=notifier)
            try:
                return await service.reserve(show.id, seats, user.id)
            except (SeatsUnavailableError, LedgerWriteConflictError):
                return None

    results = await asyncio.gather(*[
        attempt(seats, users[i % len(users)]) for i, seats in enumerate(requests)
    ])
    winners = [booking for booking in results if booking is not None]

    claimed = [seat for booking in winners for seat in booking.seats]
    assert len(claimed) == len(set(claimed))
    assert "B1" in claimed

    async with session_factory() as session:
        occupied = await SeatLedger(session).occupied(show.id)

    assert occupied == {seat: str(booking.id) for booking in winners for seat in booking.seats}


@pytest.mark.asyncio
async def test_concurrent_confirm_and_expire(session_factory, show, user, scheduler, notifier):
    """Payment and expiry racing on one booking: exactly one terminal state wins."""
    async with session_factory() as session:
        booking = await ReservationService(session, scheduler=scheduler, notifier=notifier).reserve(
            show.id, ["A1", "A2"], user.id
        )

    async def confirm():
        async with session_factory() as session:
            return await ReservationService(session, scheduler=scheduler, notifier=notifier).confirm_payment(booking.id)

    async def expire():
        async with session_factory() as session:
            return await ReservationService(session, scheduler=scheduler, notifier=notifier).expire(booking.id)

    confirmed, expired = await asyncio.gather(confirm(), expire(), return_exceptions=True)

    async with session_factory() as session:
        final = await ReservationService(session, scheduler=scheduler, notifier=notifier).get_booking(booking.id)
        occupied = await SeatLedger(session).occupied(show.id)

    if final.status == BookingStatus.PAID:
        assert isinstance(expired, BookingAlreadyPaidError)
        assert confirmed.status == BookingStatus.PAID
        assert occupied == {"A1": str(booking.id), "A2": str(booking.id)}
    else:
        assert final.status == BookingStatus.EXPIRED
        assert isinstance(confirmed, BookingAlreadyExpiredError)
        assert expired.status == BookingStatus.EXPIRED
        assert occupied == {}
