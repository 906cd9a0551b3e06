"""
Tests for payment callbacks.
"""

from uuid import uuid4

import pytest

from movietime_booking.models import BookingStatus
from movietime_booking.services.payment_gate import PaymentAction, PaymentGate, PaymentOutcome
from movietime_booking.services.reservation_service import ReservationService
from movietime_booking.services.seat_ledger import SeatLedger
from movietime_booking.utils.exceptions import BookingNotFoundError


@pytest.fixture
def reservations(db_session, scheduler, notifier):
    return ReservationService(db_session, scheduler=scheduler, notifier=notifier)


@pytest.fixture
def gate(reservations):
    return PaymentGate(reservations)


@pytest.mark.asyncio
async def test_success_confirms_booking(gate, reservations, show, user):
    booking = await reservations.reserve(show.id, ["A1", "A2"], user.id)

    result = await gate.handle_callback(booking.id, PaymentOutcome.SUCCESS, "pay_42")

    assert result.action == PaymentAction.CONFIRMED
    assert result.status == BookingStatus.PAID
    assert (await reservations.get_booking(booking.id)).payment_reference == "pay_42"


@pytest.mark.asyncio
async def test_failure_releases_seats_immediately(gate, reservations, show, user):
    booking = await reservations.reserve(show.id, ["A1", "A2"], user.id)

    result = await gate.handle_callback(booking.id, PaymentOutcome.FAILURE)

    assert result.action == PaymentAction.RELEASED
    assert result.status == BookingStatus.EXPIRED
    assert await SeatLedger(reservations.session).occupied(show.id) == {}


@pytest.mark.asyncio
async def test_success_after_expiry_is_voided(gate, reservations, notifier, show, user):
    booking = await reservations.reserve(show.id, ["A1"], user.id)
    await reservations.expire(booking.id)

    result = await gate.handle_callback(booking.id, PaymentOutcome.SUCCESS, "pay_late")

    assert result.action == PaymentAction.VOID
    assert result.status == BookingStatus.EXPIRED
    assert notifier.events == []


@pytest.mark.asyncio
async def test_failure_after_payment_is_ignored(gate, reservations, show, user):
    booking = await reservations.reserve(show.id, ["A1"], user.id)
    await reservations.confirm_payment(booking.id)

    result = await gate.handle_callback(booking.id, PaymentOutcome.FAILURE)

    assert result.action == PaymentAction.NONE
    assert result.status == BookingStatus.PAID
    assert await SeatLedger(reservations.session).occupied(show.id) == {"A1": str(booking.id)}


@pytest.mark.asyncio
async def test_unknown_booking(gate):
    with pytest.raises(BookingNotFoundError):
        await gate.handle_callback(uuid4(), PaymentOutcome.SUCCESS)
