"""
Tests for the HTTP endpoints.
"""

from datetime import timedelta
from uuid import uuid4

import pytest
from httpx import AsyncClient

from movietime_booking.models.base import utcnow


async def reserve(client: AsyncClient, show, user, seats):
    return await client.post(
        "/api/v1/bookings",
        json={"show_id": str(show.id), "user_id": str(user.id), "seat_ids": seats},
    )


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert "X-Request-ID" in response.headers


@pytest.mark.asyncio
async def test_reserve_seats(client: AsyncClient, celery_calls, show, user):
    response = await reserve(client, show, user, ["A1", "A2"])

    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "pending"
    assert data["seats"] == ["A1", "A2"]
    assert float(data["amount"]) == 25.0
    assert data["expires_at"]
    assert [call["booking_id"] for call in celery_calls.scheduled] == [data["id"]]


@pytest.mark.asyncio
async def test_reserve_taken_seats_returns_conflict(client: AsyncClient, show, users):
    first = await reserve(client, show, users[0], ["A1", "A2"])
    assert first.status_code == 201

    response = await reserve(client, show, users[1], ["A2", "A3"])

    assert response.status_code == 409
    error = response.json()["error"]
    assert error["error_code"] == "SEATS_UNAVAILABLE"
    assert error["message"] == "Seats no longer available, please reselect"
    assert error["details"]["unavailable_seats"] == ["A2"]

    retry = await reserve(client, show, users[1], ["A3"])
    assert retry.status_code == 201


@pytest.mark.asyncio
async def test_reserve_validation(client: AsyncClient, show, user):
    empty = await reserve(client, show, user, [])
    assert empty.status_code == 422

    duplicate = await reserve(client, show, user, ["A1", "A1"])
    assert duplicate.status_code == 422
    assert duplicate.json()["error"]["error_code"] == "INVALID_SEAT_SELECTION"

    outside = await reserve(client, show, user, ["Z9"])
    assert outside.status_code == 422
    assert outside.json()["error"]["details"]["invalid_seats"] == ["Z9"]


@pytest.mark.asyncio
async def test_reserve_unknown_show(client: AsyncClient, user):
    response = await client.post(
        "/api/v1/bookings",
        json={"show_id": str(uuid4()), "user_id": str(user.id), "seat_ids": ["A1"]},
    )

    assert response.status_code == 404
    assert response.json()["error"]["error_code"] == "NOT_FOUND"


@pytest.mark.asyncio
async def test_payment_success(client: AsyncClient, celery_calls, show, user):
    booking_id = (await reserve(client, show, user, ["A1"])).json()["id"]

    response = await client.post(
        "/api/v1/payments/callback",
        json={"booking_id": booking_id, "outcome": "success", "payment_reference": "pay_1"},
    )

    assert response.status_code == 200
    assert response.json()["action"] == "confirmed"
    assert response.json()["status"] == "paid"
    assert celery_calls.revoked == [f"expire-booking-{booking_id}"]
    assert celery_calls.notifications == [{"type": "booking.confirmed", "data": {"booking_id": booking_id}}]

    booking = await client.get(f"/api/v1/bookings/{booking_id}")
    assert booking.json()["status"] == "paid"
    assert booking.json()["payment_reference"] == "pay_1"
    assert booking.json()["movie_title"] == "Interstellar"


@pytest.mark.asyncio
async def test_payment_failure_frees_seats(client: AsyncClient, show, user):
    booking_id = (await reserve(client, show, user, ["A1", "A2"])).json()["id"]

    response = await client.post(
        "/api/v1/payments/callback",
        json={"booking_id": booking_id, "outcome": "failure"},
    )

    assert response.status_code == 200
    assert response.json()["action"] == "released"

    seats = await client.get(f"/api/v1/shows/{show.id}/seats")
    assert seats.json()["occupied_seats"] == []
    assert seats.json()["available"] == 15


@pytest.mark.asyncio
async def test_payment_after_expiry_is_gone(client: AsyncClient, show, user):
    booking_id = (await reserve(client, show, user, ["A1"])).json()["id"]
    await client.post("/api/v1/payments/callback", json={"booking_id": booking_id, "outcome": "failure"})

    response = await client.post(
        "/api/v1/payments/callback",
        json={"booking_id": booking_id, "outcome": "success", "payment_reference": "pay_late"},
    )

    assert response.status_code == 410
    assert response.json()["action"] == "void"
    assert response.json()["message"] == "Hold expired, please rebook"


@pytest.mark.asyncio
async def test_payment_for_unknown_booking(client: AsyncClient):
    response = await client.post(
        "/api/v1/payments/callback",
        json={"booking_id": str(uuid4()), "outcome": "success"},
    )

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_user_bookings(client: AsyncClient, show, users):
    await reserve(client, show, users[0], ["A1"])
    await reserve(client, show, users[0], ["B1"])
    await reserve(client, show, users[1], ["C1"])

    response = await client.get(f"/api/v1/bookings/user/{users[0].id}")

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    assert [b["seats"] for b in data["bookings"]] == [["B1"], ["A1"]]


@pytest.mark.asyncio
async def test_create_show_announces_it(client: AsyncClient, celery_calls, movie):
    response = await client.post(
        "/api/v1/shows",
        json={
            "movie_id": str(movie.id),
            "show_time": (utcnow() + timedelta(days=1)).isoformat(),
            "price": "11.00",
            "seat_rows": "ABCD",
            "seats_per_row": 8,
        },
    )

    assert response.status_code == 201
    show_id = response.json()["id"]
    assert celery_calls.notifications == [{"type": "show.added", "data": {"movie_id": str(movie.id)}}]

    seats = await client.get(f"/api/v1/shows/{show_id}/seats")
    assert seats.json() == {"show_id": show_id, "occupied_seats": [], "capacity": 32, "available": 32}


@pytest.mark.asyncio
async def test_create_show_for_unknown_movie(client: AsyncClient, celery_calls):
    response = await client.post(
        "/api/v1/shows",
        json={"movie_id": str(uuid4()), "show_time": utcnow().isoformat(), "price": "10.00"},
    )

    assert response.status_code == 404
    assert response.json()["error"]["details"]["resource_type"] == "movie"
    assert celery_calls.notifications == []
