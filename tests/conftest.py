"""
Pytest fixtures for the test database, Celery boundaries and HTTP client.

Each test gets its own SQLite file so concurrent sessions behave like
separate connections to a real database.
"""

from datetime import timedelta
from decimal import Decimal
from typing import AsyncGenerator, List

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from movietime_booking import database
from movietime_booking.main import app
from movietime_booking.models import Movie, Show, User
from movietime_booking.models.base import utcnow
from movietime_booking.tasks.booking_tasks import expire_booking_task
from movietime_booking.tasks.celery_app import celery_app
from movietime_booking.tasks.notification_tasks import deliver_notification_task


class RecordingScheduler:
    """Stands in for the expiry scheduler and records what it was asked to do."""

    def __init__(self):
        self.scheduled = {}
        self.cancelled = []

    def schedule_at(self, booking_id, fire_at):
        self.scheduled[booking_id] = fire_at
        return f"expire-booking-{booking_id}"

    def cancel(self, booking_id):
        self.cancelled.append(booking_id)


class RecordingNotifier:
    """Collects published notification events."""

    def __init__(self):
        self.events = []

    def publish(self, event):
        self.events.append(event)


class CeleryCalls:
    """Calls that would have gone to the broker."""

    def __init__(self):
        self.scheduled = []
        self.revoked = []
        self.notifications = []


@pytest_asyncio.fixture(scope="function")
async def db_engine(tmp_path):
    """Create tables in a fresh SQLite file and point the app at it."""
    await database.init_database(f"sqlite+aiosqlite:///{tmp_path / 'movietime.db'}")
    yield database.engine
    await database.close_database()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    async with database.async_session_factory() as session:
        yield session


@pytest.fixture
def session_factory(db_engine):
    """Factory for extra sessions, one per simulated concurrent request."""
    return database.async_session_factory


@pytest.fixture(autouse=True)
def celery_calls(monkeypatch) -> CeleryCalls:
    """Keep every test off the broker while recording what was sent."""
    calls = CeleryCalls()

    def fake_apply_async(args=None, kwargs=None, eta=None, task_id=None, **options):
        calls.scheduled.append({"booking_id": args[0], "eta": eta, "task_id": task_id})

    def fake_revoke(task_id, **options):
        calls.revoked.append(task_id)

    def fake_delay(event_data):
        calls.notifications.append(event_data)

    monkeypatch.setattr(expire_booking_task, "apply_async", fake_apply_async)
    monkeypatch.setattr(celery_app.control, "revoke", fake_revoke)
    monkeypatch.setattr(deliver_notification_task, "delay", fake_delay)
    return calls


@pytest.fixture
def scheduler() -> RecordingScheduler:
    return RecordingScheduler()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest_asyncio.fixture(scope="function")
async def client(db_engine) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app using the test database."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def movie(db_session: AsyncSession) -> Movie:
    movie = Movie(title="Interstellar", overview="A team travels through a wormhole.", runtime_minutes=169)
    db_session.add(movie)
    await db_session.commit()
    return movie


@pytest_asyncio.fixture
async def users(db_session: AsyncSession) -> List[User]:
    users = [
        User(name="Alice", email="alice@example.com"),
        User(name="Bob", email="bob@example.com"),
        User(name="Carol", email="carol@example.com"),
    ]
    db_session.add_all(users)
    await db_session.commit()
    return users


@pytest_asyncio.fixture
async def user(users: List[User]) -> User:
    return users[0]


@pytest_asyncio.fixture
async def show(db_session: AsyncSession, movie: Movie) -> Show:
    """A show four hours from now with rows A-C of five seats each."""
    show = Show(
        movie_id=movie.id,
        show_time=utcnow() + timedelta(hours=4),
        price=Decimal("12.50"),
        seat_rows="ABC",
        seats_per_row=5,
        occupied_seats={},
        version=1,
    )
    db_session.add(show)
    await db_session.commit()
    return show
