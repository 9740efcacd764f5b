"""Shared test configuration and fixtures.

Uses a transactional rollback strategy per test for full isolation:
- Each test gets its own transaction that rolls back after the test.
- Set ``TEST_DATABASE_URL`` to run against PostgreSQL; the default is an
  in-memory SQLite database.
"""

import os
import uuid
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from showings.api.deps import get_calendar_sync
from showings.auth.jwt import create_token_pair
from showings.calendar.provider import BusySlot
from showings.calendar.sync import SyncJob
from showings.database import Base, get_db
from showings.main import app
from showings.models import GoogleCalendarToken, Lot, ManagerAssignment, Park, User  # noqa: F401

# ---------------------------------------------------------------------------
# Test database engine
# ---------------------------------------------------------------------------

_test_db_url = os.environ.get("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")


def _make_engine():
    if _test_db_url.startswith("sqlite"):
        # One shared connection so every session sees the same in-memory database
        return create_async_engine(
            _test_db_url,
            echo=False,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_async_engine(_test_db_url, echo=False, pool_pre_ping=True)


# ---------------------------------------------------------------------------
# Session-scoped: create / drop all tables once per test session
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture(scope="session", loop_scope="session")
async def test_engine():
    """Create a session-scoped engine tied to the session event loop."""
    engine = _make_engine()
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture(scope="session", loop_scope="session")
async def setup_test_db(test_engine):
    """Create all tables at the start of the session and drop them at the end."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


# ---------------------------------------------------------------------------
# Per-test: transactional rollback for isolation
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def db_session(test_engine, setup_test_db) -> AsyncGenerator[AsyncSession, None]:
    """Yield an async session wrapped in a transaction that always rolls back.

    ``session.commit()`` inside the code under test only releases the
    session's own work; the outer transaction still rolls back.
    """
    async with test_engine.connect() as connection:
        transaction = await connection.begin()
        session = AsyncSession(bind=connection, expire_on_commit=False)

        try:
            yield session
        finally:
            await session.close()
            await transaction.rollback()


@pytest.fixture
def session_factory(db_session: AsyncSession):
    """Session factory for the sync worker and credential store that reuses the test session."""

    @asynccontextmanager
    async def factory() -> AsyncIterator[AsyncSession]:
        yield db_session

    return factory


# ---------------------------------------------------------------------------
# Calendar sync double
# ---------------------------------------------------------------------------


class RecordingCalendarSync:
    """Stands in for ``CalendarSyncWorker`` in API tests and records submitted jobs."""

    def __init__(self) -> None:
        self.jobs: list[SyncJob] = []
        self.accept = True
        self.busy: list[BusySlot] | None = None
        self.busy_error: Exception | None = None

    def submit(self, job: SyncJob) -> bool:
        if not self.accept:
            return False
        self.jobs.append(job)
        return True

    async def busy_slots(self, owner_id: uuid.UUID, start: datetime, end: datetime) -> list[BusySlot] | None:
        if self.busy_error is not None:
            raise self.busy_error
        return self.busy


@pytest.fixture
def calendar_sync() -> RecordingCalendarSync:
    return RecordingCalendarSync()


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession, calendar_sync: RecordingCalendarSync
) -> AsyncGenerator[AsyncClient, None]:
    """Provide an httpx AsyncClient wired to the test DB session and the recording sync."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_calendar_sync] = lambda: calendar_sync

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Convenience fixtures: users and auth headers
# ---------------------------------------------------------------------------


async def _make_user(db: AsyncSession, role: str, prefix: str) -> User:
    unique = uuid.uuid4().hex[:8]
    user = User(
        email=f"{prefix}-{unique}@test.com",
        full_name=f"Test {prefix.title()}",
        role=role,
        is_active=True,
    )
    db.add(user)
    await db.flush()
    await db.refresh(user)
    return user


def _headers(user: User) -> dict[str, str]:
    tokens = create_token_pair(str(user.id))
    return {"Authorization": f"Bearer {tokens['access_token']}"}


@pytest_asyncio.fixture
async def test_manager(db_session: AsyncSession) -> User:
    return await _make_user(db_session, "MANAGER", "manager")


@pytest_asyncio.fixture
async def other_manager(db_session: AsyncSession) -> User:
    """A manager with no assignment to the test park."""
    return await _make_user(db_session, "MANAGER", "outsider")


@pytest_asyncio.fixture
async def test_admin(db_session: AsyncSession) -> User:
    return await _make_user(db_session, "ADMIN", "admin")


@pytest_asyncio.fixture
async def auth_headers(test_manager: User) -> dict[str, str]:
    """Authorization headers for the park's manager."""
    return _headers(test_manager)


@pytest_asyncio.fixture
async def other_headers(other_manager: User) -> dict[str, str]:
    return _headers(other_manager)


@pytest_asyncio.fixture
async def admin_headers(test_admin: User) -> dict[str, str]:
    return _headers(test_admin)


# ---------------------------------------------------------------------------
# Convenience fixtures: park, lot, assignment
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def test_park(db_session: AsyncSession, test_manager: User) -> Park:
    """A park with ``test_manager`` assigned to it."""
    park = Park(name="Sunset Palms", city="Mesa", state="AZ")
    db_session.add(park)
    await db_session.flush()
    db_session.add(ManagerAssignment(user_id=test_manager.id, park_id=park.id))
    await db_session.flush()
    return park


@pytest_asyncio.fixture
async def test_lot(db_session: AsyncSession, test_park: Park) -> Lot:
    lot = Lot(park_id=test_park.id, name_or_number="A-12")
    db_session.add(lot)
    await db_session.flush()
    await db_session.refresh(lot)
    return lot


@pytest_asyncio.fixture
async def unmanaged_lot(db_session: AsyncSession) -> Lot:
    """A lot in a park nobody manages."""
    park = Park(name="Orphan Acres")
    db_session.add(park)
    await db_session.flush()
    lot = Lot(park_id=park.id, name_or_number="Z-1")
    db_session.add(lot)
    await db_session.flush()
    await db_session.refresh(lot)
    return lot


@pytest.fixture
def base_time() -> datetime:
    """Tomorrow at 10:00 UTC; tests build windows relative to it."""
    tomorrow = datetime.now(timezone.utc) + timedelta(days=1)
    return tomorrow.replace(hour=10, minute=0, second=0, microsecond=0)


@pytest_asyncio.fixture
async def calendar_token(db_session: AsyncSession, test_manager: User) -> GoogleCalendarToken:
    """A fresh Google token for ``test_manager``."""
    token = GoogleCalendarToken(
        user_id=test_manager.id,
        access_token="access-fresh",
        refresh_token="refresh-1",
        expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
        scope="https://www.googleapis.com/auth/calendar",
    )
    db_session.add(token)
    await db_session.flush()
    return token
