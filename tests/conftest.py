"""
Pytest configuration and fixtures for queue monitor tests.

Provides:
- Async test database with SQLite
- Test client for API testing
- Factory fixtures for creating monitor records
"""

import os

# Must be set before queue_monitor builds its settings and engine
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import uuid
from collections.abc import AsyncGenerator
from datetime import datetime

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import StaticPool
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from queue_monitor.core.database import get_db
from queue_monitor.core.datetime_utils import format_exact, truncate_to_second
from queue_monitor.main import app
from queue_monitor.models import Base, Monitor, MonitorStatus
from queue_monitor.services.retry_dispatch import (
    NullRetryDispatcher,
    get_retry_dispatcher,
    reset_retry_dispatcher,
)

# Test database URL (in-memory SQLite)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def db_engine():
    """Create async test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine (for trackers and dispatchers)."""
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create async database session for tests."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def retry_dispatcher() -> NullRetryDispatcher:
    """Dispatcher used by the API under test."""
    return NullRetryDispatcher()


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession, retry_dispatcher
) -> AsyncGenerator[AsyncClient, None]:
    """Create async test client with database and dispatcher overrides."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_retry_dispatcher] = lambda: retry_dispatcher

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    reset_retry_dispatcher()


# ============================================================================
# Factory Fixtures
# ============================================================================


def build_monitor(
    job_id: str = "send-invoice",
    status: MonitorStatus = MonitorStatus.RUNNING,
    started_at: datetime | None = None,
    finished_at: datetime | None = None,
    exact: bool = True,
    **fields,
) -> Monitor:
    """Build an unsaved monitor, stamping coarse and exact timestamps."""
    monitor = Monitor(job_id=job_id, status=status, **fields)
    if started_at is not None:
        monitor.started_at = truncate_to_second(started_at)
        monitor.started_at_exact = format_exact(started_at) if exact else None
    if finished_at is not None:
        monitor.finished_at = truncate_to_second(finished_at)
        monitor.finished_at_exact = format_exact(finished_at) if exact else None
    return monitor


@pytest_asyncio.fixture
async def monitor_factory(db_session: AsyncSession):
    """Factory for creating persisted monitor records."""

    async def _create_monitor(**kwargs) -> Monitor:
        kwargs.setdefault("job_uuid", str(uuid.uuid4()))
        monitor = build_monitor(**kwargs)
        db_session.add(monitor)
        await db_session.flush()
        return monitor

    return _create_monitor


@pytest.fixture
def monitor_builder():
    """Builder for unsaved monitor records."""
    return build_monitor
