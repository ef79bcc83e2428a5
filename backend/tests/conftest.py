"""
Pytest fixtures for test database, units of work and the HTTP client.

Tests run against TEST_DATABASE_URL when set (e.g. a PostgreSQL database,
exercising real SELECT ... FOR UPDATE), otherwise against a fresh SQLite
file per test, where bookings are serialized by the in-process row locks.
"""

import os

os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("ENVIRONMENT", "test")

from typing import AsyncGenerator, Callable

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from ticket_service.main import app
from ticket_service.db.init_db import create_tables, drop_tables
from ticket_service.db.row_locks import RowLockRegistry
from ticket_service.db.session import build_engine, build_session_factory, get_uow
from ticket_service.db.unit_of_work import UnitOfWork
from ticket_service.models.event import Event


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Create tables, yield engine, then drop tables for isolation."""
    url = os.environ.get("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path / 'tickets.db'}"
    engine = build_engine(url)
    await drop_tables(engine)
    await create_tables(engine)

    yield engine

    await drop_tables(engine)
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return build_session_factory(engine)


@pytest.fixture
def row_locks() -> RowLockRegistry:
    return RowLockRegistry()


@pytest.fixture
def uow_factory(session_factory, row_locks) -> Callable[[], UnitOfWork]:
    def make_uow() -> UnitOfWork:
        return UnitOfWork(session_factory, row_locks, lock_timeout=5.0)

    return make_uow


@pytest_asyncio.fixture
async def client(uow_factory) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client that overrides the unit-of-work dependency with the test database."""
    app.dependency_overrides[get_uow] = uow_factory

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def test_event(uow_factory) -> Event:
    """Create a test event with 100 tickets."""
    async with uow_factory() as uow:
        event = await uow.events.create("Test Concert", 100)
    return event


@pytest_asyncio.fixture
async def sold_out_event(uow_factory) -> Event:
    """Create a test event with no tickets left."""
    async with uow_factory() as uow:
        event = await uow.events.create("Sold Out Show", 0)
    return event


@pytest.fixture
def stored_tickets(uow_factory):
    """Read the committed ticket count of an event through a fresh unit of work."""

    async def read(event_id: int) -> int:
        async with uow_factory() as uow:
            event = await uow.events.find_by_id(event_id)
        return event.available_tickets

    return read
