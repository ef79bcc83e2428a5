"""
Schema creation and demo data for local runs.

Production schemas are managed by Alembic (see alembic/versions); these
helpers exist for development, tests and the optional startup hooks.
"""

from typing import Callable, Iterable

from sqlalchemy.ext.asyncio import AsyncEngine

from ticket_service.core.logging import get_logger
from ticket_service.db.base import Base
from ticket_service.db.unit_of_work import UnitOfWork
from ticket_service.models import Event  # noqa: F401 - register table on Base.metadata

logger = get_logger(__name__)

DEMO_EVENTS = (
    ("AWS Cloud Summit", 100),
    ("PyCon Keynote", 250),
    ("Jazz Night at the Pier", 80),
)


async def create_tables(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("tables_created")


async def drop_tables(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


async def seed_events(
    uow_factory: Callable[[], UnitOfWork],
    events: Iterable[tuple[str, int]] = DEMO_EVENTS,
) -> int:
    """Insert `events` when the table is empty. Returns the number inserted."""
    async with uow_factory() as uow:
        if await uow.events.find_all():
            logger.info("seed_skipped", reason="events_exist")
            return 0

        inserted = 0
        for name, tickets in events:
            await uow.events.create(name, tickets)
            inserted += 1

    logger.info("seed_completed", events=inserted)
    return inserted
