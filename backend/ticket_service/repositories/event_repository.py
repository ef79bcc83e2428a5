"""
Event store backed by SQLAlchemy.

find_by_id_for_update is the linchpin of booking correctness: it serializes
every booking of one event into a queue of single-row transactions.

  - PostgreSQL: SELECT ... FOR UPDATE, bounded by SET LOCAL lock_timeout.
    A timeout surfaces as SQLSTATE 55P03 and becomes a CONTENTION failure.
  - SQLite: the owning unit of work takes an in-process lock on the event id
    first (see db.row_locks), then a plain SELECT.

Plain reads (find_by_id, find_all) never take a lock.
"""

from typing import Optional, Protocol, Sequence

from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession

from ticket_service.core.logging import get_logger
from ticket_service.db.errors import store_errors
from ticket_service.models.event import Event

logger = get_logger(__name__)


class RowLocker(Protocol):
    lock_timeout: float
    uses_native_row_locks: bool

    async def lock_row(self, key) -> None: ...


class EventRepository:
    def __init__(self, session: AsyncSession, row_locker: RowLocker):
        self.session = session
        self._row_locker = row_locker

    async def find_by_id(self, event_id: int) -> Optional[Event]:
        # Plain reads take no row lock, so a lock error here is a store failure
        async with store_errors():
            result = await self.session.execute(select(Event).where(Event.id == event_id))
            return result.scalar_one_or_none()

    async def find_by_id_for_update(self, event_id: int) -> Optional[Event]:
        await self._row_locker.lock_row(event_id)

        async with store_errors(event_id):
            if self.session.get_bind().dialect.name == "postgresql":
                timeout_ms = max(int(self._row_locker.lock_timeout * 1000), 1)
                await self.session.execute(text(f"SET LOCAL lock_timeout = '{timeout_ms}ms'"))

            result = await self.session.execute(
                select(Event)
                .where(Event.id == event_id)
                .with_for_update()
                # Always re-read: never trust a copy already in the identity map
                .execution_options(populate_existing=True)
            )
            event = result.scalar_one_or_none()

        logger.debug("event_locked", event_id=event_id, found=event is not None)
        return event

    async def save(self, event: Event) -> Event:
        async with store_errors(event.id):
            self.session.add(event)
            await self.session.flush()
        return event

    async def find_all(self) -> Sequence[Event]:
        async with store_errors():
            result = await self.session.execute(select(Event).order_by(Event.id))
            return list(result.scalars().all())

    async def create(self, event_name: str, available_tickets: int) -> Event:
        """Insert a new event. Used by the seed path, not by bookings."""
        if not event_name:
            raise ValueError("event_name must not be empty")
        if available_tickets < 0:
            raise ValueError("available_tickets must be non-negative")

        event = Event(event_name=event_name, available_tickets=available_tickets)
        async with store_errors():
            self.session.add(event)
            await self.session.flush()
            await self.session.refresh(event)

        logger.info("event_created", event_id=event.id, name=event.event_name, tickets=available_tickets)
        return event
