"""
Unit of work: one session, one transaction.

    async with UnitOfWork(session_factory, row_locks) as uow:
        event = await uow.events.find_by_id_for_update(event_id)
        ...

Leaving the block normally commits; leaving it with an exception rolls back.
Either way the session is closed and every in-process row lock taken during
the transaction is released, after the commit or rollback has finished.
"""

from typing import Callable, Hashable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ticket_service.core.config import get_settings
from ticket_service.core.errors import ServiceError
from ticket_service.core.logging import get_logger
from ticket_service.db.errors import classify_store_error
from ticket_service.db.row_locks import RowLockRegistry, RowLockTimeout
from ticket_service.repositories.event_repository import EventRepository

logger = get_logger(__name__)

# Dialects without SELECT ... FOR UPDATE
IN_PROCESS_LOCK_DIALECTS = {"sqlite"}


class UnitOfWork:
    events: EventRepository

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        row_locks: RowLockRegistry,
        lock_timeout: Optional[float] = None,
    ):
        self._session_factory = session_factory
        self._row_locks = row_locks
        self.lock_timeout = (
            lock_timeout if lock_timeout is not None else get_settings().LOCK_TIMEOUT_SECONDS
        )
        self.session: Optional[AsyncSession] = None
        self._releases: list[Callable[[], None]] = []
        self._locked_keys: list[Hashable] = []

    async def __aenter__(self) -> "UnitOfWork":
        if self.session is not None:
            raise RuntimeError("UnitOfWork is not reentrant")
        self.session = self._session_factory()
        self.events = EventRepository(self.session, self)
        return self

    async def __aexit__(self, exc_type, exc, tb):
        try:
            if exc_type is None:
                await self.commit()
            else:
                await self.rollback()
        finally:
            await self.session.close()
            self.session = None
            self._release_row_locks()

    @property
    def dialect_name(self) -> str:
        return self.session.get_bind().dialect.name

    @property
    def uses_native_row_locks(self) -> bool:
        return self.dialect_name not in IN_PROCESS_LOCK_DIALECTS

    async def lock_row(self, key: Hashable) -> None:
        """
        Take the in-process lock for `key` when the dialect has no row locks.
        Native dialects lock inside the SELECT itself, so this is a no-op.
        """
        if self.uses_native_row_locks:
            self._locked_keys.append(key)
            return
        try:
            release = await self._row_locks.acquire(key, self.lock_timeout)
        except RowLockTimeout:
            logger.warning("row_lock_timeout", key=key, timeout=self.lock_timeout, source="in_process")
            raise ServiceError.contention(key)
        self._releases.append(release)
        self._locked_keys.append(key)

    async def commit(self) -> None:
        try:
            await self.session.commit()
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise classify_store_error(exc, self._last_locked_key()) from exc

    async def rollback(self) -> None:
        await self.session.rollback()

    def _last_locked_key(self) -> Optional[Hashable]:
        return self._locked_keys[-1] if self._locked_keys else None

    def _release_row_locks(self) -> None:
        releases, self._releases = self._releases, []
        self._locked_keys = []
        for release in reversed(releases):
            release()
