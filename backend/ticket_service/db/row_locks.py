"""
Key-partitioned in-process row locks.

PostgreSQL serializes bookings with SELECT ... FOR UPDATE. SQLite has no row
locks, so for that dialect every unit of work takes an asyncio.Lock per event
id before reading the row, and holds it until the transaction ends. This
gives the same queue-per-event behaviour inside a single process.

Locks are reference counted and dropped once nobody holds or waits on them,
so the registry does not grow with the number of events ever booked.
"""

import asyncio
import time
from typing import Callable, Hashable

from ticket_service.core.metrics import row_lock_wait


class RowLockTimeout(Exception):
    """The lock for a key was not acquired within the timeout."""

    def __init__(self, key: Hashable, timeout: float):
        super().__init__(f"Lock for {key!r} not acquired within {timeout}s")
        self.key = key
        self.timeout = timeout


class RowLockRegistry:
    def __init__(self):
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._users: dict[Hashable, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    def is_locked(self, key: Hashable) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    async def acquire(self, key: Hashable, timeout: float) -> Callable[[], None]:
        """
        Wait for the lock on `key` and return a callable that releases it.
        Raises RowLockTimeout if the lock is not acquired within `timeout`.
        """
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._users[key] = self._users.get(key, 0) + 1

        start = time.perf_counter()
        try:
            await asyncio.wait_for(lock.acquire(), timeout)
        except asyncio.TimeoutError:
            self._forget(key)
            raise RowLockTimeout(key, timeout) from None
        except BaseException:
            self._forget(key)
            raise
        finally:
            row_lock_wait.observe(time.perf_counter() - start)

        released = False

        def release() -> None:
            nonlocal released
            if released:
                return
            released = True
            lock.release()
            self._forget(key)

        return release

    def _forget(self, key: Hashable) -> None:
        remaining = self._users[key] - 1
        if remaining:
            self._users[key] = remaining
        else:
            del self._users[key]
            del self._locks[key]
