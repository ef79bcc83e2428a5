"""
Tests for the in-process row lock registry.
"""

import asyncio

import pytest

from ticket_service.db.row_locks import RowLockRegistry, RowLockTimeout


@pytest.mark.asyncio
async def test_acquire_and_release():
    registry = RowLockRegistry()

    release = await registry.acquire(1, timeout=1)
    assert registry.is_locked(1)

    release()
    assert not registry.is_locked(1)
    assert len(registry) == 0


@pytest.mark.asyncio
async def test_release_is_idempotent():
    registry = RowLockRegistry()
    release = await registry.acquire(1, timeout=1)

    release()
    release()

    assert len(registry) == 0


@pytest.mark.asyncio
async def test_timeout_when_held():
    registry = RowLockRegistry()
    release = await registry.acquire("event-1", timeout=1)

    with pytest.raises(RowLockTimeout) as exc_info:
        await registry.acquire("event-1", timeout=0.05)

    assert exc_info.value.key == "event-1"
    # The timed-out waiter does not leak, the holder still owns the lock
    assert registry.is_locked("event-1")
    release()
    assert len(registry) == 0


@pytest.mark.asyncio
async def test_keys_are_independent():
    registry = RowLockRegistry()
    release_a = await registry.acquire(1, timeout=1)

    release_b = await asyncio.wait_for(registry.acquire(2, timeout=1), timeout=1)

    assert registry.is_locked(1) and registry.is_locked(2)
    release_a()
    release_b()


@pytest.mark.asyncio
async def test_waiters_run_one_at_a_time():
    registry = RowLockRegistry()
    active = 0
    peak = 0

    async def critical_section():
        nonlocal active, peak
        release = await registry.acquire(1, timeout=5)
        try:
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1
        finally:
            release()

    await asyncio.gather(*(critical_section() for _ in range(10)))

    assert peak == 1
    assert len(registry) == 0
