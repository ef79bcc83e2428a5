"""
Concurrent booking tests.

Scenario:
- An event starts with 100 tickets.
- 20 callers book 10 tickets each at the same time (200 requested).

Expected:
- Exactly 10 callers succeed and exactly 10 fail with INSUFFICIENT_INVENTORY.
- The stored count ends at 0, never negative.
"""

import asyncio

import pytest
from httpx import AsyncClient

from ticket_service.core.errors import FailureKind, ServiceError
from ticket_service.db.unit_of_work import UnitOfWork
from ticket_service.services.booking_service import BookingReceipt, book_tickets

CALLERS = 20
TICKETS_PER_CALLER = 10


@pytest.mark.asyncio
@pytest.mark.parametrize("run", range(3))
async def test_concurrent_booking_never_oversells(uow_factory, row_locks, test_event, stored_tickets, run):
    results = await asyncio.gather(
        *(book_tickets(uow_factory(), test_event.id, TICKETS_PER_CALLER) for _ in range(CALLERS)),
        return_exceptions=True,
    )

    successes = [r for r in results if isinstance(r, BookingReceipt)]
    failures = [r for r in results if isinstance(r, ServiceError)]

    assert len(successes) == 10
    assert len(failures) == 10
    assert all(f.kind is FailureKind.INSUFFICIENT_INVENTORY for f in failures)
    assert sorted(r.remaining for r in successes) == list(range(0, 100, 10))
    assert await stored_tickets(test_event.id) == 0
    assert len(row_locks) == 0


@pytest.mark.asyncio
async def test_concurrent_uneven_requests(uow_factory, test_event, stored_tickets):
    counts = [7, 13, 25, 40, 3, 30, 11, 9, 50, 1]
    results = await asyncio.gather(
        *(book_tickets(uow_factory(), test_event.id, c) for c in counts),
        return_exceptions=True,
    )

    booked = sum(r.booked for r in results if isinstance(r, BookingReceipt))
    assert booked <= 100
    assert await stored_tickets(test_event.id) == 100 - booked
    assert all(
        isinstance(r, BookingReceipt) or r.kind is FailureKind.INSUFFICIENT_INVENTORY
        for r in results
    )


@pytest.mark.asyncio
async def test_bookings_for_different_events_do_not_interfere(
    uow_factory, test_event, sold_out_event, stored_tickets
):
    async with uow_factory() as uow:
        other = await uow.events.create("Other Show", 50)

    results = await asyncio.gather(
        *(book_tickets(uow_factory(), test_event.id, 5) for _ in range(10)),
        *(book_tickets(uow_factory(), other.id, 5) for _ in range(10)),
    )

    assert len(results) == 20
    assert await stored_tickets(test_event.id) == 50
    assert await stored_tickets(other.id) == 0
    assert await stored_tickets(sold_out_event.id) == 0


@pytest.mark.asyncio
async def test_lock_timeout_reports_contention(session_factory, row_locks, uow_factory, test_event, stored_tickets):
    """A booking that cannot get the row lock fails with CONTENTION and writes nothing."""
    async with uow_factory() as holder:
        locked = await holder.events.find_by_id_for_update(test_event.id)
        assert locked.available_tickets == 100

        impatient = UnitOfWork(session_factory, row_locks, lock_timeout=0.2)
        with pytest.raises(ServiceError) as exc_info:
            await book_tickets(impatient, test_event.id, 10)

    error = exc_info.value
    assert error.kind is FailureKind.CONTENTION
    assert error.retryable
    assert await stored_tickets(test_event.id) == 100

    # The lock is free again, so a retry goes through
    receipt = await book_tickets(uow_factory(), test_event.id, 10)
    assert receipt.remaining == 90


@pytest.mark.asyncio
async def test_reads_do_not_wait_for_booking_lock(uow_factory, test_event):
    async with uow_factory() as holder:
        await holder.events.find_by_id_for_update(test_event.id)

        async with uow_factory() as reader:
            event = await asyncio.wait_for(reader.events.find_by_id(test_event.id), timeout=2)

    assert event.available_tickets == 100


@pytest.mark.asyncio
async def test_concurrent_http_bookings(client: AsyncClient, test_event):
    responses = await asyncio.gather(
        *(
            client.post(f"/tickets/{test_event.id}/book", params={"count": TICKETS_PER_CALLER})
            for _ in range(CALLERS)
        )
    )

    statuses = sorted(r.status_code for r in responses)
    assert statuses == [200] * 10 + [400] * 10

    final = await client.get(f"/tickets/{test_event.id}")
    assert final.json()["availableTickets"] == 0
