"""
Booking service with concurrency-safe ticket decrement.

CONCURRENCY STRATEGY: Pessimistic Row Lock
==========================================

Problem:
  Two callers book the last tickets of an event at the same time.
  Both read available_tickets=10, both decrement by 10, both succeed.
  Result: Overselling.

Solution:
  Every booking runs as one unit of work:

  1. Read the event row with an exclusive lock (SELECT ... FOR UPDATE)
  2. Check available_tickets >= count
  3. available_tickets -= count, flush
  4. Commit, which releases the lock

  A second booking of the same event blocks at step 1 until the first one
  commits or rolls back, then reads the committed value. Bookings for one
  event are therefore linearizable; bookings for different events never
  wait on each other.

  A caller that cannot get the lock within LOCK_TIMEOUT_SECONDS fails with
  CONTENTION. Nothing was written, so the caller may retry. This service
  never retries on its own.

  The DB CHECK constraint (available_tickets >= 0) is the final safety net.
"""

import time
from dataclasses import dataclass

from ticket_service.core.errors import FailureKind, ServiceError
from ticket_service.core.logging import get_logger
from ticket_service.core.metrics import booking_latency, record_booking_attempt, tickets_booked
from ticket_service.db.unit_of_work import UnitOfWork

logger = get_logger(__name__)


@dataclass(frozen=True)
class BookingReceipt:
    event_id: int
    booked: int
    remaining: int

    @property
    def message(self) -> str:
        return f"Successfully booked {self.booked} tickets for event ID {self.event_id}"


def _validate_count(count) -> None:
    if isinstance(count, bool) or not isinstance(count, int) or count <= 0:
        raise ServiceError.invalid_request("Number of tickets to book must be positive.")


async def book_tickets(uow: UnitOfWork, event_id: int, count: int) -> BookingReceipt:
    """
    Book `count` tickets for `event_id` inside one locked transaction.

    Raises ServiceError tagged INVALID_REQUEST (before touching the store),
    NOT_FOUND, INSUFFICIENT_INVENTORY, CONTENTION or STORE_FAILURE. On any
    failure the transaction is rolled back and the stored count is unchanged.
    """
    try:
        _validate_count(count)
    except ServiceError as exc:
        logger.warning("booking_rejected_invalid", event_id=event_id, count=count)
        record_booking_attempt(exc.kind.value)
        raise

    logger.info("booking_attempt", event_id=event_id, count=count)
    start = time.perf_counter()

    try:
        async with uow:
            event = await uow.events.find_by_id_for_update(event_id)

            if event is None:
                logger.warning("booking_event_not_found", event_id=event_id)
                raise ServiceError.not_found(event_id)

            logger.debug(
                "booking_event_locked",
                event_id=event_id,
                name=event.event_name,
                available=event.available_tickets,
            )

            if event.available_tickets < count:
                logger.warning(
                    "booking_rejected_insufficient",
                    event_id=event_id,
                    requested=count,
                    available=event.available_tickets,
                )
                raise ServiceError.insufficient_inventory(event_id, count, event.available_tickets)

            event.available_tickets -= count
            await uow.events.save(event)
            remaining = event.available_tickets
        # Leaving the block committed the decrement and released the lock
    except ServiceError as exc:
        record_booking_attempt(exc.kind.value)
        if exc.kind is FailureKind.CONTENTION:
            logger.info("booking_contention", event_id=event_id, count=count)
        raise
    finally:
        booking_latency.observe(time.perf_counter() - start)

    record_booking_attempt("success")
    tickets_booked.inc(count)
    logger.info("booking_succeeded", event_id=event_id, booked=count, remaining=remaining)
    return BookingReceipt(event_id=event_id, booked=count, remaining=remaining)
