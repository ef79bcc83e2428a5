"""
Read-only event queries. No row locks are taken here.
"""

from ticket_service.core.errors import ServiceError
from ticket_service.core.logging import get_logger
from ticket_service.db.unit_of_work import UnitOfWork
from ticket_service.models.event import Event

logger = get_logger(__name__)


async def list_events(uow: UnitOfWork) -> list[Event]:
    """All events in store order. Empty list when there are none."""
    async with uow:
        events = await uow.events.find_all()
    logger.info("events_listed", count=len(events))
    return list(events)


async def get_event(uow: UnitOfWork, event_id: int) -> Event:
    """Get a single event by ID."""
    async with uow:
        event = await uow.events.find_by_id(event_id)

    if event is None:
        logger.warning("event_not_found", event_id=event_id)
        raise ServiceError.not_found(event_id)
    return event
