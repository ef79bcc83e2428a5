"""
Ticket endpoints: event listing, event details and booking.
"""

from fastapi import APIRouter, Depends, Query

from ticket_service.db.session import get_uow
from ticket_service.db.unit_of_work import UnitOfWork
from ticket_service.schemas.booking import BookingResponse, ErrorResponse
from ticket_service.schemas.event import EventResponse
from ticket_service.services.booking_service import book_tickets
from ticket_service.services.cache_service import (
    get_cache_generation,
    get_cached_events,
    invalidate_event_cache,
    set_cached_events,
)
from ticket_service.services.event_service import get_event, list_events
from ticket_service.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/tickets", tags=["Tickets"])


@router.get("", response_model=list[EventResponse])
async def list_events_endpoint(uow: UnitOfWork = Depends(get_uow)):
    """
    List all events.
    Served from Redis when cached; the cache is dropped on every booking.
    The generation is read before the query so a booking that commits
    in between keeps this response out of the cache.
    """
    cached = await get_cached_events()
    if cached is not None:
        logger.info("events_list_cache_hit", count=len(cached))
        return cached

    generation = await get_cache_generation()
    events = await list_events(uow)
    response_data = [
        EventResponse.model_validate(e).model_dump(by_alias=True) for e in events
    ]
    await set_cached_events(response_data, generation)
    return response_data


@router.get(
    "/{event_id}",
    response_model=EventResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_event_endpoint(event_id: int, uow: UnitOfWork = Depends(get_uow)):
    """Get a single event by ID. Never cached."""
    return await get_event(uow, event_id)


@router.post(
    "/{event_id}/book",
    response_model=BookingResponse,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def book_tickets_endpoint(
    event_id: int,
    count: int = Query(..., description="Number of tickets to book"),
    uow: UnitOfWork = Depends(get_uow),
):
    """
    Book `count` tickets for an event.

    Concurrent bookings of one event are serialized by a row lock, so the
    event can never be oversold. 409 means the lock was busy; retrying is safe.
    """
    receipt = await book_tickets(uow, event_id, count)
    await invalidate_event_cache()
    return BookingResponse(message=receipt.message)
