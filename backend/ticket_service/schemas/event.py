"""
Pydantic schemas for event responses.
Field names are snake_case in Python and camelCase on the wire.
"""

from pydantic import BaseModel, Field


class EventResponse(BaseModel):
    id: int
    event_name: str = Field(..., alias="eventName")
    available_tickets: int = Field(..., ge=0, alias="availableTickets")

    model_config = {"from_attributes": True, "populate_by_name": True}
