"""
Event model with ticket inventory tracking.

Key design decisions:
- `available_tickets` is the single shared counter; bookings decrement it
  only while holding the row lock (see repositories.event_repository)
- CHECK constraint keeps the counter non-negative at the DB level
"""

from sqlalchemy import Column, Integer, String, CheckConstraint

from ticket_service.db.base import Base, TimestampMixin


class Event(Base, TimestampMixin):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    event_name = Column(String(255), nullable=False)
    available_tickets = Column(Integer, nullable=False)

    __table_args__ = (
        CheckConstraint("available_tickets >= 0", name="check_available_tickets_non_negative"),
        CheckConstraint("length(event_name) > 0", name="check_event_name_not_empty"),
    )

    def __repr__(self) -> str:
        return f"<Event(id={self.id}, name={self.event_name}, available={self.available_tickets})>"
