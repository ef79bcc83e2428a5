from ticket_service.models.event import Event

__all__ = ["Event"]
