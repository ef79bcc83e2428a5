from ticket_service.schemas.event import EventResponse
from ticket_service.schemas.booking import BookingResponse, ErrorResponse

__all__ = ["EventResponse", "BookingResponse", "ErrorResponse"]
