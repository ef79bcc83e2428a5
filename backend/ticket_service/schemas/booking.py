"""
Pydantic schemas for booking and error responses.
"""

from typing import Optional
from pydantic import BaseModel


class BookingResponse(BaseModel):
    message: str


class ErrorResponse(BaseModel):
    error: str
    retryable: Optional[bool] = None
