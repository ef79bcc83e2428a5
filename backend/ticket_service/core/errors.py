"""
Failure taxonomy for the ticket service.

Every business failure is a ServiceError tagged with one FailureKind. The set
of kinds is closed; callers branch on `error.kind`, never on subclasses.

    NOT_FOUND               unknown event id                       -> 404
    INVALID_REQUEST         non-positive ticket count              -> 400
    INSUFFICIENT_INVENTORY  requested > available                  -> 400
    CONTENTION              row lock not acquired in time          -> 409
    STORE_FAILURE           storage error not otherwise classified -> 500

CONTENTION failures leave no partial mutation behind and are safe to retry.
"""

from enum import Enum
from typing import Any


class FailureKind(str, Enum):
    INVALID_REQUEST = "invalid_request"
    NOT_FOUND = "not_found"
    INSUFFICIENT_INVENTORY = "insufficient_inventory"
    CONTENTION = "contention"
    STORE_FAILURE = "store_failure"


class ServiceError(Exception):
    """A typed failure raised by the service layer."""

    def __init__(self, kind: FailureKind, message: str, **details: Any):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.details = details

    @property
    def retryable(self) -> bool:
        return self.kind is FailureKind.CONTENTION

    def __repr__(self) -> str:
        return f"<ServiceError(kind={self.kind.value}, message={self.message!r})>"

    @classmethod
    def invalid_request(cls, message: str) -> "ServiceError":
        return cls(FailureKind.INVALID_REQUEST, message)

    @classmethod
    def not_found(cls, event_id: int) -> "ServiceError":
        return cls(
            FailureKind.NOT_FOUND,
            f"Event not found with ID: {event_id}",
            event_id=event_id,
        )

    @classmethod
    def insufficient_inventory(cls, event_id: int, requested: int, available: int) -> "ServiceError":
        return cls(
            FailureKind.INSUFFICIENT_INVENTORY,
            f"Not enough tickets available. Requested: {requested}, Available: {available}",
            event_id=event_id,
            requested=requested,
            available=available,
        )

    @classmethod
    def contention(cls, event_id: int) -> "ServiceError":
        return cls(
            FailureKind.CONTENTION,
            f"Event ID {event_id} is busy with another booking. Please try again.",
            event_id=event_id,
        )

    @classmethod
    def store_failure(cls, reason: str) -> "ServiceError":
        return cls(FailureKind.STORE_FAILURE, "Ticket storage is unavailable", reason=reason)
