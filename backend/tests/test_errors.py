"""
Tests for failure classification and the failure-to-status mapping.
"""

import json
from unittest.mock import AsyncMock, Mock

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from ticket_service.api.errors import STATUS_BY_KIND, service_error_handler
from ticket_service.core.errors import FailureKind, ServiceError
from ticket_service.db.errors import classify_store_error, is_lock_failure
from ticket_service.repositories.event_repository import EventRepository


class FakeDriverError(Exception):
    def __init__(self, message, sqlstate=None):
        super().__init__(message)
        self.sqlstate = sqlstate


def test_every_kind_has_a_status():
    assert set(STATUS_BY_KIND) == set(FailureKind)
    assert STATUS_BY_KIND[FailureKind.NOT_FOUND] == 404
    assert STATUS_BY_KIND[FailureKind.INVALID_REQUEST] == 400
    assert STATUS_BY_KIND[FailureKind.INSUFFICIENT_INVENTORY] == 400


def test_only_contention_is_retryable():
    assert ServiceError.contention(1).retryable
    assert not ServiceError.insufficient_inventory(1, 5, 2).retryable
    assert not ServiceError.not_found(1).retryable


@pytest.mark.parametrize(
    "orig",
    [
        FakeDriverError("canceling statement due to lock timeout", sqlstate="55P03"),
        FakeDriverError("deadlock detected", sqlstate="40P01"),
        FakeDriverError("database is locked"),
    ],
)
def test_lock_errors_classify_as_contention(orig):
    exc = OperationalError("SELECT ...", {}, orig)

    assert is_lock_failure(exc)
    error = classify_store_error(exc, event_id=3)
    assert error.kind is FailureKind.CONTENTION
    assert error.details == {"event_id": 3}


def test_other_errors_classify_as_store_failure():
    exc = IntegrityError("UPDATE ...", {}, FakeDriverError("check constraint failed"))

    error = classify_store_error(exc, event_id=3)

    assert error.kind is FailureKind.STORE_FAILURE
    assert error.details == {"reason": "IntegrityError"}


@pytest.mark.asyncio
async def test_repository_wraps_storage_errors():
    original = OperationalError("SELECT ...", {}, FakeDriverError("connection refused"))
    session = Mock()
    session.execute = AsyncMock(side_effect=original)
    repo = EventRepository(session, row_locker=Mock())

    with pytest.raises(ServiceError) as exc_info:
        await repo.find_by_id(1)

    assert exc_info.value.kind is FailureKind.STORE_FAILURE
    assert exc_info.value.__cause__ is original


@pytest.mark.asyncio
async def test_locked_database_on_plain_read_is_store_failure():
    session = Mock()
    session.execute = AsyncMock(
        side_effect=OperationalError("SELECT ...", {}, FakeDriverError("database is locked"))
    )
    repo = EventRepository(session, row_locker=Mock())

    with pytest.raises(ServiceError) as exc_info:
        await repo.find_by_id(1)

    assert exc_info.value.kind is FailureKind.STORE_FAILURE
    assert not exc_info.value.retryable


@pytest.mark.asyncio
async def test_contention_response_is_retryable():
    response = await service_error_handler(Mock(), ServiceError.contention(5))

    assert response.status_code == 409
    body = json.loads(response.body)
    assert body["retryable"] is True
    assert "Event ID 5" in body["error"]


@pytest.mark.asyncio
async def test_store_failure_response():
    response = await service_error_handler(Mock(), ServiceError.store_failure("OperationalError"))

    assert response.status_code == 500
    assert json.loads(response.body) == {"error": "Ticket storage is unavailable"}
