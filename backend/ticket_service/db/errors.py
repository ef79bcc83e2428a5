"""
Translation of storage exceptions into ServiceError.
"""

from contextlib import asynccontextmanager
from typing import Optional

from sqlalchemy.exc import DBAPIError, SQLAlchemyError

from ticket_service.core.errors import ServiceError
from ticket_service.core.logging import get_logger

logger = get_logger(__name__)

# lock_not_available, deadlock_detected
LOCK_SQLSTATES = {"55P03", "40P01"}


def _sqlstate(exc: DBAPIError) -> Optional[str]:
    orig = exc.orig
    for candidate in (orig, getattr(orig, "__cause__", None)):
        code = getattr(candidate, "sqlstate", None) or getattr(candidate, "pgcode", None)
        if code:
            return code
    return None


def is_lock_failure(exc: SQLAlchemyError) -> bool:
    if not isinstance(exc, DBAPIError):
        return False
    if _sqlstate(exc) in LOCK_SQLSTATES:
        return True
    # SQLite reports writer contention as an OperationalError
    return "database is locked" in str(exc.orig).lower()


def classify_store_error(exc: SQLAlchemyError, event_id: Optional[int] = None) -> ServiceError:
    if is_lock_failure(exc) and event_id is not None:
        logger.warning("row_lock_timeout", event_id=event_id, source="database")
        return ServiceError.contention(event_id)
    logger.error("store_failure", event_id=event_id, error=str(exc))
    return ServiceError.store_failure(exc.__class__.__name__)


@asynccontextmanager
async def store_errors(event_id: Optional[int] = None):
    """Re-raise SQLAlchemy errors raised inside the block as ServiceError."""
    try:
        yield
    except SQLAlchemyError as exc:
        raise classify_store_error(exc, event_id) from exc
