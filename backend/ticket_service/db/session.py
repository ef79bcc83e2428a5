"""
Async engine, session factory and the unit-of-work dependency.

The engine is created lazily so importing the app does not require a
reachable database (tests swap in their own engine).
"""

from functools import lru_cache

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from ticket_service.core.config import get_settings
from ticket_service.db.row_locks import RowLockRegistry
from ticket_service.db.unit_of_work import UnitOfWork

# One registry per process: in-process row locks only mean something if
# every unit of work in the process shares them.
row_locks = RowLockRegistry()


def build_engine(url: str, **overrides) -> AsyncEngine:
    settings = get_settings()
    options = {"echo": settings.DEBUG, "pool_pre_ping": True}

    if make_url(url).get_backend_name() != "sqlite":
        options.update(
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_timeout=settings.DB_POOL_TIMEOUT,
            pool_recycle=settings.DB_POOL_RECYCLE,
        )
    else:
        # Wait for SQLite's file lock instead of failing immediately
        options["connect_args"] = {"timeout": settings.LOCK_TIMEOUT_SECONDS}

    options.update(overrides)
    return create_async_engine(url, **options)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@lru_cache()
def get_engine() -> AsyncEngine:
    return build_engine(get_settings().DATABASE_URL)


@lru_cache()
def get_session_factory() -> async_sessionmaker[AsyncSession]:
    return build_session_factory(get_engine())


async def dispose_engine() -> None:
    if get_engine.cache_info().currsize:
        await get_engine().dispose()
        get_session_factory.cache_clear()
        get_engine.cache_clear()


def get_uow() -> UnitOfWork:
    """FastAPI dependency: a fresh, not yet entered unit of work."""
    return UnitOfWork(get_session_factory(), row_locks)
