"""
Redis caching service for the event listing.

CACHING STRATEGY
================

What we cache:
  - The full GET /tickets response (JSON-serialized), under one key

Invalidation strategy:
  - Every successful booking deletes the key (available tickets changed)
    and bumps a generation counter (EVENT_LIST_GEN_KEY)
  - A list request reads the generation before querying the database and
    only fills the cache if the generation is unchanged (WATCH/MULTI), so
    rows read before a booking never overwrite its invalidation
  - TTL-based expiry as safety net (REDIS_CACHE_TTL)

Why NOT cache single events or anything the booking path reads:
  - Bookings must re-read the row under lock every time; a cached count
    is exactly the stale value that causes overselling
  - GET /tickets/{id} is the "real-time" view and always hits the DB

Redis is advisory. When it is disabled or unreachable every call here
degrades to a no-op / cache miss and the database answers instead.
"""

import json
from typing import Optional

import redis.asyncio as redis
from redis.exceptions import WatchError
from ticket_service.core.config import get_settings
from ticket_service.core.logging import get_logger
from ticket_service.core.metrics import record_cache_operation

logger = get_logger(__name__)

EVENT_LIST_KEY = "tickets:list"
EVENT_LIST_GEN_KEY = "tickets:list:gen"

_redis_client: Optional[redis.Redis] = None


async def get_redis() -> Optional[redis.Redis]:
    """Get or create Redis connection. Returns None if Redis is disabled."""
    global _redis_client
    settings = get_settings()

    if not settings.REDIS_ENABLED:
        return None

    if _redis_client is None:
        try:
            _redis_client = redis.from_url(
                settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
            )
            await _redis_client.ping()
            logger.info("redis_connected", url=settings.REDIS_URL)
        except Exception as e:
            logger.error("redis_connection_failed", error=str(e))
            _redis_client = None
            return None

    return _redis_client


async def close_redis() -> None:
    """Close Redis connection on shutdown."""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


async def get_cached_events() -> Optional[list[dict]]:
    """Retrieve the cached event list, or None on miss."""
    client = await get_redis()
    if not client:
        return None

    try:
        data = await client.get(EVENT_LIST_KEY)
    except Exception as e:
        logger.error("cache_get_error", key=EVENT_LIST_KEY, error=str(e))
        record_cache_operation("get", "error")
        return None

    if data is None:
        record_cache_operation("get", "miss")
        return None
    record_cache_operation("get", "hit")
    return json.loads(data)


async def get_cache_generation() -> Optional[str]:
    """
    Current list generation, read before querying the database.

    Returns None when Redis is disabled or the read fails; a fill with an
    unknown generation is skipped.
    """
    client = await get_redis()
    if not client:
        return None

    try:
        generation = await client.get(EVENT_LIST_GEN_KEY)
    except Exception as e:
        logger.error("cache_generation_error", key=EVENT_LIST_GEN_KEY, error=str(e))
        record_cache_operation("generation", "error")
        return None
    return generation or "0"


async def set_cached_events(events: list[dict], generation: Optional[str]) -> None:
    """
    Cache the event list with TTL, unless a booking invalidated it since
    `generation` was read.
    """
    client = await get_redis()
    if not client or generation is None:
        return

    ttl = get_settings().REDIS_CACHE_TTL
    try:
        async with client.pipeline(transaction=True) as pipe:
            await pipe.watch(EVENT_LIST_GEN_KEY)
            current = await pipe.get(EVENT_LIST_GEN_KEY)
            if (current or "0") != generation:
                record_cache_operation("set", "stale")
                logger.info("cache_set_skipped", key=EVENT_LIST_KEY,
                            read_generation=generation, current_generation=current)
                return
            pipe.multi()
            pipe.setex(EVENT_LIST_KEY, ttl, json.dumps(events))
            await pipe.execute()
        record_cache_operation("set", "ok")
        logger.debug("cache_set", key=EVENT_LIST_KEY, ttl=ttl, generation=generation)
    except WatchError:
        # Invalidated between the generation check and EXEC
        record_cache_operation("set", "stale")
        logger.info("cache_set_skipped", key=EVENT_LIST_KEY, read_generation=generation)
    except Exception as e:
        logger.error("cache_set_error", key=EVENT_LIST_KEY, error=str(e))
        record_cache_operation("set", "error")


async def invalidate_event_cache() -> None:
    """Drop the cached list and bump the generation so in-flight fills are discarded."""
    client = await get_redis()
    if not client:
        return

    try:
        async with client.pipeline(transaction=True) as pipe:
            pipe.incr(EVENT_LIST_GEN_KEY)
            pipe.delete(EVENT_LIST_KEY)
            generation, deleted = await pipe.execute()
        record_cache_operation("invalidate", "ok")
        logger.info("cache_invalidated", keys_deleted=deleted, generation=generation)
    except Exception as e:
        logger.error("cache_invalidation_error", error=str(e))
        record_cache_operation("invalidate", "error")


async def get_cache_stats() -> dict:
    """Get Redis cache statistics for monitoring."""
    client = await get_redis()
    if not client:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
        hits = info.get("keyspace_hits", 0)
        misses = info.get("keyspace_misses", 0)
        return {
            "status": "connected",
            "hits": hits,
            "misses": misses,
            "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
        }
    except Exception as e:
        return {"status": "error", "error": str(e)}
