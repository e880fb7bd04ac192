"""
Redis caching service for vehicle listings.

CACHING STRATEGY
================

What we cache:
  - Vehicle listing responses (paginated, JSON-serialized)
  - Cache key pattern: "vehicles:list:type={listing_type}&status={status}&page={page}&size={size}"

Why:
  - Browsing listings is the most frequent read
  - Listings only change when a vehicle is added or a booking moves a
    vehicle's status (rented, sold, available again)

Invalidation strategy:
  - Every lifecycle operation that writes a vehicle status deletes all
    listing keys after its transaction commits
  - Vehicle creation does the same
  - TTL-based expiry as safety net (5 minutes)

Why NOT cache single vehicles or availability:
  - Booking creation needs the live status under the row lock; a stale
    "available" would only be rejected later
  - Availability depends on the requested dates, so keys would not repeat

Redis is advisory. Every cache call degrades to a miss when Redis is
disabled or unreachable.
"""

import json
from typing import Optional

import redis.asyncio as redis

from autofleet.core.config import get_settings
from autofleet.core.logging import get_logger
from autofleet.core.metrics import record_cache_operation, redis_connection_errors

logger = get_logger(__name__)
settings = get_settings()

VEHICLE_LIST_PREFIX = "vehicles:list:"

_redis_client: Optional[redis.Redis] = None


async def get_redis() -> Optional[redis.Redis]:
    """Get or create Redis connection. Returns None if Redis is disabled."""
    global _redis_client

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
            redis_connection_errors.inc()
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


def _make_vehicle_list_key(
    listing_type: Optional[str],
    status: Optional[str],
    page: int,
    page_size: int,
) -> str:
    return (
        f"{VEHICLE_LIST_PREFIX}type={listing_type or 'any'}&status={status or 'any'}"
        f"&page={page}&size={page_size}"
    )


async def get_cached_vehicles(
    listing_type: Optional[str],
    status: Optional[str],
    page: int,
    page_size: int,
) -> Optional[dict]:
    """Retrieve cached vehicle list response."""
    client = await get_redis()
    if not client:
        return None

    key = _make_vehicle_list_key(listing_type, status, page, page_size)
    try:
        data = await client.get(key)
        record_cache_operation("get", hit=data is not None)
        if data:
            logger.debug("cache_hit", key=key)
            return json.loads(data)
        logger.debug("cache_miss", key=key)
    except Exception as e:
        logger.error("cache_get_error", key=key, error=str(e))

    return None


async def set_cached_vehicles(
    listing_type: Optional[str],
    status: Optional[str],
    page: int,
    page_size: int,
    data: dict,
) -> None:
    """Cache vehicle list response with TTL."""
    client = await get_redis()
    if not client:
        return

    key = _make_vehicle_list_key(listing_type, status, page, page_size)
    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except Exception as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_vehicle_cache() -> None:
    """
    Invalidate all cached vehicle listings.
    Uses SCAN to find and delete all keys matching the prefix.
    """
    client = await get_redis()
    if not client:
        return

    try:
        deleted = 0
        async for key in client.scan_iter(match=f"{VEHICLE_LIST_PREFIX}*", count=100):
            await client.delete(key)
            deleted += 1
        logger.info("cache_invalidated", keys_deleted=deleted)
    except Exception as e:
        logger.error("cache_invalidation_error", error=str(e))


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
