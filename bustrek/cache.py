"""
cache.py - optional Redis read-through cache for booking documents.

Namespace conventions:
  booking:{booking_id}   -> booking document (JSON)   TTL 1h (3600s)

Design:
  - Uses redis.asyncio (async client, part of redis-py 5.x)
  - Pool created once in lifespan when REDIS_URL is set, stored on app.state.redis;
    app.state.redis is None when caching is disabled
  - Bookings are immutable, so entries never need invalidation - only expiry
  - Helper functions take the client as a param - no module-level global state
  - A cache failure is logged and treated as a miss; the database stays authoritative
  - Logs only booking_id - no PII in logs
"""
import json
import logging
from typing import Optional

import redis.asyncio as aioredis
from fastapi import Request
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

BOOKING_TTL: int = 3600    # 1 hour
BOOKING_PREFIX = "booking"


def make_booking_key(booking_id: str) -> str:
    """Build Redis key for a booking document: booking:{booking_id}"""
    return f"{BOOKING_PREFIX}:{booking_id}"


async def create_redis_pool(redis_url: str) -> aioredis.Redis:
    """
    Create and return an async Redis connection pool.
    Called once in FastAPI lifespan startup - stored on app.state.redis.
    Verifies connectivity with PING before returning.
    """
    client = aioredis.from_url(
        redis_url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=20,
    )
    await client.ping()
    logger.info("Redis connection pool established")
    return client


def get_redis(request: Request) -> Optional[aioredis.Redis]:
    """FastAPI dependency: the Redis client, or None when caching is disabled."""
    return getattr(request.app.state, "redis", None)


async def get_cached_booking(
    client: Optional[aioredis.Redis], booking_id: str
) -> Optional[dict]:
    """Return the cached booking document, or None on a miss (or no cache)."""
    if client is None:
        return None
    try:
        raw = await client.get(make_booking_key(booking_id))
    except RedisError as exc:
        logger.warning("Booking cache read failed booking_id=%s: %s", booking_id, exc)
        return None
    if raw is None:
        return None
    try:
        document = json.loads(raw)
    except ValueError as exc:
        logger.warning("Booking cache entry unreadable booking_id=%s: %s", booking_id, exc)
        return None
    logger.info("Booking cache hit booking_id=%s", booking_id)
    return document


async def set_cached_booking(
    client: Optional[aioredis.Redis], booking_id: str, document: dict
) -> None:
    """Store a booking document with TTL 1h. No-op when caching is disabled."""
    if client is None:
        return
    try:
        await client.setex(make_booking_key(booking_id), BOOKING_TTL, json.dumps(document))
    except RedisError as exc:
        logger.warning("Booking cache write failed booking_id=%s: %s", booking_id, exc)
        return
    logger.info("Booking cached booking_id=%s ttl=%ds", booking_id, BOOKING_TTL)
