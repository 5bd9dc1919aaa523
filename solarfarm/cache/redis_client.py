"""
Redis cache for the latest farm aggregate.

Every ingestion tick stores its aggregate under ``farm:aggregate`` with a
short TTL so that ``GET /api/realtime/latest`` can be answered without
touching storage. Caching is best-effort: connection failures are logged
but never propagate.

CHANGELOG:
- 2026-09-27: Cache farm aggregates instead of per-device samples (STORY-016)
- 2026-09-14: Initial creation (STORY-002)
"""

import logging

import redis.asyncio as redis

from solarfarm.models import FarmAggregate

logger = logging.getLogger(__name__)

AGGREGATE_KEY = "farm:aggregate"


async def get_redis(url: str) -> redis.Redis:
    """Create and return an async Redis client for ``url``.

    Args:
        url: Redis connection URL.

    Returns:
        redis.Redis: Async Redis client.
    """
    return redis.from_url(url)


async def cache_latest_aggregate(url: str, aggregate: FarmAggregate, ttl_s: int) -> None:
    """Store ``aggregate`` under the aggregate key with a TTL.

    Args:
        url: Redis connection URL.
        aggregate: The aggregate produced by the latest ingestion tick.
        ttl_s: Expiry in seconds.
    """
    try:
        client = await get_redis(url)
        try:
            await client.set(
                AGGREGATE_KEY, aggregate.model_dump_json(by_alias=True), ex=ttl_s
            )
        finally:
            await client.aclose()
    except Exception:
        logger.warning("Redis write failed for key %s", AGGREGATE_KEY, exc_info=True)


async def read_latest_aggregate(url: str) -> FarmAggregate | None:
    """Return the cached aggregate, or None on a miss or any Redis failure."""
    try:
        client = await get_redis(url)
        try:
            cached = await client.get(AGGREGATE_KEY)
        finally:
            await client.aclose()
    except Exception:
        logger.warning("Redis read failed for key %s", AGGREGATE_KEY, exc_info=True)
        return None
    if cached is None:
        return None
    try:
        return FarmAggregate.model_validate_json(cached)
    except ValueError:
        logger.warning("Discarding malformed cached aggregate", exc_info=True)
        return None
