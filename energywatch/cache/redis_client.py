"""
Redis cache for per-user current snapshots.

The current snapshot of a user is cached under ``current:{user_id}`` with a
short TTL and invalidated whenever samples of that user's devices are
written or deleted. Every cache operation is best-effort: connection
failures are logged but never propagate, so requests fall back to the
database.

CHANGELOG:
- 2026-10-16: Treat unreadable cached values as a miss
- 2026-10-14: Cache current snapshots per user instead of per device
- 2026-10-11: Initial creation
"""

import json
import logging
from collections.abc import Iterable

import redis.asyncio as redis

logger = logging.getLogger(__name__)


def current_key(owner_id: str) -> str:
    """Return the cache key of a user's current snapshot."""
    return f"current:{owner_id}"


async def get_redis(redis_url: str) -> redis.Redis:
    """Create and return an async Redis client for ``redis_url``.

    Returns:
        redis.Redis: Async Redis client.
    """
    return redis.from_url(redis_url)


class SnapshotCache:
    """Best-effort cache of current snapshots.

    Attributes:
        redis_url: Redis connection URL.
        ttl_s: Expiry of cached snapshots in seconds.
    """

    def __init__(self, redis_url: str, ttl_s: int = 5) -> None:
        self.redis_url = redis_url
        self.ttl_s = ttl_s

    async def get(self, owner_id: str) -> list[dict] | None:
        """Return the cached snapshot for ``owner_id``, or None on miss/failure."""
        key = current_key(owner_id)
        try:
            client = await get_redis(self.redis_url)
            try:
                cached = await client.get(key)
            finally:
                await client.aclose()
        except Exception:
            logger.warning(
                "Redis read failed for key %s, falling back to DB",
                key,
                exc_info=True,
            )
            return None
        if cached is None:
            return None
        try:
            return json.loads(cached)
        except ValueError:
            logger.warning("Discarding unreadable cache value under %s", key)
            return None

    async def set(self, owner_id: str, snapshot: list[dict]) -> None:
        """Store a JSON-serialisable snapshot for ``owner_id``."""
        key = current_key(owner_id)
        try:
            client = await get_redis(self.redis_url)
            try:
                await client.set(key, json.dumps(snapshot), ex=self.ttl_s)
            finally:
                await client.aclose()
        except Exception:
            logger.warning("Redis write failed for key %s", key, exc_info=True)

    async def invalidate(self, owner_ids: Iterable[str]) -> None:
        """Delete the cached snapshots of the given users."""
        keys = sorted({current_key(owner_id) for owner_id in owner_ids})
        if not keys:
            return
        try:
            client = await get_redis(self.redis_url)
            try:
                await client.delete(*keys)
            finally:
                await client.aclose()
        except Exception:
            logger.warning(
                "Failed to invalidate cache keys %s",
                keys,
                exc_info=True,
            )
