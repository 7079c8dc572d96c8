"""Redis caching for resolved dynamic option lists."""

import time
from typing import Any, Optional

import orjson
import redis.asyncio as redis
from redis.asyncio import Redis

from trackerbase.cache.base import DEFAULT_TTL, PipelineCache, effective_ttl
from trackerbase.core.config import settings
from trackerbase.core.logging import get_logger

logger = get_logger(__name__)


class RedisPipelineCache(PipelineCache):
    """Redis cache for resolve results.

    Values are stored as JSON under ``dynopt:<key>`` with ``SETEX`` so Redis
    expires them. Connection or serialization problems are logged and
    treated as misses; the resolver then recomputes.
    """

    KEY_PREFIX = "dynopt"

    def __init__(self, url: str | None = None, client: Optional[Redis] = None) -> None:
        """Initialize Redis cache client.

        Args:
            url: Redis URL; defaults to ``settings.redis_url``
            client: Pre-built client, mainly for tests
        """
        self._url = url or settings.redis_url
        self._redis: Optional[Redis] = client

    async def get_redis(self) -> Optional[Redis]:
        """Get or create Redis connection.

        Returns:
            Redis client instance, or None when it could not be created

        """
        if self._redis is None:
            try:
                self._redis = redis.from_url(
                    self._url,
                    max_connections=settings.redis_max_connections,
                    decode_responses=True,
                )
                logger.info(f"Redis pipeline cache connected: {self._url}")
            except Exception as e:
                logger.warning(f"Failed to connect to Redis: {e}")
                self._redis = None
        return self._redis

    async def close(self) -> None:
        """Close Redis connection."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    def _key(self, key: str) -> str:
        return f"{self.KEY_PREFIX}:{key}"

    async def get(self, key: str) -> dict[str, Any] | None:
        try:
            redis_client = await self.get_redis()
            if not redis_client:
                return None

            cached = await redis_client.get(self._key(key))
            if not cached:
                logger.debug(f"Cache miss: {key}")
                return None
            logger.debug(f"Cache hit: {key}")
            return orjson.loads(cached)

        except Exception as e:
            logger.warning(f"Error reading cached options: {e}")
            return None

    async def set(self, key: str, value: dict[str, Any], ttl_seconds: Any = DEFAULT_TTL) -> float:
        ttl = effective_ttl(ttl_seconds)
        expires_at = time.time() + ttl
        try:
            redis_client = await self.get_redis()
            if not redis_client:
                return expires_at

            await redis_client.setex(self._key(key), ttl, orjson.dumps(value).decode("utf-8"))
            logger.debug(f"Cached options: {key} (TTL: {ttl}s)")

        except Exception as e:
            logger.warning(f"Error caching options: {e}")
        return expires_at

    async def delete(self, key: str) -> None:
        try:
            redis_client = await self.get_redis()
            if redis_client:
                await redis_client.delete(self._key(key))
        except Exception as e:
            logger.warning(f"Error deleting cached options: {e}")

    async def clear(self) -> None:
        """Delete every key under the cache prefix."""
        try:
            redis_client = await self.get_redis()
            if not redis_client:
                return

            keys = []
            async for key in redis_client.scan_iter(match=f"{self.KEY_PREFIX}:*"):
                keys.append(key)

            if keys:
                await redis_client.delete(*keys)
                logger.info(f"Invalidated {len(keys)} cached option lists")

        except Exception as e:
            logger.warning(f"Error clearing option cache: {e}")
