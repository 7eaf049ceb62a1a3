import json
import logging

import redis.asyncio as redis

from devnews.config import settings

logger = logging.getLogger(__name__)

POST_LIST_PREFIX = "posts:list"
POST_DETAIL_PREFIX = "posts:detail"


def post_list_key(page: int, page_size: int, sort_by: str, sort_order: str) -> str:
    return f"{POST_LIST_PREFIX}:{page}:{page_size}:{sort_by}:{sort_order}"


def post_detail_key(post_id: int) -> str:
    return f"{POST_DETAIL_PREFIX}:{post_id}"


class CacheManager:
    """
    Cache-aside store for published post reads, backed by Redis.

    When Redis is absent or failing every read is a miss and every write a
    no-op; the database stays the source of truth.
    """

    def __init__(self, url: str) -> None:
        self.url = url
        self._redis: redis.Redis | None = None
        self._hits = 0
        self._misses = 0

    async def connect(self) -> None:
        """Open the connection pool at application startup."""
        self._redis = redis.from_url(
            self.url,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        try:
            await self._redis.ping()
            logger.info("Redis connected: %s", self.url)
        except Exception as exc:  # pragma: no cover
            logger.warning("Redis unreachable, post cache disabled: %s", exc)
            await self._redis.aclose()
            self._redis = None

    async def disconnect(self) -> None:
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    async def get(self, key: str) -> dict | None:
        if not self._redis:
            self._misses += 1
            return None
        try:
            raw = await self._redis.get(key)
        except Exception as exc:
            logger.debug("Cache GET failed for %r: %s", key, exc)
            raw = None
        if raw is None:
            self._misses += 1
            return None
        self._hits += 1
        return json.loads(raw)

    async def set(self, key: str, value: dict, ttl: int | None = None) -> None:
        if not self._redis:
            return
        try:
            await self._redis.set(key, json.dumps(value, default=str), ex=ttl)
        except Exception as exc:
            logger.debug("Cache SET failed for %r: %s", key, exc)

    async def delete_pattern(self, pattern: str) -> None:
        """Delete keys matching *pattern*, iterating with SCAN."""
        if not self._redis:
            return
        try:
            keys = [key async for key in self._redis.scan_iter(match=pattern)]
            if keys:
                await self._redis.delete(*keys)
        except Exception as exc:
            logger.debug("Cache invalidation failed for %r: %s", pattern, exc)

    async def invalidate_post(self, post_id: int | None = None) -> None:
        """Drop every cached list page, and the detail entry for *post_id* if given."""
        await self.delete_pattern(f"{POST_LIST_PREFIX}:*")
        if post_id is not None:
            await self.delete_pattern(post_detail_key(post_id))

    @property
    def stats(self) -> dict:
        total = self._hits + self._misses
        return {
            "connected": self._redis is not None,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / total * 100, 1) if total > 0 else 0.0,
        }


# Module-level singleton shared across all request handlers.
cache = CacheManager(settings.REDIS_URL)
