import json
import logging

import redis.asyncio as redis

from app.config import settings

logger = logging.getLogger(__name__)

# Session.info flag set by writers whose purge must be repeated post-commit.
PURGE_AFTER_COMMIT = "purge_article_cache"


class CacheManager:
    """
    Cache-aside manager backed by Redis.

    All public methods are safe to call even when Redis is unavailable:
    read operations return None and write operations are silently skipped,
    so the application degrades gracefully without raising exceptions to
    callers.
    """

    def __init__(self) -> None:
        self._redis: redis.Redis | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Open the connection pool.  Called once at application startup."""
        self._redis = redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        try:
            await self._redis.ping()
            logger.info("Redis connected: %s", settings.REDIS_URL)
        except Exception as exc:  # pragma: no cover
            logger.warning("Redis ping failed, cache disabled: %s", exc)
            await self._redis.aclose()
            self._redis = None

    async def disconnect(self) -> None:
        """Close the connection pool.  Called once at application shutdown."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    # ------------------------------------------------------------------
    # Core cache operations
    # ------------------------------------------------------------------

    async def get(self, key: str) -> dict | list | None:
        """Return the cached value for *key*, or None on a miss / error."""
        if not self._redis:
            return None
        try:
            data = await self._redis.get(key)
            if data is not None:
                return json.loads(data)
            return None
        except Exception as exc:
            logger.debug("Cache GET error for key=%r: %s", key, exc)
            return None

    async def set(self, key: str, value: dict | list, ttl: int | None = None) -> None:
        """
        Persist *value* under *key* with an optional TTL (seconds).

        Serialisation errors and Redis failures are logged but never
        propagated; a cache write failure must never break a request.
        """
        if not self._redis:
            return
        try:
            serialised = json.dumps(value, default=str)
            await self._redis.set(key, serialised, ex=ttl)
        except Exception as exc:
            logger.debug("Cache SET error for key=%r: %s", key, exc)

    async def delete_pattern(self, pattern: str) -> None:
        """Delete all keys matching *pattern* using SCAN (avoids blocking KEYS)."""
        if not self._redis:
            return
        try:
            keys: list[str] = []
            async for key in self._redis.scan_iter(match=pattern):
                keys.append(key)
            if keys:
                await self._redis.delete(*keys)
                logger.debug("Cache invalidated %d key(s) matching %r", len(keys), pattern)
        except Exception as exc:
            logger.debug("Cache DELETE_PATTERN error for pattern=%r: %s", pattern, exc)

    # ------------------------------------------------------------------
    # Domain-level invalidation helpers
    # ------------------------------------------------------------------

    async def invalidate_articles(self, db=None) -> None:
        """
        Purge every cached article list page and the tag overview.

        Both embed article data (author, tags, per-tag article counts), so
        any article, tag or user write makes them stale.  When *db* is the
        session doing the write, the purge is repeated after it commits
        (see ``app.database.commit``): a list read racing the open
        transaction could otherwise re-cache the old rows.
        """
        if db is not None:
            db.info[PURGE_AFTER_COMMIT] = True
        await self.delete_pattern("articles:list:*")
        await self.delete_pattern("tags:list")


# Module-level singleton shared across all request handlers.
cache = CacheManager()
