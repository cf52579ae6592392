import json
import logging

import redis.asyncio as redis

from starter_api.config import settings

logger = logging.getLogger(__name__)

REVOKED_TOKEN_PREFIX = "auth:revoked:"
CATEGORY_LIST_PREFIX = "categories:list:"


class CacheManager:
    """
    Redis-backed helper for the access-token deny-list and cache-aside
    reads of small public lists.

    All public methods are safe to call even when Redis is unavailable:
    read operations return None (or False) and write operations are
    skipped, so the application degrades gracefully without raising
    exceptions to callers.
    """

    def __init__(self) -> None:
        self._redis: redis.Redis | None = None
        self._hits: int = 0
        self._misses: int = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self, url: str | None = None) -> None:
        """Open the connection pool.  Called once at application startup."""
        if not settings.cache.enabled:
            logger.info("Cache disabled by configuration")
            return
        url = url or settings.cache.redis_url
        self._redis = redis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        # Ping to surface mis-configuration early (non-fatal).
        try:
            await self._redis.ping()
            logger.info("Redis connected: %s", url)
        except Exception as exc:  # pragma: no cover
            logger.warning("Redis ping failed, cache disabled: %s", exc)
            await self._redis.aclose()
            self._redis = None

    async def disconnect(self) -> None:
        """Close the connection pool.  Called once at application shutdown."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    @property
    def available(self) -> bool:
        return self._redis is not None

    # ------------------------------------------------------------------
    # Core cache operations
    # ------------------------------------------------------------------

    async def get(self, key: str) -> dict | list | None:
        """Return the cached value for *key*, or None on a miss / error."""
        if not self._redis:
            self._misses += 1
            return None
        try:
            data = await self._redis.get(key)
            if data is not None:
                self._hits += 1
                return json.loads(data)
            self._misses += 1
            return None
        except Exception as exc:
            logger.debug("Cache GET error for key=%r: %s", key, exc)
            self._misses += 1
            return None

    async def set(self, key: str, value: dict | list, ttl: int | None = None) -> None:
        """
        Persist *value* under *key* with an optional TTL (seconds).

        Failures are logged and never propagated; a cache write failure
        must never break a request.
        """
        if not self._redis:
            return
        try:
            await self._redis.set(key, json.dumps(value, default=str), ex=ttl)
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
    # Token deny-list
    # ------------------------------------------------------------------

    async def revoke_token(self, jti: str, ttl: int) -> None:
        """Deny-list the access token *jti* until it would have expired."""
        if not self._redis or ttl <= 0:
            return
        try:
            await self._redis.set(f"{REVOKED_TOKEN_PREFIX}{jti}", "1", ex=ttl)
        except Exception as exc:
            logger.warning("Could not deny-list token jti=%s: %s", jti, exc)

    async def is_token_revoked(self, jti: str) -> bool:
        if not self._redis:
            return False
        try:
            return bool(await self._redis.exists(f"{REVOKED_TOKEN_PREFIX}{jti}"))
        except Exception as exc:
            logger.debug("Cache EXISTS error for jti=%s: %s", jti, exc)
            return False

    # ------------------------------------------------------------------
    # Domain-level invalidation helpers
    # ------------------------------------------------------------------

    async def invalidate_categories(self) -> None:
        """Purge every cached category page after any category write."""
        await self.delete_pattern(f"{CATEGORY_LIST_PREFIX}*")

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    @property
    def stats(self) -> dict:
        """Return a snapshot of hit/miss counters for the health endpoint."""
        total = self._hits + self._misses
        return {
            "available": self.available,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / total * 100, 1) if total > 0 else 0.0,
        }


# Module-level singleton shared across all request handlers.
cache = CacheManager()
