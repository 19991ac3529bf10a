"""
Game Platform Backend: Redis Cache
====================================

What:  Thin JSON cache over redis.asyncio shared by every service.
Why:   Profiles, catalog pages, game ratings and notification settings are
       read far more often than they change.
How:   Values are JSON-encoded under namespaced keys with a TTL. Every
       operation swallows Redis connection errors and behaves like a miss,
       so a cache outage slows requests down instead of failing them.
Who:   user_service, game_service, rating_service, notification_service,
       security_service (IP block fast path) and the health route.
When:  The client connects lazily on first use; closed on shutdown.

Key Namespaces:
    user:profile:{id}            1 hour
    games:list:{query-hash}      5 minutes
    games:item:{id}              1 hour
    game_rating_{id}             5 minutes
    notification_settings:{id}   1 hour
    blocked_ip:{ip}              until the block expires
"""

import json
import logging
from typing import Any, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from gameplatform.config import settings

logger = logging.getLogger(__name__)


class Cache:
    """
    JSON cache with graceful degradation.

    Disabled caches (REDIS_ENABLED=false, used by the test suite) never
    open a connection; every get is a miss and every write is a no-op.
    """

    def __init__(self, url: str, enabled: bool = True, default_ttl: int = 300):
        self.url = url
        self.enabled = enabled
        self.default_ttl = default_ttl
        self._client: Optional[redis.Redis] = None

    @property
    def client(self) -> Optional[redis.Redis]:
        if not self.enabled:
            return None
        if self._client is None:
            self._client = redis.Redis.from_url(self.url, decode_responses=True)
        return self._client

    async def get(self, key: str) -> Optional[Any]:
        client = self.client
        if client is None:
            return None
        try:
            raw = await client.get(key)
        except RedisError as e:
            logger.warning("Cache get failed for %s: %s", key, str(e))
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Discarding undecodable cache entry %s", key)
            return None

    async def set(
        self, key: str, value: Any, ttl: Optional[int] = None, keep_ttl: bool = False
    ) -> None:
        """keep_ttl rewrites the value without touching the remaining expiry."""
        client = self.client
        if client is None:
            return
        payload = json.dumps(value, default=str)
        try:
            if keep_ttl:
                await client.set(key, payload, keepttl=True)
            else:
                await client.set(key, payload, ex=ttl or self.default_ttl)
        except RedisError as e:
            logger.warning("Cache set failed for %s: %s", key, str(e))

    async def delete(self, *keys: str) -> None:
        client = self.client
        if client is None or not keys:
            return
        try:
            await client.delete(*keys)
        except RedisError as e:
            logger.warning("Cache delete failed for %s: %s", keys, str(e))

    async def delete_pattern(self, pattern: str) -> int:
        """Deletes every key matching a glob pattern (SCAN, never KEYS). Returns the count."""
        client = self.client
        if client is None:
            return 0
        deleted = 0
        try:
            async for key in client.scan_iter(match=pattern, count=100):
                deleted += await client.delete(key)
        except RedisError as e:
            logger.warning("Cache pattern delete failed for %s: %s", pattern, str(e))
        return deleted

    async def ping(self) -> bool:
        client = self.client
        if client is None:
            return False
        try:
            return bool(await client.ping())
        except RedisError as e:
            logger.warning("Cache ping failed: %s", str(e))
            return False

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


# ── Singleton Instance ────────────────────────────────────────────────────
cache = Cache(
    url=settings.redis_url,
    enabled=settings.redis_enabled,
    default_ttl=settings.cache_default_ttl,
)
