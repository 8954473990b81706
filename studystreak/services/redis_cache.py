"""
Redis access for cache-aside reads, the token blacklist, presence and
rate-limit counters.

Every operation returns a neutral value when Redis is down or errors, so
the API keeps serving without it.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

import redis.asyncio as redis

from studystreak.core.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RedisCacheService:
    def __init__(self, client: Optional[redis.Redis] = None):
        self._pool: Optional[redis.ConnectionPool] = None
        self._client: Optional[redis.Redis] = client

    async def connect(self) -> None:
        if self._client is not None:
            return
        self._pool = redis.ConnectionPool.from_url(
            settings.REDIS_URL, decode_responses=True, max_connections=50
        )
        client = redis.Redis(connection_pool=self._pool)
        try:
            await client.ping()
        except (redis.RedisError, OSError) as e:
            logger.warning("Redis unreachable at %s: %s", settings.REDIS_URL, e)
            await self._pool.disconnect()
            self._pool = None
            return
        self._client = client
        logger.info("Redis connected: %s", settings.REDIS_URL)

    async def disconnect(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        if self._pool is not None:
            await self._pool.disconnect()
            self._pool = None

    @property
    def client(self) -> Optional[redis.Redis]:
        return self._client

    async def _guarded(self, op: str, key: str, default: T, call: Callable[[redis.Redis], Awaitable[T]]) -> T:
        if self._client is None:
            return default
        try:
            return await call(self._client)
        except (redis.RedisError, OSError) as e:
            logger.warning("Redis %s failed [%s]: %s", op, key, e)
            return default

    async def ping(self) -> bool:
        return await self._guarded("ping", "-", False, lambda c: c.ping())

    async def get(self, key: str) -> Optional[str]:
        return await self._guarded("get", key, None, lambda c: c.get(key))

    async def set(self, key: str, value: str, ttl: int = 3600) -> bool:
        async def _set(c: redis.Redis) -> bool:
            await c.setex(key, max(int(ttl), 1), value)
            return True

        return await self._guarded("set", key, False, _set)

    async def delete(self, key: str) -> bool:
        async def _delete(c: redis.Redis) -> bool:
            await c.delete(key)
            return True

        return await self._guarded("delete", key, False, _delete)

    async def exists(self, key: str) -> bool:
        async def _exists(c: redis.Redis) -> bool:
            return bool(await c.exists(key))

        return await self._guarded("exists", key, False, _exists)

    async def get_json(self, key: str) -> Any:
        raw = await self.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, json.JSONDecodeError):
            logger.warning("Cached value is not JSON [%s]", key)
            return None

    async def set_json(self, key: str, value: Any, ttl: int = 3600) -> bool:
        return await self.set(key, json.dumps(value, ensure_ascii=False, default=str), ttl)

    async def invalidate_pattern(self, pattern: str, batch_size: int = 100) -> int:
        """SCAN for keys matching a glob and delete them in batches.

        Returns the number of deleted keys.
        """

        async def _sweep(c: redis.Redis) -> int:
            deleted = 0
            batch: list[str] = []
            async for key in c.scan_iter(match=pattern, count=batch_size):
                batch.append(key)
                if len(batch) >= batch_size:
                    deleted += await c.delete(*batch)
                    batch.clear()
            if batch:
                deleted += await c.delete(*batch)
            return deleted

        return await self._guarded("invalidate", pattern, 0, _sweep)


_redis_cache: Optional[RedisCacheService] = None


async def get_redis_cache() -> RedisCacheService:
    global _redis_cache
    if _redis_cache is None:
        _redis_cache = RedisCacheService()
        await _redis_cache.connect()
    return _redis_cache


async def close_redis_cache() -> None:
    global _redis_cache
    if _redis_cache is not None:
        await _redis_cache.disconnect()
        _redis_cache = None
