"""Cache helpers: cache-aside with TTL jitter."""

import json
import logging
import random
from typing import Any, Awaitable, Callable

from studystreak.services.redis_cache import get_redis_cache

logger = logging.getLogger(__name__)

NULL_MARKER = "__null__"


async def get_cached(key: str) -> tuple[bool, Any]:
    """Return (hit, value) for a cache-aside key."""
    cache = await get_redis_cache()
    raw = await cache.get(key)
    if raw is None:
        return False, None
    if raw == NULL_MARKER:
        return True, None
    try:
        return True, json.loads(raw)
    except (TypeError, json.JSONDecodeError):
        logger.warning("cache value is not JSON [%s]", key)
        return False, None


async def store(key: str, value: Any, ttl: int, negative_ttl: int = 30, jitter: float = 0.1) -> None:
    cache = await get_redis_cache()
    if value is None:
        await cache.set(key, NULL_MARKER, negative_ttl)
        return
    actual_ttl = max(1, int(ttl * (1 + random.uniform(-jitter, jitter))))
    await cache.set(key, json.dumps(value, ensure_ascii=False, default=str), actual_ttl)


async def get_or_set(
    key: str,
    ttl: int,
    loader_fn: Callable[[], Awaitable[Any]],
    negative_ttl: int = 30,
    jitter: float = 0.1,
) -> Any:
    """cache-aside with TTL jitter.

    A None result from loader_fn is cached as a marker for negative_ttl seconds.
    Errors from loader_fn propagate; Redis errors only cost a cache miss.
    """
    hit, value = await get_cached(key)
    if hit:
        return value

    result = await loader_fn()
    await store(key, result, ttl, negative_ttl=negative_ttl, jitter=jitter)
    return result


async def invalidate(*keys: str) -> None:
    cache = await get_redis_cache()
    for key in keys:
        await cache.delete(key)


async def invalidate_pattern(pattern: str) -> int:
    cache = await get_redis_cache()
    return await cache.invalidate_pattern(pattern)
