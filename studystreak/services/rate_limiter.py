"""Fixed-window rate limiter on Redis INCR."""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass

from redis.exceptions import RedisError

from studystreak.core.redis_keys import key_rate_limit
from studystreak.services.redis_cache import get_redis_cache

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitRule:
    max_requests: int
    window_seconds: int


# scope -> rule
RATE_LIMITS = {
    "api": RateLimitRule(max_requests=100, window_seconds=60),
    "auth": RateLimitRule(max_requests=5, window_seconds=60),
    "ai": RateLimitRule(max_requests=20, window_seconds=60),
}


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_at: int  # epoch ms of the next window boundary
    limit: int

    @property
    def retry_after(self) -> int:
        return max(1, math.ceil((self.reset_at - time.time() * 1000) / 1000))


async def check_limit(
    scope: str,
    identifier: str,
    max_requests: int,
    window_seconds: int,
    now_ms: int | None = None,
) -> RateLimitResult:
    """Count one request against the current window.

    INCR and EXPIRE go out in one MULTI so a window key never outlives its
    window without a TTL. Redis being unavailable allows the request.
    """
    now_ms = int(time.time() * 1000) if now_ms is None else now_ms
    window_ms = window_seconds * 1000
    window_index = now_ms // window_ms
    reset_at = (window_index + 1) * window_ms

    cache = await get_redis_cache()
    client = cache.client
    if client is None:
        return RateLimitResult(True, max_requests, reset_at, max_requests)

    key = key_rate_limit(scope, identifier, window_index)
    try:
        async with client.pipeline(transaction=True) as pipe:
            pipe.incr(key)
            # the key name changes every window, so re-arming the TTL only bounds its lifetime
            pipe.expire(key, window_seconds)
            count, _ = await pipe.execute()
    except (RedisError, OSError) as e:
        logger.warning("RateLimit Redis error (fallback=allow) [%s]: %s", key, e)
        return RateLimitResult(True, max_requests, reset_at, max_requests)

    allowed = count <= max_requests
    if not allowed:
        logger.info("rate limit exceeded scope=%s id=%s count=%d", scope, identifier, count)
    return RateLimitResult(
        allowed=allowed,
        remaining=max(0, max_requests - count),
        reset_at=reset_at,
        limit=max_requests,
    )


async def check_scope(scope: str, identifier: str) -> RateLimitResult:
    rule = RATE_LIMITS[scope]
    return await check_limit(scope, identifier, rule.max_requests, rule.window_seconds)


def client_ip(headers, fallback: str | None) -> str:
    """First X-Forwarded-For hop, then X-Real-IP, then the socket peer."""
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return fallback or "unknown"
