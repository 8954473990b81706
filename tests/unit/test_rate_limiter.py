"""Fixed-window rate limiter."""

from studystreak.core.redis_keys import key_rate_limit
from studystreak.services.rate_limiter import RATE_LIMITS, check_limit, check_scope, client_ip

NOW_MS = 1_700_000_000_000


class TestCheckLimit:
    async def test_counts_down_then_blocks(self, fake_redis):
        results = [await check_limit("test", "1.2.3.4", 3, 60, now_ms=NOW_MS) for _ in range(4)]
        assert [r.allowed for r in results] == [True, True, True, False]
        assert [r.remaining for r in results] == [2, 1, 0, 0]
        assert results[0].limit == 3

    async def test_window_key_expires(self, fake_redis):
        await check_limit("test", "1.2.3.4", 3, 60, now_ms=NOW_MS)
        key = key_rate_limit("test", "1.2.3.4", NOW_MS // 60_000)
        ttl = await fake_redis.ttl(key)
        assert 0 < ttl <= 60

    async def test_existing_key_without_ttl_gets_one(self, fake_redis):
        key = key_rate_limit("test", "1.2.3.4", NOW_MS // 60_000)
        await fake_redis.set(key, 1)
        assert await fake_redis.ttl(key) == -1

        result = await check_limit("test", "1.2.3.4", 3, 60, now_ms=NOW_MS)
        assert result.remaining == 1
        assert 0 < await fake_redis.ttl(key) <= 60

    async def test_next_window_starts_fresh(self, fake_redis):
        for _ in range(3):
            await check_limit("test", "1.2.3.4", 3, 60, now_ms=NOW_MS)
        blocked = await check_limit("test", "1.2.3.4", 3, 60, now_ms=NOW_MS)
        assert not blocked.allowed

        later = await check_limit("test", "1.2.3.4", 3, 60, now_ms=blocked.reset_at)
        assert later.allowed
        assert later.remaining == 2

    async def test_identifiers_are_independent(self, fake_redis):
        for _ in range(3):
            await check_limit("test", "a", 3, 60, now_ms=NOW_MS)
        other = await check_limit("test", "b", 3, 60, now_ms=NOW_MS)
        assert other.allowed

    async def test_reset_at_is_window_boundary(self, fake_redis):
        result = await check_limit("test", "x", 3, 60, now_ms=NOW_MS)
        assert result.reset_at % 60_000 == 0
        assert NOW_MS < result.reset_at <= NOW_MS + 60_000

    async def test_fails_open_without_redis(self, no_redis):
        for _ in range(10):
            result = await check_limit("test", "1.2.3.4", 3, 60, now_ms=NOW_MS)
            assert result.allowed
            assert result.remaining == 3

    async def test_check_scope_uses_rule(self, fake_redis):
        result = await check_scope("ai", "user:1")
        assert result.limit == RATE_LIMITS["ai"].max_requests == 20
        assert result.remaining == 19


class TestClientIp:
    def test_forwarded_for_first_hop(self):
        assert client_ip({"x-forwarded-for": "10.0.0.1, 10.0.0.2"}, "127.0.0.1") == "10.0.0.1"

    def test_real_ip(self):
        assert client_ip({"x-real-ip": " 10.0.0.9 "}, "127.0.0.1") == "10.0.0.9"

    def test_socket_peer(self):
        assert client_ip({}, "127.0.0.1") == "127.0.0.1"

    def test_unknown(self):
        assert client_ip({}, None) == "unknown"
