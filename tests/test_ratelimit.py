"""Tests for treeroute.pipeline.ratelimit — token buckets and the registry."""

import threading

import pytest

from treeroute.errors import RateLimitInvalid
from treeroute.pipeline.ratelimit import (
    RateLimitConfig,
    RateLimiterRegistry,
    TokenBucketLimiter,
    parse_duration,
)


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TestParseDuration:
    @pytest.mark.parametrize(
        ("value", "seconds"),
        [
            ("1s", 1.0),
            ("1 second", 1.0),
            ("2 minutes", 120.0),
            ("1m", 60.0),
            ("250ms", 0.25),
            ("1500", 1.5),
            ("1.5h", 5400.0),
            ("1d", 86400.0),
            ("1W", 604800.0),
        ],
    )
    def test_valid(self, value: str, seconds: float) -> None:
        assert parse_duration(value) == pytest.approx(seconds)

    @pytest.mark.parametrize("value", ["", "abc", "1 fortnight", "-1s", "0s"])
    def test_invalid(self, value: str) -> None:
        with pytest.raises(RateLimitInvalid):
            parse_duration(value)


class TestRateLimitConfig:
    def test_from_string(self) -> None:
        config = RateLimitConfig.coerce("1s")
        assert config.points == 1
        assert config.duration == 1.0
        assert config.key_prefix is None

    def test_from_mapping(self) -> None:
        config = RateLimitConfig.coerce({"points": 5, "duration": 60, "key_prefix": "login"})
        assert config == RateLimitConfig(points=5, duration=60, key_prefix="login")

    def test_mapping_duration_string(self) -> None:
        assert RateLimitConfig.coerce({"points": 2, "duration": "1m"}).duration == 60.0

    def test_passthrough(self) -> None:
        config = RateLimitConfig(points=3, duration=10)
        assert RateLimitConfig.coerce(config) is config

    @pytest.mark.parametrize(
        "value",
        [
            10,
            True,
            ["1s"],
            {"points": 0, "duration": 1},
            {"points": 1.5, "duration": 1},
            {"points": 1, "duration": 0},
            {"points": 1, "duration": "soon"},
            {"points": 1, "duration": 1, "key_prefix": 5},
        ],
    )
    def test_invalid(self, value: object) -> None:
        with pytest.raises(RateLimitInvalid) as info:
            RateLimitConfig.coerce(value)
        assert info.value.code == "RATE_LIMIT_INVALID"


class TestTokenBucketLimiter:
    def test_blocks_after_points(self) -> None:
        clock = FakeClock()
        limiter = TokenBucketLimiter(2, 60, clock=clock)
        assert limiter.consume("a") == (True, 0)
        assert limiter.consume("a") == (True, 0)
        allowed, retry_after = limiter.consume("a")
        assert allowed is False
        assert 30 <= retry_after <= 31

    def test_refills_over_time(self) -> None:
        clock = FakeClock()
        limiter = TokenBucketLimiter(1, 1, clock=clock)
        assert limiter.consume("a")[0] is True
        clock.advance(0.5)
        assert limiter.consume("a")[0] is False
        clock.advance(0.6)
        assert limiter.consume("a")[0] is True

    def test_clock_read_under_lock(self) -> None:
        held: list[bool] = []

        def clock() -> float:
            held.append(limiter._lock.locked())
            return 1000.0

        limiter = TokenBucketLimiter(1, 1, clock=clock)
        limiter.consume("a")
        limiter.remaining("a")
        assert held == [True, True]

    def test_clock_going_backwards_never_drains(self) -> None:
        clock = FakeClock()
        limiter = TokenBucketLimiter(2, 60, clock=clock)
        assert limiter.consume("a")[0] is True
        clock.advance(-30.0)
        assert limiter.remaining("a") == 1
        assert limiter.consume("a")[0] is True

    def test_per_key(self) -> None:
        limiter = TokenBucketLimiter(1, 60, clock=FakeClock())
        assert limiter.consume("10.0.0.1")[0] is True
        assert limiter.consume("10.0.0.1")[0] is False
        assert limiter.consume("10.0.0.2")[0] is True

    def test_remaining_and_reset(self) -> None:
        limiter = TokenBucketLimiter(3, 60, clock=FakeClock())
        limiter.consume("a")
        assert limiter.remaining("a") == 2
        assert limiter.remaining("b") == 3
        limiter.reset("a")
        assert limiter.remaining("a") == 3

    def test_concurrent_consumers_share_permits(self) -> None:
        limiter = TokenBucketLimiter(50, 3600, clock=FakeClock())
        results: list[bool] = []
        lock = threading.Lock()

        def worker() -> None:
            for _ in range(10):
                allowed, _retry = limiter.consume("shared")
                with lock:
                    results.append(allowed)

        threads = [threading.Thread(target=worker) for _ in range(10)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert results.count(True) == 50
        assert results.count(False) == 50


class TestRateLimiterRegistry:
    def test_reuses_limiter_for_same_policy(self) -> None:
        registry = RateLimiterRegistry()
        first = registry.limiter_for(RateLimitConfig(points=1, duration=1))
        second = registry.limiter_for(RateLimitConfig(points=1, duration=1.0))
        assert first is second
        assert len(registry) == 1

    def test_default_prefix_is_shared(self) -> None:
        registry = RateLimiterRegistry(default_key_prefix="app")
        explicit = registry.limiter_for(RateLimitConfig(points=1, duration=1, key_prefix="app"))
        implicit = registry.limiter_for(RateLimitConfig(points=1, duration=1))
        assert explicit is implicit

    def test_distinct_prefixes(self) -> None:
        registry = RateLimiterRegistry()
        login = registry.limiter_for(RateLimitConfig(key_prefix="login"))
        signup = registry.limiter_for(RateLimitConfig(key_prefix="signup"))
        assert login is not signup

    def test_distinct_policies(self) -> None:
        registry = RateLimiterRegistry()
        fast = registry.limiter_for(RateLimitConfig(points=1, duration=1))
        slow = registry.limiter_for(RateLimitConfig(points=1, duration=60))
        assert fast is not slow

    def test_shared_prefix_different_policies(self) -> None:
        registry = RateLimiterRegistry()
        strict = registry.limiter_for(RateLimitConfig(points=1, duration=60, key_prefix="api"))
        loose = registry.limiter_for(RateLimitConfig(points=100, duration=60, key_prefix="api"))
        assert strict is not loose
        assert strict.points == 1
        assert loose.points == 100

    def test_reset(self) -> None:
        registry = RateLimiterRegistry()
        before = registry.limiter_for(RateLimitConfig())
        registry.reset()
        assert len(registry) == 0
        assert registry.limiter_for(RateLimitConfig()) is not before

    def test_clock_is_shared_with_limiters(self) -> None:
        clock = FakeClock()
        limiter = RateLimiterRegistry(clock=clock).limiter_for(RateLimitConfig(points=1, duration=1))
        assert limiter.consume("a")[0] is True
        assert limiter.consume("a")[0] is False
        clock.advance(1.0)
        assert limiter.consume("a")[0] is True
