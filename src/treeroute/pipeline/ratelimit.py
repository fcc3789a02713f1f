"""In-memory token-bucket rate limiting.

A :class:`TokenBucketLimiter` grants ``points`` permits per ``duration``
seconds to each client key, refilling continuously.  Limiters are handed
out by a :class:`RateLimiterRegistry` that callers own and inject into
pipeline assembly; a process-wide default registry exists for callers
that don't care.

Registry lifetime: a limiter is created on first request for a
``(key_prefix, points, duration)`` triple and reused for the life of the
process until :meth:`RateLimiterRegistry.reset` is called.
"""

from __future__ import annotations

import logging
import math
import re
import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from treeroute.errors import RateLimitInvalid

logger = logging.getLogger("treeroute.ratelimit")

_UNITS: dict[str, float] = {
    "ms": 0.001,
    "msec": 0.001,
    "msecs": 0.001,
    "millisecond": 0.001,
    "milliseconds": 0.001,
    "s": 1.0,
    "sec": 1.0,
    "secs": 1.0,
    "second": 1.0,
    "seconds": 1.0,
    "m": 60.0,
    "min": 60.0,
    "mins": 60.0,
    "minute": 60.0,
    "minutes": 60.0,
    "h": 3600.0,
    "hr": 3600.0,
    "hrs": 3600.0,
    "hour": 3600.0,
    "hours": 3600.0,
    "d": 86400.0,
    "day": 86400.0,
    "days": 86400.0,
    "w": 604800.0,
    "week": 604800.0,
    "weeks": 604800.0,
    "y": 31557600.0,
    "yr": 31557600.0,
    "yrs": 31557600.0,
    "year": 31557600.0,
    "years": 31557600.0,
}

_DURATION_RE = re.compile(r"^\s*(\d*\.?\d+)\s*([a-z]*)\s*$", re.IGNORECASE)


def parse_duration(value: str) -> float:
    """Parse a human duration string into seconds.

    A bare number is milliseconds::

        parse_duration("1s")        -> 1.0
        parse_duration("2 minutes") -> 120.0
        parse_duration("250ms")     -> 0.25
        parse_duration("1500")      -> 1.5

    Raises:
        RateLimitInvalid: The string is not a positive duration.
    """
    match = _DURATION_RE.match(value)
    if match is None:
        raise RateLimitInvalid(f"Invalid rate limit duration: {value!r}")
    amount, unit = match.groups()
    unit = unit.lower() or "ms"
    if unit not in _UNITS:
        raise RateLimitInvalid(f"Unknown duration unit {unit!r} in {value!r}")
    seconds = float(amount) * _UNITS[unit]
    if seconds <= 0:
        raise RateLimitInvalid(f"Rate limit duration must be positive: {value!r}")
    return seconds


@dataclass(frozen=True, slots=True)
class RateLimitConfig:
    """A rate-limit policy: ``points`` permits per ``duration`` seconds.

    ``key_prefix`` names the limiter; routes sharing a prefix and policy
    share permits.  ``None`` means the registry's default prefix.
    """

    points: int = 1
    duration: float = 1.0
    key_prefix: str | None = None

    @classmethod
    def coerce(cls, value: Any) -> RateLimitConfig:
        """Build a policy from a duration string, a mapping, or a RateLimitConfig.

        A string means one permit per span.  A mapping accepts ``points``,
        ``duration`` (seconds or a duration string), and ``key_prefix``.

        Raises:
            RateLimitInvalid: The value is malformed.
        """
        if isinstance(value, RateLimitConfig):
            config = value
        elif isinstance(value, str):
            config = cls(points=1, duration=parse_duration(value))
        elif isinstance(value, Mapping):
            duration = value.get("duration", 1.0)
            if isinstance(duration, str):
                duration = parse_duration(duration)
            config = cls(
                points=value.get("points", 1),
                duration=duration,
                key_prefix=value.get("key_prefix"),
            )
        else:
            raise RateLimitInvalid('The "rate_limit" parameter is not a string or a mapping')

        if isinstance(config.points, bool) or not isinstance(config.points, int) or config.points < 1:
            raise RateLimitInvalid(f"Rate limit points must be a positive integer: {config.points!r}")
        if (
            isinstance(config.duration, bool)
            or not isinstance(config.duration, (int, float))
            or config.duration <= 0
        ):
            raise RateLimitInvalid(f"Rate limit duration must be positive: {config.duration!r}")
        if config.key_prefix is not None and not isinstance(config.key_prefix, str):
            raise RateLimitInvalid(f"Rate limit key_prefix must be a string: {config.key_prefix!r}")
        return config


class TokenBucketLimiter:
    """Per-key token buckets refilled at ``points / duration`` per second."""

    __slots__ = ("_clock", "_lock", "_rate", "_state", "duration", "points")

    def __init__(
        self,
        points: int,
        duration: float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.points = points
        self.duration = duration
        self._rate = points / duration
        self._clock = clock
        self._lock = threading.Lock()
        # key -> (tokens, updated_at)
        self._state: dict[str, tuple[float, float]] = {}

    def consume(self, key: str) -> tuple[bool, int]:
        """Take one permit for *key*.

        Returns ``(allowed, retry_after_seconds)``; ``retry_after`` is 0
        when allowed and at least 1 otherwise.
        """
        with self._lock:
            now = self._clock()
            tokens, updated_at = self._state.get(key, (float(self.points), now))
            tokens = min(float(self.points), tokens + max(0.0, now - updated_at) * self._rate)
            if tokens >= 1.0:
                self._state[key] = (tokens - 1.0, now)
                return True, 0
            self._state[key] = (tokens, now)
            retry_after = max(1, math.ceil((1.0 - tokens) / self._rate))
            return False, retry_after

    def remaining(self, key: str) -> int:
        """Whole permits currently available to *key*."""
        with self._lock:
            now = self._clock()
            tokens, updated_at = self._state.get(key, (float(self.points), now))
        return int(min(float(self.points), tokens + max(0.0, now - updated_at) * self._rate))

    def reset(self, key: str | None = None) -> None:
        """Forget state for *key*, or for every key when omitted."""
        with self._lock:
            if key is None:
                self._state.clear()
            else:
                self._state.pop(key, None)


class RateLimiterRegistry:
    """Owns the process's limiters, keyed by prefix and policy.

    Limiters are keyed by ``(key_prefix, points, duration)`` rather than by
    prefix alone, so two routes sharing a prefix with different policies get
    separate buckets instead of whichever policy was assembled first.
    Routes with the same policy and no ``key_prefix`` share the
    ``default_key_prefix`` limiter.

    Usage::

        limiters = RateLimiterRegistry()
        mount(app, dir="routes", limiters=limiters)
        ...
        limiters.reset()  # e.g. between tests
    """

    __slots__ = ("_clock", "_limiters", "_lock", "default_key_prefix")

    def __init__(
        self,
        default_key_prefix: str = "treeroute",
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.default_key_prefix = default_key_prefix
        self._clock = clock
        self._lock = threading.Lock()
        self._limiters: dict[tuple[str, int, float], TokenBucketLimiter] = {}

    def limiter_for(self, config: RateLimitConfig) -> TokenBucketLimiter:
        """Return the limiter for *config*, creating it on first use."""
        key = (config.key_prefix or self.default_key_prefix, config.points, float(config.duration))
        with self._lock:
            limiter = self._limiters.get(key)
            if limiter is None:
                limiter = TokenBucketLimiter(config.points, config.duration, clock=self._clock)
                self._limiters[key] = limiter
                logger.debug("Created limiter %s: %d per %.3fs", key[0], config.points, config.duration)
            return limiter

    def __len__(self) -> int:
        return len(self._limiters)

    def reset(self) -> None:
        """Drop every limiter; the next request starts with full buckets."""
        with self._lock:
            self._limiters.clear()


# Used when a caller assembles pipelines without supplying a registry
default_registry = RateLimiterRegistry()
