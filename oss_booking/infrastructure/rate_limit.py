# oss_booking/infrastructure/rate_limit.py

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Protocol

import redis

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitRule:
    max_requests: int
    window_ms: int


@dataclass(frozen=True)
class RateLimits:
    LOGIN: RateLimitRule = RateLimitRule(max_requests=5, window_ms=60_000)
    BOOKING_CREATE: RateLimitRule = RateLimitRule(max_requests=10, window_ms=60_000)
    ORDER_CREATE: RateLimitRule = RateLimitRule(max_requests=5, window_ms=60_000)
    BOOKING_READ: RateLimitRule = RateLimitRule(max_requests=30, window_ms=60_000)
    PUBLIC_READ: RateLimitRule = RateLimitRule(max_requests=60, window_ms=60_000)


RATE_LIMITS = RateLimits()


class RateLimiter(Protocol):
    def is_rate_limited(self, key: str, max_requests: int, window_ms: int) -> bool:
        ...


def _now_ms() -> float:
    return time.time() * 1000


@dataclass
class _Window:
    count: int
    reset_time: float


class InMemoryRateLimiter:
    """
    Fixed-window counter held in process memory.
    Advisory only: every worker keeps its own counts and a restart clears them.
    """

    def __init__(
        self,
        clock: Callable[[], float] = _now_ms,
        sweep_interval_ms: int = 60_000,
    ):
        self._clock = clock
        self._sweep_interval_ms = sweep_interval_ms
        self._windows: dict[str, _Window] = {}
        self._lock = threading.Lock()
        self._next_sweep = clock() + sweep_interval_ms

    def is_rate_limited(self, key: str, max_requests: int, window_ms: int) -> bool:
        now = self._clock()
        with self._lock:
            if now >= self._next_sweep:
                self._sweep(now)

            window = self._windows.get(key)
            if window is None or now > window.reset_time:
                self._windows[key] = _Window(count=1, reset_time=now + window_ms)
                return False

            window.count += 1
            return window.count > max_requests

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()

    def __len__(self) -> int:
        return len(self._windows)

    def _sweep(self, now: float) -> None:
        expired = [key for key, window in self._windows.items() if now > window.reset_time]
        for key in expired:
            del self._windows[key]
        self._next_sweep = now + self._sweep_interval_ms


class RedisRateLimiter:
    """Fixed window shared by every instance through INCR + PEXPIRE."""

    def __init__(self, client: redis.Redis, prefix: str = "ratelimit"):
        self._client = client
        self._prefix = prefix

    @classmethod
    def from_url(cls, url: str) -> "RedisRateLimiter":
        return cls(redis.from_url(url, decode_responses=True))

    def is_rate_limited(self, key: str, max_requests: int, window_ms: int) -> bool:
        redis_key = f"{self._prefix}:{key}"
        try:
            count = self._client.incr(redis_key)
            if count == 1:
                self._client.pexpire(redis_key, window_ms)
        except redis.RedisError:
            logger.warning("Redis rate limit check failed; allowing request key=%s", key, exc_info=True)
            return False
        return count > max_requests


def build_rate_limiter(backend: str, redis_url: str) -> RateLimiter:
    if backend == "redis":
        return RedisRateLimiter.from_url(redis_url)
    return InMemoryRateLimiter()
