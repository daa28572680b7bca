# app/rate_limit.py
"""Fixed-window request throttling keyed by caller identity.

Windows reset lazily: the first request after ``reset_time`` opens a fresh
window. Bursts straddling a window boundary can therefore reach twice the
limit, which is fine for advisory throttling.
"""
import hashlib
import logging
import math
import random
import threading
import time
from dataclasses import dataclass
from typing import Callable

from app.settings import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitConfig:
    window_ms: int
    max_requests: int


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_time: int  # epoch milliseconds
    retry_after_seconds: int | None = None

    def headers(self) -> dict[str, str]:
        out = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_time),
        }
        if self.retry_after_seconds is not None:
            out["Retry-After"] = str(self.retry_after_seconds)
        return out


GENERATION = RateLimitConfig(settings.RATE_LIMIT_GENERATION_WINDOW_MS, settings.RATE_LIMIT_GENERATION_MAX)
API = RateLimitConfig(settings.RATE_LIMIT_API_WINDOW_MS, settings.RATE_LIMIT_API_MAX)
AUTH = RateLimitConfig(settings.RATE_LIMIT_AUTH_WINDOW_MS, settings.RATE_LIMIT_AUTH_MAX)
WORKER = RateLimitConfig(settings.RATE_LIMIT_WORKER_WINDOW_MS, settings.RATE_LIMIT_WORKER_MAX)


def fingerprint(ip: str | None, user_agent: str | None) -> str:
    combined = f"{ip or 'unknown'}-{user_agent or 'unknown'}"
    digest = hashlib.sha256(combined.encode("utf-8")).hexdigest()[:32]
    return f"rate_limit:{digest}"


def user_key(user_id: str) -> str:
    return f"user:{user_id}"


def _now_ms() -> int:
    return int(time.time() * 1000)


class RateLimitStore:
    """Storage backing for the fixed-window counters."""

    def hit(self, key: str, config: RateLimitConfig, now_ms: int) -> tuple[int, int, bool]:
        """Count one request; returns ``(count, reset_time, counted)``."""
        raise NotImplementedError

    def sweep(self, now_ms: int) -> int:
        return 0


class MemoryRateLimitStore(RateLimitStore):
    """Process-local table. Each instance of the service throttles on its own."""

    def __init__(self):
        self._entries: dict[str, list[int]] = {}  # key -> [count, reset_time]
        self._lock = threading.Lock()

    def hit(self, key, config, now_ms):
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or now_ms > entry[1]:
                entry = [1, now_ms + config.window_ms]
                self._entries[key] = entry
                return entry[0], entry[1], True
            if entry[0] >= config.max_requests:
                return entry[0], entry[1], False
            entry[0] += 1
            return entry[0], entry[1], True

    def sweep(self, now_ms):
        with self._lock:
            expired = [k for k, (_, reset_time) in self._entries.items() if now_ms > reset_time]
            for k in expired:
                del self._entries[k]
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)


class RedisRateLimitStore(RateLimitStore):
    """Counters shared by every instance through Redis. Keys expire on their own."""

    def __init__(self, client, prefix: str = "ratelimit:"):
        self.client = client
        self.prefix = prefix

    def hit(self, key, config, now_ms):
        name = self.prefix + key
        pipe = self.client.pipeline()
        # SET NX opens the window with its expiry; plain INCR keeps the TTL
        pipe.set(name, 0, px=config.window_ms, nx=True)
        pipe.incr(name)
        pipe.pttl(name)
        _, count, ttl = pipe.execute()
        if ttl is None or ttl < 0:
            ttl = config.window_ms
        return int(count), now_ms + int(ttl), int(count) <= config.max_requests


class RateLimiter:
    def __init__(
        self,
        store: RateLimitStore | None = None,
        clock: Callable[[], int] = _now_ms,
        sweep_probability: float = settings.RATE_LIMIT_SWEEP_PROBABILITY,
        rng: Callable[[], float] = random.random,
    ):
        self.store = store or MemoryRateLimitStore()
        self.clock = clock
        self.sweep_probability = sweep_probability
        self.rng = rng

    def check(self, key: str, config: RateLimitConfig) -> RateLimitResult:
        now = self.clock()
        if self.rng() < self.sweep_probability:
            self.store.sweep(now)

        count, reset_time, allowed = self.store.hit(key, config, now)
        if not allowed:
            retry_after = max(0, math.ceil((reset_time - now) / 1000))
            logger.info("Rate limit exceeded for %s (limit=%d)", key, config.max_requests)
            return RateLimitResult(
                allowed=False,
                limit=config.max_requests,
                remaining=0,
                reset_time=reset_time,
                retry_after_seconds=retry_after,
            )
        return RateLimitResult(
            allowed=True,
            limit=config.max_requests,
            remaining=max(0, config.max_requests - count),
            reset_time=reset_time,
        )

    def sweep(self) -> int:
        return self.store.sweep(self.clock())


def build_rate_limiter() -> RateLimiter:
    if settings.RATE_LIMIT_BACKEND == "redis":
        from redis import Redis
        return RateLimiter(RedisRateLimitStore(Redis.from_url(str(settings.REDIS_URL))))
    return RateLimiter(MemoryRateLimitStore())
