"""Request limiter for the Nucleus API, keyed per caller.

A sliding window in Redis when ``NUCLEUS_REDIS_URL`` is configured, otherwise
(or while Redis is unreachable) a fixed window held in process memory.
"""

import logging
import math
import threading
import time
import uuid
from dataclasses import dataclass

import redis

from app.core.config import settings

logger = logging.getLogger(__name__)

REDIS_KEY_PREFIX = "nucleus:rl"


@dataclass
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_ms: int


class InMemoryRateLimiter:
    def __init__(self) -> None:
        self._buckets: dict[str, tuple[int, float]] = {}
        self._lock = threading.Lock()
        self._next_sweep_ms = 0.0

    def _sweep(self, now_ms: float, window_ms: int) -> None:
        if now_ms < self._next_sweep_ms:
            return
        expired = [key for key, (_, reset_at) in self._buckets.items() if now_ms > reset_at]
        for key in expired:
            del self._buckets[key]
        self._next_sweep_ms = now_ms + window_ms

    def hit(self, key: str, *, limit: int, window_ms: int, now: float | None = None) -> RateLimitResult:
        now_ms = (time.monotonic() if now is None else now) * 1000
        with self._lock:
            self._sweep(now_ms, window_ms)
            existing = self._buckets.get(key)
            if existing is None or now_ms > existing[1]:
                reset_at = now_ms + window_ms
                self._buckets[key] = (1, reset_at)
                return RateLimitResult(
                    allowed=True,
                    limit=limit,
                    remaining=max(0, limit - 1),
                    reset_ms=int(reset_at - now_ms),
                )

            count = existing[0] + 1
            self._buckets[key] = (count, existing[1])
            result = RateLimitResult(
                allowed=count <= limit,
                limit=limit,
                remaining=max(0, limit - count),
                reset_ms=int(max(0, existing[1] - now_ms)),
            )
        if not result.allowed:
            logger.info("Rate limit exceeded for %s (%s/%s)", key, count, limit)
        return result

    def reset(self) -> None:
        with self._lock:
            self._buckets.clear()
            self._next_sweep_ms = 0.0


class RedisRateLimiter:
    """Sliding-window limiter over a Redis sorted set per key.

    Rejected requests are not counted. Redis errors degrade to ``fallback``.
    """

    def __init__(self, client: redis.Redis, fallback: InMemoryRateLimiter | None = None, prefix: str = REDIS_KEY_PREFIX):
        self.client = client
        self.fallback = fallback or InMemoryRateLimiter()
        self.prefix = prefix

    def hit(self, key: str, *, limit: int, window_ms: int, now: float | None = None) -> RateLimitResult:
        now_ms = int((time.time() if now is None else now) * 1000)
        redis_key = f"{self.prefix}:{key}"
        member = f"{now_ms}-{uuid.uuid4().hex}"

        try:
            pipe = self.client.pipeline()
            pipe.zremrangebyscore(redis_key, 0, now_ms - window_ms)
            pipe.zadd(redis_key, {member: now_ms})
            pipe.zcard(redis_key)
            pipe.zrange(redis_key, 0, 0, withscores=True)
            pipe.pexpire(redis_key, window_ms)
            results = pipe.execute()

            count = int(results[2])
            oldest = results[3]
            if count > limit:
                self.client.zrem(redis_key, member)
        except redis.RedisError as e:
            logger.warning("Redis rate limit check for %s failed, using in-memory fallback: %s", key, e)
            return self.fallback.hit(key, limit=limit, window_ms=window_ms)

        oldest_ms = float(oldest[0][1]) if oldest else float(now_ms)
        allowed = count <= limit
        if not allowed:
            logger.info("Rate limit exceeded for %s (%s/%s)", key, count, limit)
        return RateLimitResult(
            allowed=allowed,
            limit=limit,
            remaining=max(0, limit - count),
            reset_ms=int(max(0, oldest_ms + window_ms - now_ms)),
        )

    def reset(self) -> None:
        self.fallback.reset()


RateLimiter = InMemoryRateLimiter | RedisRateLimiter

_limiter: RateLimiter | None = None
_limiter_lock = threading.Lock()


def build_rate_limiter() -> RateLimiter:
    if settings.NUCLEUS_REDIS_URL:
        client = redis.Redis.from_url(
            settings.NUCLEUS_REDIS_URL,
            decode_responses=True,
            socket_timeout=1.0,
            socket_connect_timeout=1.0,
        )
        logger.info("Nucleus rate limiting backed by Redis")
        return RedisRateLimiter(client)
    return InMemoryRateLimiter()


def get_rate_limiter() -> RateLimiter:
    global _limiter
    with _limiter_lock:
        if _limiter is None:
            _limiter = build_rate_limiter()
        return _limiter


def rate_limit(key: str, *, limit: int | None = None, window_ms: int | None = None) -> RateLimitResult:
    limit = limit if limit and limit > 0 else settings.NUCLEUS_RATE_LIMIT_MAX
    window_ms = window_ms if window_ms and window_ms > 0 else settings.NUCLEUS_RATE_LIMIT_WINDOW_MS
    return get_rate_limiter().hit(key, limit=limit, window_ms=window_ms)


def rate_limit_headers(result: RateLimitResult, *, blocked: bool = False) -> dict[str, str]:
    reset_seconds = math.ceil(result.reset_ms / 1000)
    headers = {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(max(0, result.remaining)),
        "X-RateLimit-Reset": str(reset_seconds),
    }
    if blocked:
        headers["Retry-After"] = str(reset_seconds)
    return headers
