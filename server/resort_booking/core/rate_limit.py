"""Sliding-window request rate limiting with pluggable stores."""

import logging
import time
import uuid
from abc import ABC, abstractmethod
from collections import OrderedDict, deque
from threading import Lock
from typing import Callable, Deque, NamedTuple, Optional

import redis.asyncio as redis

from .config import settings

logger = logging.getLogger(__name__)


class RateLimitResult(NamedTuple):
    """Outcome of recording one request against a limit."""

    allowed: bool
    remaining: int
    retry_after: int


class RateLimitStore(ABC):
    """Counter store keyed by client and endpoint."""

    @abstractmethod
    async def hit(self, key: str, max_requests: int, window_seconds: int) -> RateLimitResult:
        """Record a request for ``key`` and report whether it is within the limit."""

    async def close(self) -> None:
        """Release any resources held by the store."""


class InMemoryRateLimitStore(RateLimitStore):
    """
    Single-instance store holding a timestamp window per key.

    The key set is bounded: the least recently used key is evicted once
    ``max_keys`` is reached. Keys whose window has fully elapsed are swept
    at most once per ``sweep_interval`` seconds.
    """

    def __init__(
        self,
        max_keys: int = 10000,
        sweep_interval: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_keys = max_keys
        self.sweep_interval = sweep_interval
        self._clock = clock
        self._windows: "OrderedDict[str, tuple[Deque[float], int]]" = OrderedDict()
        self._last_sweep = clock()
        self._lock = Lock()

    def __len__(self) -> int:
        return len(self._windows)

    def _sweep(self, now: float) -> None:
        expired = [
            key for key, (stamps, window) in self._windows.items()
            if not stamps or stamps[-1] <= now - window
        ]
        for key in expired:
            del self._windows[key]
        self._last_sweep = now

    async def hit(self, key: str, max_requests: int, window_seconds: int) -> RateLimitResult:
        with self._lock:
            now = self._clock()
            if now - self._last_sweep >= self.sweep_interval:
                self._sweep(now)

            entry = self._windows.get(key)
            if entry is None:
                while len(self._windows) >= self.max_keys:
                    self._windows.popitem(last=False)
                stamps: Deque[float] = deque()
                self._windows[key] = (stamps, window_seconds)
            else:
                stamps = entry[0]
                self._windows.move_to_end(key)

            # Drop timestamps that left the window
            while stamps and stamps[0] <= now - window_seconds:
                stamps.popleft()

            if len(stamps) >= max_requests:
                retry_after = max(1, int(stamps[0] + window_seconds - now + 0.999))
                return RateLimitResult(False, 0, retry_after)

            stamps.append(now)
            return RateLimitResult(True, max_requests - len(stamps), 0)


class RedisRateLimitStore(RateLimitStore):
    """Store shared across instances, one sorted set of request timestamps per key."""

    def __init__(self, client: redis.Redis, prefix: str = "ratelimit:"):
        self._redis = client
        self.prefix = prefix

    @classmethod
    def from_url(cls, url: str) -> "RedisRateLimitStore":
        return cls(redis.from_url(url, encoding="utf-8", decode_responses=True))

    async def hit(self, key: str, max_requests: int, window_seconds: int) -> RateLimitResult:
        redis_key = f"{self.prefix}{key}"
        now = time.time()
        member = f"{now}:{uuid.uuid4().hex}"

        pipe = self._redis.pipeline(transaction=True)
        pipe.zremrangebyscore(redis_key, 0, now - window_seconds)
        pipe.zadd(redis_key, {member: now})
        pipe.zcard(redis_key)
        pipe.zrange(redis_key, 0, 0, withscores=True)
        pipe.expire(redis_key, window_seconds)
        _, _, count, oldest, _ = await pipe.execute()

        if count > max_requests:
            await self._redis.zrem(redis_key, member)
            oldest_score = oldest[0][1] if oldest else now
            retry_after = max(1, int(oldest_score + window_seconds - now + 0.999))
            return RateLimitResult(False, 0, retry_after)

        return RateLimitResult(True, max_requests - count, 0)

    async def close(self) -> None:
        await self._redis.aclose()


_store: Optional[RateLimitStore] = None


def get_rate_limit_store() -> RateLimitStore:
    """Return the process-wide store, selected by ``settings.redis_url``."""
    global _store
    if _store is None:
        if settings.redis_url:
            _store = RedisRateLimitStore.from_url(settings.redis_url)
            logger.info("Using Redis rate limit store")
        else:
            _store = InMemoryRateLimitStore(max_keys=settings.rate_limit_max_keys)
            logger.info(
                "Using in-process rate limit store",
                extra={"max_keys": settings.rate_limit_max_keys},
            )
    return _store


async def close_rate_limit_store() -> None:
    global _store
    if _store is not None:
        await _store.close()
        _store = None
