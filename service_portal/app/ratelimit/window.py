"""
Fixed-window rate limiter for the portal's /api routes.

A client gets ``max_requests`` requests per window. The window opens on the
client's first request and resets once ``window_seconds`` have elapsed since
it opened. Counter state sits behind ``CounterStore`` so a single-process
dict and a shared Redis keyspace satisfy the same contract.
"""

import time
from dataclasses import dataclass
from typing import Dict, Optional

import redis.asyncio as redis
from fastapi import Request

from shared.logging import get_logger


@dataclass
class RateWindow:
    """Request count for one client inside the current window."""

    count: int
    window_start: float


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of one admission check."""

    allowed: bool
    count: int
    limit: int
    remaining: int
    reset_in_seconds: int
    error: Optional[str] = None

    def headers(self) -> Dict[str, str]:
        """Standard rate limit headers for the response."""
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_in_seconds),
        }
        if not self.allowed:
            headers["Retry-After"] = str(self.reset_in_seconds)
        return headers


class CounterStore:
    """Interface for per-client window counters."""

    async def hit(self, key: str, now: float, window_seconds: int) -> RateWindow:
        """Count one request for ``key`` and return the updated window."""
        raise NotImplementedError

    async def close(self) -> None:
        pass


class InMemoryCounterStore(CounterStore):
    """Counter store for a single worker process.

    The update is synchronous, so inside one event loop no two requests can
    interleave between the read and the write of a window.
    """

    def __init__(self):
        self._windows: Dict[str, RateWindow] = {}
        self._last_purge = 0.0

    async def hit(self, key: str, now: float, window_seconds: int) -> RateWindow:
        if now - self._last_purge >= window_seconds:
            self._purge(now, window_seconds)

        window = self._windows.get(key)
        if window is None or now - window.window_start >= window_seconds:
            window = RateWindow(count=0, window_start=now)
            self._windows[key] = window

        window.count += 1
        return RateWindow(count=window.count, window_start=window.window_start)

    def _purge(self, now: float, window_seconds: int) -> None:
        """Drop windows that have been idle past their duration."""
        expired = [
            key for key, window in self._windows.items()
            if now - window.window_start >= window_seconds
        ]
        for key in expired:
            del self._windows[key]
        self._last_purge = now

    def __len__(self) -> int:
        return len(self._windows)


class RedisCounterStore(CounterStore):
    """Counter store shared by every worker through Redis.

    ``SET NX PX`` opens the window with its expiry, ``INCR`` keeps the TTL,
    and both run in one MULTI/EXEC so concurrent workers never lose an
    increment.
    """

    KEY_PREFIX = "rate_limit:"

    def __init__(self, redis_url: str):
        self.redis_url = redis_url
        self.logger = get_logger("portal.rate_limiter.redis")
        self._redis: Optional[redis.Redis] = None

    async def _get_redis(self) -> redis.Redis:
        """Get Redis connection."""
        if self._redis is None:
            self._redis = redis.from_url(
                self.redis_url,
                socket_connect_timeout=2,
                socket_timeout=2,
            )
        return self._redis

    def _make_key(self, key: str) -> str:
        return f"{self.KEY_PREFIX}{key}"

    async def hit(self, key: str, now: float, window_seconds: int) -> RateWindow:
        redis_client = await self._get_redis()
        redis_key = self._make_key(key)
        window_ms = window_seconds * 1000

        async with redis_client.pipeline(transaction=True) as pipeline:
            pipeline.set(redis_key, 0, px=window_ms, nx=True)
            pipeline.incr(redis_key)
            pipeline.pttl(redis_key)
            _, count, ttl_ms = await pipeline.execute()

        if ttl_ms is None or ttl_ms < 0:
            ttl_ms = window_ms
        elapsed = (window_ms - ttl_ms) / 1000.0
        return RateWindow(count=int(count), window_start=now - elapsed)

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None


class FixedWindowRateLimiter:
    """Admits at most ``max_requests`` per client per window."""

    def __init__(self, store: CounterStore, window_seconds: int = 15 * 60, max_requests: int = 100):
        self.store = store
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self.logger = get_logger("portal.rate_limiter")

    async def admit(self, client_id: str, now: Optional[float] = None) -> RateLimitResult:
        """Count a request from ``client_id`` and decide whether it may proceed."""
        if now is None:
            now = time.time()

        try:
            window = await self.store.hit(client_id, now, self.window_seconds)
        except Exception as e:
            # Counter outages must not take the site down; authentication still applies.
            self.logger.error("Rate limit check error", client_id=client_id, error=str(e))
            return RateLimitResult(
                allowed=True,
                count=0,
                limit=self.max_requests,
                remaining=self.max_requests,
                reset_in_seconds=self.window_seconds,
                error="Counter store unavailable",
            )

        reset_in = max(0, int(round(window.window_start + self.window_seconds - now)))
        allowed = window.count <= self.max_requests

        if not allowed:
            self.logger.warning(
                "Rate limit exceeded",
                client_id=client_id,
                count=window.count,
                limit=self.max_requests
            )

        return RateLimitResult(
            allowed=allowed,
            count=window.count,
            limit=self.max_requests,
            remaining=max(0, self.max_requests - window.count),
            reset_in_seconds=reset_in,
        )


class ClientIdResolver:
    """Derives the rate limit bucket key from a request's network origin."""

    def __init__(self, trust_forwarded_for: bool = False):
        self.trust_forwarded_for = trust_forwarded_for

    def __call__(self, request: Request) -> str:
        if self.trust_forwarded_for:
            forwarded_for = request.headers.get("X-Forwarded-For")
            if isinstance(forwarded_for, str) and forwarded_for:
                return forwarded_for.split(",")[0].strip()

            real_ip = request.headers.get("X-Real-IP")
            if isinstance(real_ip, str) and real_ip:
                return real_ip.strip()

        return request.client.host if request.client else "unknown"
