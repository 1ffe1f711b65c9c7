"""
Rate limiting package for the portal.

Holds the fixed-window limiter and the counter stores that keep per-client
request counts, in process or in Redis.
"""

from .window import (
    ClientIdResolver,
    CounterStore,
    FixedWindowRateLimiter,
    InMemoryCounterStore,
    RateLimitResult,
    RateWindow,
    RedisCounterStore,
)

__all__ = [
    "ClientIdResolver",
    "CounterStore",
    "FixedWindowRateLimiter",
    "InMemoryCounterStore",
    "RateLimitResult",
    "RateWindow",
    "RedisCounterStore",
]
