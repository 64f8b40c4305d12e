# giftrecs/utils/rate_limit.py
from __future__ import annotations
from typing import Callable, Tuple
import time

from giftrecs.utils.cache import TTLCache


class TokenBucketLimiter:
    """
    Per-key token bucket: `capacity` burst, refilled at `refill_per_s`.
    Buckets live in a bounded TTL map so idle keys are forgotten.
    """

    def __init__(
        self,
        capacity: int = 60,
        refill_per_s: float = 1.0,
        *,
        max_keys: int = 10_000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.capacity = capacity
        self.refill_per_s = refill_per_s
        self._clock = clock
        # an untouched bucket is full again after capacity / refill seconds
        idle_ttl = capacity / refill_per_s if refill_per_s > 0 else 3600.0
        self._buckets = TTLCache(max_size=max_keys, ttl=idle_ttl, clock=clock)

    def allow(self, key: str) -> bool:
        now = self._clock()
        bucket: Tuple[float, float] | None = self._buckets.get(key)
        tokens, last = bucket if bucket else (float(self.capacity), now)

        tokens = min(float(self.capacity), tokens + (now - last) * self.refill_per_s)
        allowed = tokens >= 1.0
        if allowed:
            tokens -= 1.0
        self._buckets.set(key, (tokens, now))
        return allowed

    def clear(self) -> None:
        self._buckets.clear()
