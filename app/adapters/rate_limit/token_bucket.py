"""In-memory token bucket rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: the bucket map is guarded by one lock, each bucket by its own,
  so unrelated clients never wait on each other while consuming tokens.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass, field
from typing import Callable

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult

logger = logging.getLogger(__name__)


@dataclass
class _Bucket:
    tokens: float
    refilled_at: float
    last_seen: float
    lock: threading.Lock = field(default_factory=threading.Lock)


class TokenBucketRateLimiter(AbstractRateLimiter):
    """Classic token bucket, one bucket per client identifier.

    A fresh client starts with ``burst`` tokens. One token is added every
    ``refill_seconds`` up to ``burst``. Each admitted request consumes one.

    Buckets are created lazily and removed by ``sweep_idle`` once they have
    not been touched for ``idle_multiplier * refill_seconds``.
    """

    def __init__(
        self,
        *,
        refill_seconds: float,
        burst: int,
        idle_multiplier: int = 10,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the token bucket limiter.

        Args:
            refill_seconds: Seconds needed to regain one token.
            burst: Bucket capacity.
            idle_multiplier: Idle buckets older than this many refill
                intervals are removed by ``sweep_idle``.
            clock: Time source function returning UNIX time in seconds.

        Raises:
            ValueError: If any argument is out of range.
        """
        if refill_seconds <= 0:
            raise ValueError("refill_seconds must be > 0")
        if burst < 1:
            raise ValueError("burst must be >= 1")
        if idle_multiplier < 1:
            raise ValueError("idle_multiplier must be >= 1")

        self._refill_seconds = float(refill_seconds)
        self._burst = burst
        self._idle_seconds = idle_multiplier * self._refill_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._buckets: dict[str, _Bucket] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._buckets)

    def _get_bucket(self, key: str, now: float) -> _Bucket:
        with self._lock:
            bucket = self._buckets.get(key)
            if bucket is None:
                bucket = _Bucket(tokens=float(self._burst), refilled_at=now, last_seen=now)
                self._buckets[key] = bucket
            bucket.last_seen = now
            return bucket

    def _refill_locked(self, bucket: _Bucket, now: float) -> None:
        elapsed = max(0.0, now - bucket.refilled_at)
        bucket.tokens = min(float(self._burst), bucket.tokens + elapsed / self._refill_seconds)
        bucket.refilled_at = max(bucket.refilled_at, now)

    def _reset_at(self, bucket: _Bucket, now: float) -> int:
        missing = self._burst - bucket.tokens
        return int(math.ceil(now + missing * self._refill_seconds))

    def consume(self, key: str, *, cost: int = 1) -> RateLimitResult:
        """Try to take ``cost`` tokens from the bucket of ``key``.

        Raises:
            ValueError: If key is empty or cost is invalid.
        """
        if cost < 1:
            raise ValueError("cost must be >= 1")
        if not key:
            raise ValueError("key must be a non-empty string")

        now = self._clock()
        bucket = self._get_bucket(key, now)

        with bucket.lock:
            self._refill_locked(bucket, now)

            if bucket.tokens >= cost:
                bucket.tokens -= cost
                return RateLimitResult(
                    allowed=True,
                    limit=self._burst,
                    remaining=int(bucket.tokens),
                    reset_at=self._reset_at(bucket, now),
                    retry_after_seconds=None,
                )

            deficit = cost - bucket.tokens
            return RateLimitResult(
                allowed=False,
                limit=self._burst,
                remaining=0,
                reset_at=self._reset_at(bucket, now),
                retry_after_seconds=max(1, int(math.ceil(deficit * self._refill_seconds))),
            )

    def sweep_idle(self) -> int:
        """Remove buckets untouched for longer than the idle threshold."""
        cutoff = self._clock() - self._idle_seconds
        with self._lock:
            stale = [key for key, bucket in self._buckets.items() if bucket.last_seen < cutoff]
            for key in stale:
                del self._buckets[key]
            remaining = len(self._buckets)

        if stale:
            logger.debug(
                "rate_limit.swept",
                extra={"removed": len(stale), "buckets": remaining},
            )
        return len(stale)
