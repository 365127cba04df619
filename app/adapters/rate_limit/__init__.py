"""Rate limiting adapters.

The orchestrator and the HTTP layer depend on AbstractRateLimiter only, so the
in-process token bucket can later be replaced by a shared store (e.g. Redis)
without touching callers.
"""

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from app.adapters.rate_limit.token_bucket import TokenBucketRateLimiter

__all__ = [
    "AbstractRateLimiter",
    "RateLimitResult",
    "TokenBucketRateLimiter",
]
