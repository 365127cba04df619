"""Rate limiting wiring for the HTTP layer.

This module builds the process-wide token bucket limiter, derives the client
identifier of a request, exposes a FastAPI dependency for routes that are not
served by the lookup orchestrator, and runs the idle bucket sweep.

Rate limiting strategy:
- One token bucket per client address.
- Behind a trusted proxy (APP_TRUST_FORWARDED_FOR=true) the first
  X-Forwarded-For hop is used instead of the socket peer address.
"""

from __future__ import annotations

import asyncio
import logging

from fastapi import Request

from app.adapters.rate_limit.base import AbstractRateLimiter
from app.adapters.rate_limit.token_bucket import TokenBucketRateLimiter
from app.core.config import AppSettings, settings

logger = logging.getLogger(__name__)


def create_rate_limiter(app_settings: AppSettings | None = None) -> AbstractRateLimiter | None:
    """Build the limiter from APP_RATE_LIMIT_* settings, or None when disabled."""

    cfg = app_settings or settings.app
    if not cfg.rate_limit_enabled:
        logger.info("rate_limit.disabled")
        return None

    return TokenBucketRateLimiter(
        refill_seconds=cfg.rate_limit_refill_seconds,
        burst=cfg.rate_limit_burst,
        idle_multiplier=cfg.rate_limit_idle_multiplier,
    )


def get_client_id(request: Request) -> str:
    """Return the identifier used to rate limit this request.

    Args:
        request: FastAPI request.

    Returns:
        str: Client address, or "unknown" when the server cannot tell.
    """

    if settings.app.trust_forwarded_for:
        forwarded = request.headers.get("X-Forwarded-For", "")
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop

    return request.client.host if request.client else "unknown"


async def enforce_rate_limit(request: Request) -> None:
    """FastAPI dependency consuming one token for the calling client.

    Used on routes that do not go through LookupService.handle (which applies
    the limit itself as its first step).

    Raises:
        RateLimitedError: When the client's bucket is empty.
    """

    service = request.app.state.lookup_service
    service.check_rate_limit(get_client_id(request))


async def sweep_idle_buckets(limiter: AbstractRateLimiter, interval_seconds: float) -> None:
    """Periodically drop idle buckets until cancelled."""

    while True:
        await asyncio.sleep(interval_seconds)
        removed = limiter.sweep_idle()
        if removed:
            logger.info("rate_limit.sweep", extra={"removed": removed})
