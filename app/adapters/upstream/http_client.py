"""HTTP client for the mobile name lookup provider."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, Awaitable, Callable

import httpx
from pydantic import BaseModel, ValidationError

from app.adapters.upstream.base import AbstractNameLookupClient, LookupOutcome
from app.core.logging import mask_mobile

logger = logging.getLogger(__name__)

LOOKUP_PATH = "/validation/misc/v1/mobile-name-lookup"


class _ProviderResult(BaseModel):
    mobile_linked_name: str | None = None


class ProviderResponse(BaseModel):
    """Body returned by the provider for a lookup call."""

    status: str = ""
    message: str = ""
    result: _ProviderResult | None = None


class NameLookupClient(AbstractNameLookupClient):
    """Client for the provider's mobile name lookup endpoint.

    Issues a single POST per attempt and retries only on transport failures
    (connection errors, read errors, timeouts) with linear backoff. A response
    that arrives is never retried, whatever its status code.
    """

    def __init__(
        self,
        *,
        base_url: str,
        auth_token: str,
        attempt_timeout_seconds: float = 10.0,
        total_timeout_seconds: float = 30.0,
        max_attempts: int = 3,
        backoff_seconds: float = 1.0,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        """Initialize the provider client.

        Args:
            base_url: Provider base URL, e.g. "https://svc.digitap.ai".
            auth_token: Token sent as "Authorization: Basic <token>".
            attempt_timeout_seconds: Timeout for each attempt.
            total_timeout_seconds: Time budget for the whole lookup.
            max_attempts: Maximum attempts on transport failures.
            backoff_seconds: Attempt N waits N * backoff_seconds before retrying.
            transport: Optional httpx transport (tests use httpx.MockTransport).
            sleep: Awaitable sleep used between attempts.
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")

        self.client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers={
                "Authorization": f"Basic {auth_token}",
                "Content-Type": "application/json",
            },
            timeout=httpx.Timeout(attempt_timeout_seconds),
            limits=httpx.Limits(max_connections=100, max_keepalive_connections=100),
            transport=transport,
        )
        self.attempt_timeout = attempt_timeout_seconds
        self.total_timeout = total_timeout_seconds
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self._sleep = sleep

    async def aclose(self) -> None:
        await self.client.aclose()

    async def lookup(self, ref_id: str, mobile: str, name: str = "") -> LookupOutcome:
        payload = {"client_ref_num": ref_id, "mobile": mobile, "name": name}
        deadline = time.monotonic() + self.total_timeout
        log_ctx = {"client_ref": ref_id, "mobile": mask_mobile(mobile)}

        attempt = 0
        last_error: str | None = None
        while attempt < self.max_attempts:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            attempt += 1

            budget = min(self.attempt_timeout, remaining)
            try:
                # Bounds the whole attempt; httpx timeouts apply per phase only
                async with asyncio.timeout(budget):
                    response = await self.client.post(LOOKUP_PATH, json=payload, timeout=budget)
                    body = response.content
            except (httpx.TransportError, TimeoutError) as exc:
                last_error = type(exc).__name__
                logger.warning(
                    "upstream.attempt_failed",
                    extra={
                        **log_ctx,
                        "attempt": attempt,
                        "max_attempts": self.max_attempts,
                        "error_type": last_error,
                    },
                )
                if attempt < self.max_attempts:
                    pause = min(attempt * self.backoff_seconds, deadline - time.monotonic())
                    await self._sleep(max(0.0, pause))
                continue

            return self._parse(body, response.status_code, attempt, log_ctx)

        logger.error(
            "upstream.unavailable",
            extra={**log_ctx, "attempts": attempt, "last_error_type": last_error},
        )
        return LookupOutcome.error("unavailable", attempts=attempt, message=last_error)

    def _parse(
        self,
        body: bytes,
        status_code: int,
        attempt: int,
        log_ctx: dict[str, Any],
    ) -> LookupOutcome:
        """Map a provider response body to a LookupOutcome."""
        try:
            parsed = ProviderResponse.model_validate_json(body)
        except ValidationError as exc:
            logger.error(
                "upstream.bad_response",
                extra={
                    **log_ctx,
                    "attempt": attempt,
                    "http_status": status_code,
                    "error_count": exc.error_count(),
                },
            )
            return LookupOutcome.error("bad_response", attempts=attempt)

        raw_result = json.dumps(parsed.result.model_dump()) if parsed.result else None
        linked_name = (parsed.result.mobile_linked_name or "").strip() if parsed.result else ""

        logger.info(
            "upstream.response",
            extra={
                **log_ctx,
                "attempt": attempt,
                "http_status": status_code,
                "provider_status": parsed.status,
                "name_found": bool(linked_name),
            },
        )

        common = {
            "message": parsed.message or None,
            "status": parsed.status or str(status_code),
            "attempts": attempt,
            "raw_result": raw_result,
        }
        if linked_name:
            return LookupOutcome.found(linked_name, **common)
        return LookupOutcome.not_found(**common)
