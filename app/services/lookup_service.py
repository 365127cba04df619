"""Mobile name lookup orchestration.

This service is the core business logic of the API. For every request it:
- Applies per-client rate limiting
- Normalizes the submitted phone number
- Serves the name from the record store when it is already known
- Otherwise calls the provider, persists a resolved name and audits the call

Each step is a hard gate: a failure stops the request before any later step
touches the store or the provider. Records in the store never expire; once a
number is resolved the provider is not consulted again for it.
"""

from __future__ import annotations

import logging
import uuid
from typing import Callable

from app.adapters.rate_limit.base import AbstractRateLimiter
from app.adapters.store.base import AbstractRecordStore
from app.adapters.upstream.base import AbstractNameLookupClient, LookupOutcome
from app.core.errors import (
    RateLimitedError,
    StoreError,
    UpstreamBadResponseError,
    UpstreamUnavailableError,
)
from app.core.logging import mask_mobile
from app.schemas.lookup import LookupLogEntry, LookupResponse
from app.utils.phone_normalizer import normalize_mobile
from app.utils.single_flight import SingleFlight

logger = logging.getLogger(__name__)

NOT_FOUND_MESSAGE = "No name found for this number"
UNAVAILABLE_MESSAGE = "Service temporarily unavailable. Please try again."
RATE_LIMITED_MESSAGE = "Rate limit exceeded. Try again later."


def new_reference_id() -> str:
    """Generate a provider correlation id that is unique per call."""
    return f"REF_{uuid.uuid4().hex}"


class LookupService:
    """Orchestrates validate -> rate-limit -> cache -> provider -> persist.

    All collaborators are constructed once by the application and injected,
    which keeps process-wide state explicit and easy to replace in tests.

    Attributes:
        limiter: Per-client admission control, or None when disabled.
        store: Durable mobile -> name cache.
        upstream: Provider client used on cache misses.
    """

    def __init__(
        self,
        *,
        store: AbstractRecordStore,
        upstream: AbstractNameLookupClient,
        limiter: AbstractRateLimiter | None = None,
        ref_id_factory: Callable[[], str] = new_reference_id,
    ) -> None:
        self.store = store
        self.upstream = upstream
        self.limiter = limiter
        self._ref_id_factory = ref_id_factory
        self._in_flight: SingleFlight[LookupOutcome] = SingleFlight()

    def check_rate_limit(self, client_id: str) -> None:
        """Consume one request from the client's budget.

        Raises:
            RateLimitedError: When the client has no tokens left.
        """
        if self.limiter is None:
            return

        result = self.limiter.consume(client_id or "unknown")
        if result.allowed:
            return

        logger.warning(
            "rate_limit.exceeded",
            extra={
                "client_id": client_id,
                "limit": result.limit,
                "retry_after_s": result.retry_after_seconds,
            },
        )
        raise RateLimitedError(
            code="rate_limited",
            message=RATE_LIMITED_MESSAGE,
            details={
                "retry_after": result.retry_after_seconds or 0,
                "limit": result.limit,
                "remaining": result.remaining,
                "reset_at": result.reset_at,
            },
        )

    async def handle(
        self,
        client_id: str,
        raw_number: str | None,
        *,
        admitted: bool = False,
    ) -> LookupResponse:
        """Resolve the name linked to a phone number.

        Args:
            client_id: Identifier used for rate limiting (source address).
            raw_number: Phone number as submitted by the user.
            admitted: True when the caller already consumed this request's
                token via ``check_rate_limit``.

        Returns:
            LookupResponse with the name (found) or a no-match message.

        Raises:
            RateLimitedError: The client exceeded its budget.
            InvalidNumberError: The number could not be normalized.
            StoreError: The record store could not be read.
            UpstreamUnavailableError: Every provider attempt failed.
            UpstreamBadResponseError: The provider answer could not be parsed.
        """
        # Step 1: Admission control
        if not admitted:
            self.check_rate_limit(client_id)

        # Step 2: Canonical form (raises InvalidNumberError)
        mobile = normalize_mobile(raw_number)

        logger.info(
            "lookup.request",
            extra={"client_id": client_id, "mobile": mask_mobile(mobile)},
        )

        # Step 3: Store read; a hit is authoritative
        record = await self.store.get(mobile)
        if record is not None:
            logger.info("lookup.cache_hit", extra={"mobile": mask_mobile(mobile)})
            return LookupResponse(
                mobile=mobile,
                found=True,
                name=record.name,
                cached=True,
                record=record,
            )

        # Step 4-5: Provider call, shared by concurrent requests for this number
        outcome = await self._in_flight.do(mobile, lambda: self._resolve(mobile))

        if outcome.kind == "found":
            return LookupResponse(mobile=mobile, found=True, name=outcome.name)

        # Step 6
        if outcome.kind == "not_found":
            return LookupResponse(
                mobile=mobile,
                found=False,
                message=outcome.message or NOT_FOUND_MESSAGE,
            )

        # Step 7: provider detail stays in the logs
        error_cls = (
            UpstreamBadResponseError
            if outcome.error_kind == "bad_response"
            else UpstreamUnavailableError
        )
        raise error_cls(
            code=f"upstream_{outcome.error_kind or 'unavailable'}",
            message=UNAVAILABLE_MESSAGE,
        )

    async def _resolve(self, mobile: str) -> LookupOutcome:
        """Call the provider once and persist the outcome."""
        ref_id = self._ref_id_factory()
        outcome = await self.upstream.lookup(ref_id, mobile)

        logger.info(
            "lookup.upstream_outcome",
            extra={
                "mobile": mask_mobile(mobile),
                "client_ref": ref_id,
                "outcome": outcome.kind,
                "error_kind": outcome.error_kind,
                "attempts": outcome.attempts,
            },
        )

        if outcome.kind == "found" and outcome.name:
            try:
                await self.store.upsert(mobile, outcome.name)
            except StoreError as exc:
                # The lookup itself succeeded; the caller still gets the name.
                logger.error(
                    "lookup.persist_failed",
                    extra={"mobile": mask_mobile(mobile), "error_code": exc.code},
                )

        await self._audit(ref_id, mobile, outcome)
        return outcome

    async def _audit(self, ref_id: str, mobile: str, outcome: LookupOutcome) -> None:
        if outcome.kind == "error":
            status = outcome.error_kind or "error"
        else:
            status = outcome.status or outcome.kind

        entry = LookupLogEntry(
            client_ref_num=ref_id,
            mobile=mobile,
            response_status=status,
            response_message=outcome.message,
            response_result=outcome.raw_result,
        )
        try:
            await self.store.record_lookup(entry)
        except StoreError as exc:
            logger.warning(
                "lookup.audit_failed",
                extra={"mobile": mask_mobile(mobile), "error_code": exc.code},
            )

    async def get_record(self, raw_number: str):
        """Return the cached record for a number without calling the provider."""
        return await self.store.get(normalize_mobile(raw_number))

    async def history(self, raw_number: str, *, limit: int = 50) -> tuple[str, list[LookupLogEntry]]:
        """Return the canonical number and its provider call history."""
        mobile = normalize_mobile(raw_number)
        return mobile, await self.store.list_lookups(mobile, limit=limit)
