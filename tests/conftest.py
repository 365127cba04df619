"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It sets the required environment before any application module builds the
global settings object.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("UPSTREAM_AUTH_TOKEN", "test-token-123")
os.environ.setdefault("UPSTREAM_BASE_URL", "https://lookup.test")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("LOG_FORMAT", "plain")

import json
from typing import Callable

import httpx
import pytest
import sqlalchemy as sa

from app.adapters.rate_limit.token_bucket import TokenBucketRateLimiter
from app.adapters.store.sql import METADATA, SqlRecordStore
from app.adapters.upstream.base import AbstractNameLookupClient, LookupOutcome
from app.adapters.upstream.http_client import NameLookupClient


class FakeUpstream(AbstractNameLookupClient):
    """Provider double returning queued outcomes and recording calls."""

    def __init__(self, *outcomes: LookupOutcome) -> None:
        self.outcomes = list(outcomes) or [LookupOutcome.not_found(status="success")]
        self.calls: list[tuple[str, str]] = []
        self.closed = False

    async def lookup(self, ref_id: str, mobile: str, name: str = "") -> LookupOutcome:
        self.calls.append((ref_id, mobile))
        if len(self.outcomes) > 1:
            return self.outcomes.pop(0)
        return self.outcomes[0]

    async def aclose(self) -> None:
        self.closed = True


class FakeClock:
    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def provider_body(name: str = "", *, status: str = "success", message: str = "") -> bytes:
    return json.dumps(
        {"status": status, "message": message, "result": {"mobile_linked_name": name}}
    ).encode()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def limiter(clock: FakeClock) -> TokenBucketRateLimiter:
    return TokenBucketRateLimiter(refill_seconds=12, burst=5, clock=clock)


@pytest.fixture
def store(tmp_path) -> SqlRecordStore:
    """Record store on a fresh SQLite file."""
    engine = sa.create_engine(
        f"sqlite:///{tmp_path / 'lookup.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    METADATA.create_all(engine)
    yield SqlRecordStore(engine)
    engine.dispose()


@pytest.fixture
def make_http_client() -> Callable[..., NameLookupClient]:
    """Build a NameLookupClient wired to an httpx.MockTransport handler."""

    def _make(handler, **kwargs) -> NameLookupClient:
        kwargs.setdefault("sleep", _no_sleep)
        return NameLookupClient(
            base_url="https://lookup.test",
            auth_token="secret-token",
            transport=httpx.MockTransport(handler),
            **kwargs,
        )

    return _make


async def _no_sleep(_seconds: float) -> None:
    return None
