"""Tests for the provider HTTP client (httpx.MockTransport backed)."""

import asyncio
import json
import time

import httpx
import pytest

from app.adapters.upstream.http_client import LOOKUP_PATH
from conftest import provider_body


class TestResponses:
    """Parsing of provider answers."""

    @pytest.mark.asyncio
    async def test_found_name(self, make_http_client) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, content=provider_body("  Alice  "))

        client = make_http_client(handler)
        outcome = await client.lookup("REF_1", "9876543210")
        await client.aclose()

        assert outcome.kind == "found"
        assert outcome.name == "Alice"
        assert outcome.status == "success"
        assert outcome.attempts == 1
        assert json.loads(outcome.raw_result) == {"mobile_linked_name": "  Alice  "}

        request = seen[0]
        assert request.method == "POST"
        assert request.url.path == LOOKUP_PATH
        assert request.headers["Authorization"] == "Basic secret-token"
        assert request.headers["Content-Type"] == "application/json"
        assert json.loads(request.content) == {
            "client_ref_num": "REF_1",
            "mobile": "9876543210",
            "name": "",
        }

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["", "   "])
    async def test_empty_name_is_not_found(self, make_http_client, name: str) -> None:
        client = make_http_client(
            lambda request: httpx.Response(200, content=provider_body(name, message="No record"))
        )

        outcome = await client.lookup("REF_1", "9876543210")

        assert outcome.kind == "not_found"
        assert outcome.name is None
        assert outcome.message == "No record"

    @pytest.mark.asyncio
    async def test_missing_result_is_not_found(self, make_http_client) -> None:
        client = make_http_client(lambda request: httpx.Response(200, json={"status": "failure"}))

        outcome = await client.lookup("REF_1", "9876543210")

        assert outcome.kind == "not_found"
        assert outcome.status == "failure"
        assert outcome.raw_result is None

    @pytest.mark.asyncio
    async def test_unparsable_body_is_bad_response(self, make_http_client) -> None:
        client = make_http_client(lambda request: httpx.Response(200, content=b"<html>oops</html>"))

        outcome = await client.lookup("REF_1", "9876543210")

        assert outcome.kind == "error"
        assert outcome.error_kind == "bad_response"

    @pytest.mark.asyncio
    async def test_http_error_with_json_body_is_not_retried(self, make_http_client) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(500, json={"message": "internal"})

        client = make_http_client(handler)
        outcome = await client.lookup("REF_1", "9876543210")

        assert calls == 1
        assert outcome.kind == "not_found"
        assert outcome.status == "500"


class TestRetries:
    """Transport failures are retried with linear backoff."""

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self, make_http_client) -> None:
        calls = 0
        sleeps: list[float] = []

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            if calls < 3:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, content=provider_body("Bob"))

        async def record_sleep(seconds: float) -> None:
            sleeps.append(seconds)

        client = make_http_client(handler, sleep=record_sleep)
        outcome = await client.lookup("REF_1", "9876543210")

        assert outcome.kind == "found"
        assert outcome.name == "Bob"
        assert outcome.attempts == 3
        assert sleeps == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_all_attempts_fail_is_unavailable(self, make_http_client) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            raise httpx.ReadTimeout("timed out", request=request)

        client = make_http_client(handler)
        outcome = await client.lookup("REF_1", "9876543210")

        assert calls == 3
        assert outcome.kind == "error"
        assert outcome.error_kind == "unavailable"
        assert outcome.attempts == 3
        assert outcome.message == "ReadTimeout"

    @pytest.mark.asyncio
    async def test_max_attempts_is_configurable(self, make_http_client) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            raise httpx.ConnectError("down", request=request)

        client = make_http_client(handler, max_attempts=1)
        outcome = await client.lookup("REF_1", "9876543210")

        assert calls == 1
        assert outcome.error_kind == "unavailable"

    @pytest.mark.asyncio
    async def test_exhausted_deadline_stops_retrying(self, make_http_client) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            raise httpx.ConnectError("down", request=request)

        client = make_http_client(handler, total_timeout_seconds=0)
        outcome = await client.lookup("REF_1", "9876543210")

        assert calls == 0
        assert outcome.kind == "error"
        assert outcome.attempts == 0

    def test_rejects_zero_attempts(self, make_http_client) -> None:
        with pytest.raises(ValueError):
            make_http_client(lambda request: httpx.Response(200), max_attempts=0)


class TestTimeouts:
    """Each attempt and the whole lookup are bounded in wall-clock time."""

    @pytest.mark.asyncio
    async def test_stalled_attempt_is_retried(self, make_http_client) -> None:
        calls = 0

        async def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            if calls == 1:
                await asyncio.sleep(10)
            return httpx.Response(200, content=provider_body("Frank"))

        client = make_http_client(handler, attempt_timeout_seconds=0.05)
        outcome = await client.lookup("REF_1", "9876543210")

        assert outcome.kind == "found"
        assert outcome.name == "Frank"
        assert outcome.attempts == 2

    @pytest.mark.asyncio
    async def test_stalling_provider_is_unavailable(self, make_http_client) -> None:
        async def handler(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(10)
            return httpx.Response(200, content=provider_body("never"))

        client = make_http_client(handler, attempt_timeout_seconds=0.05)
        outcome = await client.lookup("REF_1", "9876543210")

        assert outcome.kind == "error"
        assert outcome.error_kind == "unavailable"
        assert outcome.attempts == 3
        assert outcome.message == "TimeoutError"

    @pytest.mark.asyncio
    async def test_overall_deadline_cuts_attempt_short(self, make_http_client) -> None:
        async def handler(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(10)
            return httpx.Response(200, content=provider_body("never"))

        client = make_http_client(handler, attempt_timeout_seconds=10, total_timeout_seconds=0.1)
        started = time.monotonic()
        outcome = await client.lookup("REF_1", "9876543210")

        assert time.monotonic() - started < 2
        assert outcome.error_kind == "unavailable"
        assert outcome.attempts == 1
