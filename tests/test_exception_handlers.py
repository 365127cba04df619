"""Tests for global exception handlers.

Validates that all exception types are handled consistently with
proper HTTP status codes, error format, and no information leakage.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.core.errors import (
    AppError,
    ClientDisconnectedError,
    InvalidNumberError,
    RateLimitedError,
    StoreError,
    UpstreamBadResponseError,
    UpstreamUnavailableError,
    ValidationAppError,
)
from app.core.exception_handlers import (
    CLIENT_CLOSED_REQUEST,
    headers_for,
    setup_exception_handlers,
    status_code_for,
)


@pytest.fixture
def app_with_handlers() -> FastAPI:
    """Create FastAPI app with exception handlers registered."""
    app = FastAPI()
    setup_exception_handlers(app)
    return app


@pytest.fixture
def client(app_with_handlers: FastAPI) -> TestClient:
    """Create test client with handlers enabled."""
    return TestClient(app_with_handlers)


class TestAppErrorHandler:
    """Test handler for AppError and subclasses."""

    def test_invalid_number_returns_400(self, client: TestClient, app_with_handlers: FastAPI):
        """Verify InvalidNumberError returns HTTP 400 with its details."""
        @app_with_handlers.get("/test-invalid")
        async def test_endpoint():
            raise InvalidNumberError(
                code="invalid_number_length",
                message="Phone number has 5 digits (expected 10)",
                details={"reason": "wrong_length", "digits": 5},
            )

        response = client.get("/test-invalid")

        assert response.status_code == 400
        data = response.json()
        assert data["error"]["code"] == "invalid_number_length"
        assert data["error"]["details"]["reason"] == "wrong_length"
        assert "request_id" in data["error"]

    def test_rate_limited_returns_429_with_headers(self, client: TestClient, app_with_handlers: FastAPI):
        """Verify RateLimitedError returns HTTP 429 and throttling headers."""
        @app_with_handlers.get("/test-throttle")
        async def test_endpoint():
            raise RateLimitedError(
                code="rate_limited",
                message="Rate limit exceeded. Try again later.",
                details={"retry_after": 12, "limit": 5, "remaining": 0, "reset_at": 1700000000},
            )

        response = client.get("/test-throttle")

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "12"
        assert response.headers["X-RateLimit-Limit"] == "5"
        assert response.headers["X-RateLimit-Remaining"] == "0"
        assert response.json()["error"]["details"]["retry_after"] == 12

    def test_store_error_returns_503_without_details(self, client: TestClient, app_with_handlers: FastAPI):
        """Verify StoreError returns HTTP 503 and hides internal context."""
        @app_with_handlers.get("/test-store")
        async def test_endpoint():
            raise StoreError(
                code="store_error",
                message="Database error occurred",
                details={"context": {"operation": "get"}},
            )

        response = client.get("/test-store")

        assert response.status_code == 503
        data = response.json()
        assert data["error"]["code"] == "store_error"
        assert "details" not in data["error"]

    @pytest.mark.parametrize("error_cls", [UpstreamUnavailableError, UpstreamBadResponseError])
    def test_upstream_errors_return_503(self, client: TestClient, app_with_handlers: FastAPI, error_cls):
        """Verify provider failures return HTTP 503."""
        @app_with_handlers.get("/test-upstream")
        async def test_endpoint():
            raise error_cls(code="upstream_unavailable", message="Service temporarily unavailable. Please try again.")

        response = client.get("/test-upstream")

        assert response.status_code == 503
        assert response.json()["error"]["message"] == "Service temporarily unavailable. Please try again."

    def test_error_response_format_is_consistent(self, client: TestClient, app_with_handlers: FastAPI):
        """Verify error responses have consistent JSON structure."""
        @app_with_handlers.get("/test-format")
        async def test_endpoint():
            raise ValidationAppError(code="test", message="test")

        response = client.get("/test-format")
        data = response.json()

        # Required fields always present
        assert "error" in data
        assert "code" in data["error"]
        assert "message" in data["error"]
        assert "request_id" in data["error"]


class TestStatusMapping:
    """status_code_for / headers_for helpers."""

    def test_status_codes(self):
        assert status_code_for(InvalidNumberError(code="x", message="x")) == 400
        assert status_code_for(RateLimitedError(code="x", message="x")) == 429
        assert status_code_for(StoreError(code="x", message="x")) == 503
        assert status_code_for(UpstreamUnavailableError(code="x", message="x")) == 503
        assert status_code_for(ClientDisconnectedError(code="x", message="x")) == CLIENT_CLOSED_REQUEST
        assert status_code_for(AppError(code="x", message="x")) == 500

    def test_headers_only_for_rate_limit(self):
        assert headers_for(StoreError(code="x", message="x")) is None

        headers = headers_for(RateLimitedError(code="x", message="x", details={"retry_after": 3}))
        assert headers == {"Retry-After": "3"}


class TestGeneralExceptionHandler:
    """Test fallback handler for unexpected exceptions."""

    def test_unexpected_exception_handler_registered(self, app_with_handlers: FastAPI):
        """Verify fallback exception handler is registered."""
        assert Exception in app_with_handlers.exception_handlers

    def test_general_exception_handler_logic(self):
        """Verify general_exception_handler returns correct structure."""
        from app.core.exception_handlers import general_exception_handler

        request = AsyncMock()
        request.url.path = "/test"
        request.method = "GET"

        exc = RuntimeError("Unexpected error: database connection failed")
        response = asyncio.run(general_exception_handler(request, exc))

        data = json.loads(bytes(response.body).decode())
        assert response.status_code == 500
        assert data["error"]["code"] == "internal_server_error"
        # Original error message should NOT be in response
        assert "database connection" not in data["error"]["message"]
        assert "request_id" in data["error"]

    def test_general_exception_handler_never_leaks_stack_trace(self):
        """Verify stack traces are never included in response."""
        from app.core.exception_handlers import general_exception_handler

        request = AsyncMock()
        request.url.path = "/test"
        request.method = "GET"

        exc = ValueError("Test error with details")
        response = asyncio.run(general_exception_handler(request, exc))

        response_text = bytes(response.body).decode()
        assert "Traceback" not in response_text
        assert "File \"" not in response_text
        assert "ValueError" not in response_text


class TestErrorHandlerIntegration:
    """Integration tests for exception handler setup."""

    def test_setup_exception_handlers_registers_handlers(self, app_with_handlers: FastAPI):
        assert AppError in app_with_handlers.exception_handlers
        assert Exception in app_with_handlers.exception_handlers

    def test_multiple_handler_setups_does_not_fail(self):
        """Verify calling setup_exception_handlers multiple times is safe."""
        app = FastAPI()

        setup_exception_handlers(app)
        setup_exception_handlers(app)

        assert AppError in app.exception_handlers
