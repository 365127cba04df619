"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional to keep shapes consistent across the codebase without
    forcing every error to carry every field.
    """

    code: str
    message: str
    hint: str
    reason: str
    digits: int
    retry_after: int
    limit: int
    remaining: int
    reset_at: int
    error_kind: str
    attempts: int
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""


class InvalidNumberError(ValidationAppError):
    """Raised when a phone number cannot be normalized to a canonical form."""


class RateLimitedError(AppError):
    """Raised when a client exceeds its request budget."""


class StoreError(AppError):
    """Raised when the record store cannot be reached or queried."""


class UpstreamError(AppError):
    """Base class for name lookup provider failures."""


class UpstreamUnavailableError(UpstreamError):
    """Raised when every attempt against the provider failed at transport level."""


class UpstreamBadResponseError(UpstreamError):
    """Raised when the provider answered with a body that could not be parsed."""


class StartupError(AppError):
    """Raised when the service cannot initialize its dependencies."""


class ClientDisconnectedError(AppError):
    """Raised when the caller went away before the lookup finished."""
