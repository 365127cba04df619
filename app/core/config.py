"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file

The upstream auth token and the database URL are required. Building the
settings object without them raises a ValidationError at import time, so the
process never starts serving traffic with a broken configuration.
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production injects via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Nested BaseSettings don't inherit env_file, so populate os.environ up front.
# Real environment variables win over the file.
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=False)


def _build_upstream_settings() -> "UpstreamSettings":
    """Build upstream settings from environment.

    BaseSettings populates required fields from the environment; static type
    checkers still treat them as constructor arguments, hence the ignore.
    """

    return UpstreamSettings()  # type: ignore[call-arg]


def _build_database_settings() -> "DatabaseSettings":
    return DatabaseSettings()  # type: ignore[call-arg]


def _build_app_settings() -> "AppSettings":
    return AppSettings()  # type: ignore[call-arg]


def _build_log_settings() -> "LogSettings":
    return LogSettings()  # type: ignore[call-arg]


class UpstreamSettings(BaseSettings):
    """Name lookup provider configuration."""

    base_url: str = Field(
        "https://svc.digitap.ai",
        description="Base URL of the mobile name lookup provider",
    )
    auth_token: str = Field(
        ...,
        min_length=1,
        description="Token sent as 'Authorization: Basic <token>' (required)",
    )
    attempt_timeout_seconds: float = Field(
        10.0,
        gt=0,
        description="Timeout applied to each individual attempt",
    )
    total_timeout_seconds: float = Field(
        30.0,
        gt=0,
        description="Overall time budget for one lookup, retries included",
    )
    max_attempts: int = Field(
        3,
        ge=1,
        description="Maximum attempts on transport-level failures",
    )
    backoff_seconds: float = Field(
        1.0,
        ge=0,
        description="Linear backoff unit: attempt N waits N * backoff_seconds",
    )

    model_config = SettingsConfigDict(
        env_prefix="UPSTREAM_",
        case_sensitive=False,
    )


class DatabaseSettings(BaseSettings):
    """Durable record store configuration."""

    url: str = Field(
        ...,
        min_length=1,
        description="SQLAlchemy database URL, read from DATABASE_URL (required)",
    )
    pool_size: int = Field(
        25,
        ge=1,
        description="Connection pool size (ignored for SQLite)",
    )
    pool_recycle_seconds: int = Field(
        300,
        description="Recycle pooled connections older than this many seconds",
    )
    echo: bool = Field(
        False,
        description="Echo SQL statements (debugging only)",
    )

    model_config = SettingsConfigDict(
        env_prefix="DATABASE_",
        case_sensitive=False,
    )


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    port: int = Field(
        8080,
        validation_alias=AliasChoices("APP_PORT", "PORT"),
        description="Inbound HTTP port",
    )

    rate_limit_enabled: bool = Field(
        True,
        description="Enable per-client token bucket rate limiting",
    )
    rate_limit_refill_seconds: float = Field(
        12.0,
        gt=0,
        description="Seconds needed to refill one token",
    )
    rate_limit_burst: int = Field(
        5,
        ge=1,
        description="Bucket capacity (requests admitted instantly for a fresh client)",
    )
    rate_limit_idle_multiplier: int = Field(
        10,
        ge=1,
        description="Buckets idle longer than multiplier * refill interval are swept",
    )
    rate_limit_sweep_interval_seconds: float = Field(
        60.0,
        gt=0,
        description="How often the idle bucket sweep runs",
    )
    rate_limit_include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers when throttling",
    )
    trust_forwarded_for: bool = Field(
        False,
        description="Use the first X-Forwarded-For hop as client identifier",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
        populate_by_name=True,
    )


class LogSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="'json' or 'plain'")
    output: str = Field("stdout", description="'stdout' or 'file'")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(10_485_760, description="Rotate file after this size (0 disables)")
    backup_count: int = Field(3, description="Rotated files to keep")
    request_id_header: str = Field("X-Request-ID", description="Correlation header name")

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if required settings are missing.
    """

    app_env: str = APP_ENV
    upstream: UpstreamSettings = Field(default_factory=_build_upstream_settings)
    database: DatabaseSettings = Field(default_factory=_build_database_settings)
    app: AppSettings = Field(default_factory=_build_app_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
settings = Settings()
