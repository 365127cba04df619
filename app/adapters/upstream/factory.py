"""Factory for the configured name lookup client."""

from app.adapters.upstream.base import AbstractNameLookupClient
from app.adapters.upstream.http_client import NameLookupClient
from app.core.config import UpstreamSettings, settings
from app.core.errors import StartupError


def create_name_lookup_client(
    upstream_settings: UpstreamSettings | None = None,
) -> AbstractNameLookupClient:
    """Instantiate the provider client from UPSTREAM_* settings.

    Raises:
        StartupError: If the auth token is blank.
    """
    cfg = upstream_settings or settings.upstream

    if not cfg.auth_token.strip():
        raise StartupError(
            code="upstream_missing_token",
            message="UPSTREAM_AUTH_TOKEN environment variable is required",
        )

    return NameLookupClient(
        base_url=cfg.base_url,
        auth_token=cfg.auth_token.strip(),
        attempt_timeout_seconds=cfg.attempt_timeout_seconds,
        total_timeout_seconds=cfg.total_timeout_seconds,
        max_attempts=cfg.max_attempts,
        backoff_seconds=cfg.backoff_seconds,
    )
