"""Application factory for the FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers) and the
lifecycle of process-wide resources: the record store connection pool, the
rate limiter and the provider HTTP client are built once at startup, owned by
the LookupService and released on shutdown.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.adapters.store.factory import create_record_store
from app.adapters.upstream.factory import create_name_lookup_client
from app.api.routes import health_router, lookup_router, numbers_router
from app.core.config import settings
from app.core.errors import AppError, StartupError
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import request_id_middleware
from app.core.openapi import apply_openapi_customizations
from app.core.rate_limit import create_rate_limiter, sweep_idle_buckets
from app.services.lookup_service import LookupService

logger = logging.getLogger(__name__)


async def build_lookup_service() -> LookupService:
    """Build and verify every dependency of the orchestrator.

    Raises:
        StartupError: If the store is unreachable or any dependency cannot
            be constructed. The process must not serve traffic in that case.
    """
    store = create_record_store()
    try:
        await store.ping()
        logger.info("startup.store_connected")
        await store.init_schema()
        logger.info("startup.schema_ready")
    except AppError as exc:
        await store.close()
        raise StartupError(
            code="store_unavailable",
            message="Failed to connect to database",
            details={"hint": exc.code},
        ) from exc

    return LookupService(
        store=store,
        upstream=create_name_lookup_client(),
        limiter=create_rate_limiter(),
    )


def _make_lifespan(lookup_service: LookupService | None):
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        owned = lookup_service is None
        try:
            service = lookup_service or await build_lookup_service()
        except StartupError as exc:
            logger.critical(
                "startup.failed",
                extra={"error_code": exc.code, "error_message": exc.message},
            )
            raise

        app.state.lookup_service = service

        sweeper: asyncio.Task | None = None
        if service.limiter is not None:
            sweeper = asyncio.create_task(
                sweep_idle_buckets(service.limiter, settings.app.rate_limit_sweep_interval_seconds)
            )

        logger.info("startup.ready", extra={"port": settings.app.port})
        try:
            yield
        finally:
            if sweeper is not None:
                sweeper.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await sweeper
            if owned:
                await service.upstream.aclose()
                await service.store.close()
            logger.info("shutdown.complete")

    return lifespan


def create_app(*, lookup_service: LookupService | None = None) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        lookup_service: Pre-built orchestrator (tests inject fakes here). When
            omitted, dependencies are built from settings during startup.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="Mobile Name Lookup API",
        description=(
            "Resolves the name linked to a mobile number. Numbers are normalized "
            "to a canonical 10-digit form, served from a permanent local store "
            "when known, and otherwise fetched from the lookup provider and "
            "stored. Requests are rate limited per client address."
        ),
        version="0.1.0",
        lifespan=_make_lifespan(lookup_service),
    )

    # Middleware
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(lookup_router)
    app.include_router(numbers_router, prefix="/v1")
    app.include_router(health_router)

    apply_openapi_customizations(app)

    return app
