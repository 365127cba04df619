from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from app.core.errors import StoreError

router = APIRouter(tags=["Health"])

logger = logging.getLogger(__name__)


@router.get("/health")
def health_check() -> dict:
    """Liveness probe: the process is up and serving requests."""

    return {"status": "ok"}


@router.get("/health/ready")
async def readiness_check(request: Request) -> JSONResponse:
    """Readiness probe: the record store answers ``SELECT 1``.

    Returns:
        JSONResponse: 200 with {"status": "ok"}, or 503 with
            {"status": "unavailable"} when the store cannot be reached.
    """

    service = getattr(request.app.state, "lookup_service", None)
    if service is None:
        return JSONResponse({"status": "starting"}, status_code=503)

    try:
        await service.store.ping()
    except StoreError as exc:
        logger.warning("health.store_unavailable", extra={"error_code": exc.code})
        return JSONResponse({"status": "unavailable", "store": "down"}, status_code=503)

    return JSONResponse({"status": "ok", "store": "up"})
