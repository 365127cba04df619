from __future__ import annotations

from fastapi import Request

from app.services.lookup_service import LookupService


def get_lookup_service(request: Request) -> LookupService:
    """Return the orchestrator built during application startup."""
    return request.app.state.lookup_service
