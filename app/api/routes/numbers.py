from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.api.dependencies import get_lookup_service
from app.core.rate_limit import enforce_rate_limit
from app.schemas.lookup import HistoryResponse, NameRecord
from app.services.lookup_service import LookupService

router = APIRouter(tags=["Numbers"], dependencies=[Depends(enforce_rate_limit)])


@router.get("/numbers/{mobile}", response_model=NameRecord)
async def get_number(
    mobile: str,
    service: LookupService = Depends(get_lookup_service),
) -> NameRecord:
    """Return the stored name for a number without calling the provider.

    Raises:
        HTTPException: 404 when the number has never been resolved.
    """
    record = await service.get_record(mobile)
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No stored record for this number",
        )
    return record


@router.get("/numbers/{mobile}/lookups", response_model=HistoryResponse)
async def get_number_lookups(
    mobile: str,
    limit: int = Query(50, ge=1, le=500),
    service: LookupService = Depends(get_lookup_service),
) -> HistoryResponse:
    """Return the provider calls made for a number, newest first."""
    canonical, entries = await service.history(mobile, limit=limit)
    return HistoryResponse(mobile=canonical, lookups=entries)
