"""Pydantic schemas for mobile name lookups."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class NameRecord(BaseModel):
    """A resolved name cached for a canonical mobile number."""

    model_config = ConfigDict(from_attributes=True)

    mobile: str = Field(..., description="Canonical 10-digit mobile number.")
    name: str = Field(..., min_length=1, description="Name linked to the number.")
    created_at: datetime | None = Field(
        default=None, description="When the number was first resolved."
    )
    updated_at: datetime | None = Field(
        default=None, description="When the name was last refreshed."
    )


class LookupLogEntry(BaseModel):
    """One upstream call made for a number (audit trail)."""

    model_config = ConfigDict(from_attributes=True)

    client_ref_num: str
    mobile: str
    name: str = ""
    response_status: str
    response_message: str | None = None
    response_result: str | None = None
    created_at: datetime | None = None


class LookupRequest(BaseModel):
    """JSON body accepted by the lookup endpoint."""

    mobile: str = Field(
        ...,
        description="Phone number in any common format, e.g. '+91 83180 90007'.",
        examples=["8318090007", "+91 83180 90007", "+91-83180-90007"],
    )


class LookupResponse(BaseModel):
    """Result of a lookup request."""

    mobile: str = Field(..., description="Canonical number that was looked up.")
    found: bool = Field(..., description="True when a name is linked to the number.")
    name: str | None = Field(default=None, description="Resolved name, if any.")
    cached: bool = Field(
        default=False,
        description="True if the name came from the local store instead of the provider.",
    )
    message: str | None = Field(
        default=None, description="Human-readable note, e.g. when no name was found."
    )
    record: NameRecord | None = Field(
        default=None, description="Stored record when the name was served from cache."
    )


class HistoryResponse(BaseModel):
    mobile: str
    lookups: list[LookupLogEntry] = Field(default_factory=list)
