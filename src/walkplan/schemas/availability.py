"""Availability request/response schemas."""

from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator


class TargetLocation(BaseModel):
    location_id: Optional[str] = None
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class EngineOverrides(BaseModel):
    """Per-request replacements for the configured engine defaults."""
    min_buffer_minutes: Optional[int] = Field(None, ge=0)
    default_travel_minutes: Optional[int] = Field(None, ge=0)
    slot_interval_minutes: Optional[int] = Field(None, ge=1)
    max_advance_days: Optional[int] = Field(None, ge=0)
    min_notice_hours: Optional[int] = Field(None, ge=0)


class AvailabilityRequest(BaseModel):
    walker_id: str
    start_date: date
    end_date: date
    service_duration_minutes: int = Field(..., description="Length of the requested visit.")
    target: Optional[TargetLocation] = Field(
        default=None,
        description="Where the visit would take place; enables travel-aware buffers.",
    )
    now: Optional[datetime] = Field(
        default=None,
        description="Reference instant for notice and horizon rules. Defaults to the current UTC time.",
    )
    overrides: Optional[EngineOverrides] = None

    @model_validator(mode="after")
    def _require_aware_now(self) -> "AvailabilityRequest":
        if self.now is not None and self.now.tzinfo is None:
            raise ValueError("now must include a timezone offset")
        return self


class AvailableSlotModel(BaseModel):
    start: datetime
    end: datetime
    travel_from_previous_minutes: Optional[float] = None
    confidence: str


class AvailabilityResponse(BaseModel):
    walker_id: str
    service_duration_minutes: int
    slots: List[AvailableSlotModel]
    metadata: dict = Field(default_factory=dict)
