"""Route optimization request/response schemas."""

from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class RouteRequest(BaseModel):
    walker_id: str
    route_date: date
    timezone: str = Field(default="UTC", description="Timezone the route date is expressed in.")
    as_of: Optional[datetime] = Field(
        default=None,
        description="Reference instant for travel-time freshness. Defaults to the current UTC time.",
    )
    max_parallel_lookups: Optional[int] = Field(None, ge=1)


class RouteStopModel(BaseModel):
    sequence: int
    booking_id: str
    location_id: str
    arrival_time: datetime
    departure_time: datetime
    travel_from_previous_minutes: float
    service_duration_minutes: float


class OptimizedRouteResponse(BaseModel):
    walker_id: str
    route_date: date
    stops: List[RouteStopModel]
    total_travel_minutes: float
    total_distance_km: float
    savings_minutes: float
    is_optimized: bool
