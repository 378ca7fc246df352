"""Interfaces the scheduling core expects from its persistence collaborators."""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from ..models.domain import BusyInterval, CachedTravelTime, LivePosition, RouteBooking, WorkingHoursWindow


class SchedulingRepository(Protocol):
    def get_working_hours(self, walker_id: str) -> Sequence[WorkingHoursWindow]:
        ...

    def get_busy_intervals(self, walker_id: str, start: datetime, end: datetime) -> Sequence[BusyInterval]:
        """Bookings and blocks overlapping [start, end)."""
        ...

    def get_route_bookings(self, walker_id: str, start: datetime, end: datetime) -> Sequence[RouteBooking]:
        """Active (confirmed or in-progress) bookings starting in [start, end)."""
        ...


class TravelTimeCacheStore(Protocol):
    def get(self, origin_id: str, destination_id: str) -> Optional[CachedTravelTime]:
        ...

    def upsert(
        self,
        origin_id: str,
        destination_id: str,
        travel_seconds: int,
        distance_meters: int,
        calculated_at: datetime,
    ) -> None:
        ...


class LiveLocationFeed(Protocol):
    def latest(self, walker_id: str) -> Optional[LivePosition]:
        ...


def cache_key(origin_id: str, destination_id: str) -> tuple[str, str]:
    """Canonical (symmetric) ordering of a location pair for cache rows."""
    return (origin_id, destination_id) if origin_id <= destination_id else (destination_id, origin_id)
