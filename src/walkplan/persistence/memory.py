"""In-process implementations of the persistence collaborators."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from ..models.domain import BusyInterval, CachedTravelTime, LivePosition, RouteBooking, WorkingHoursWindow
from .base import cache_key


class InMemorySchedulingRepository:
    def __init__(
        self,
        working_hours: dict[str, Iterable[WorkingHoursWindow]] | None = None,
        busy: dict[str, Iterable[BusyInterval]] | None = None,
        bookings: dict[str, Iterable[RouteBooking]] | None = None,
    ) -> None:
        self.working_hours = {walker: list(windows) for walker, windows in (working_hours or {}).items()}
        self.busy = {walker: list(items) for walker, items in (busy or {}).items()}
        self.bookings = {walker: list(items) for walker, items in (bookings or {}).items()}

    def get_working_hours(self, walker_id: str) -> list[WorkingHoursWindow]:
        return list(self.working_hours.get(walker_id, []))

    def get_busy_intervals(self, walker_id: str, start: datetime, end: datetime) -> list[BusyInterval]:
        return [item for item in self.busy.get(walker_id, []) if item.start < end and item.end > start]

    def get_route_bookings(self, walker_id: str, start: datetime, end: datetime) -> list[RouteBooking]:
        return [
            booking for booking in self.bookings.get(walker_id, []) if start <= booking.scheduled_start < end
        ]


class InMemoryTravelTimeCache:
    """Dict-backed cache store; single dict assignments keep concurrent upserts safe."""

    def __init__(self, entries: Iterable[CachedTravelTime] = ()) -> None:
        self._entries: dict[tuple[str, str], CachedTravelTime] = {}
        for entry in entries:
            self._entries[cache_key(entry.origin_location_id, entry.destination_location_id)] = entry

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, origin_id: str, destination_id: str) -> Optional[CachedTravelTime]:
        return self._entries.get(cache_key(origin_id, destination_id))

    def upsert(
        self,
        origin_id: str,
        destination_id: str,
        travel_seconds: int,
        distance_meters: int,
        calculated_at: datetime,
    ) -> None:
        first, second = cache_key(origin_id, destination_id)
        self._entries[(first, second)] = CachedTravelTime(first, second, travel_seconds, distance_meters, calculated_at)


class StaticLiveLocationFeed:
    def __init__(self, positions: Iterable[LivePosition] = ()) -> None:
        self.positions = {position.walker_id: position for position in positions}

    def latest(self, walker_id: str) -> Optional[LivePosition]:
        return self.positions.get(walker_id)
