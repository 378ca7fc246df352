"""Supabase-backed persistence for schedules, travel-time cache and live positions."""

from __future__ import annotations

import logging
from datetime import datetime, time, timezone
from typing import Any, Optional

from ..db.supabase import get_supabase_client
from ..models.domain import (
    BusyInterval,
    CachedTravelTime,
    LivePosition,
    Location,
    RouteBooking,
    WorkingHoursWindow,
)
from .base import cache_key

logger = logging.getLogger(__name__)

ACTIVE_BOOKING_STATUSES = ("confirmed", "in_progress")
BOOKING_COLUMNS = "id,location_id,status,scheduled_start,scheduled_end,locations(id,latitude,longitude)"
WORKING_HOURS_COLUMNS = "day_of_week,start_time,end_time,is_active,users(timezone)"


def _parse_timestamp(value: str) -> datetime:
    """Parse a Postgres timestamptz string; naive values are taken as UTC."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _weekday(day_of_week: Any) -> int:
    """Stored days count from Sunday (0); windows count from Monday like ``date.weekday()``."""
    return (int(day_of_week) - 1) % 7


def _walker_timezone(row: dict[str, Any]) -> str:
    user = row.get("users")
    if isinstance(user, list):
        user = user[0] if user else None
    return (user or {}).get("timezone") or "UTC"


def _booking_location(row: dict[str, Any]) -> Optional[Location]:
    location = row.get("locations")
    if isinstance(location, list):
        location = location[0] if location else None
    if not location or location.get("latitude") is None or location.get("longitude") is None:
        return None
    return Location(
        str(location.get("id") or row.get("location_id")),
        float(location["latitude"]),
        float(location["longitude"]),
    )


class SupabaseSchedulingRepository:
    """Reads working hours, bookings and blocks for a walker.

    Failures propagate: an unreadable schedule must not look like an empty one.
    """

    def __init__(self, client: Any | None = None) -> None:
        self.client = client if client is not None else get_supabase_client()
        if self.client is None:
            raise RuntimeError("Supabase is not configured; cannot load walker schedules.")

    def get_working_hours(self, walker_id: str) -> list[WorkingHoursWindow]:
        response = (
            self.client.table("working_hours")
            .select(WORKING_HOURS_COLUMNS)
            .eq("walker_id", walker_id)
            .execute()
        )
        return [
            WorkingHoursWindow(
                day_of_week=_weekday(row["day_of_week"]),
                start=time.fromisoformat(row["start_time"]),
                end=time.fromisoformat(row["end_time"]),
                timezone=_walker_timezone(row),
                active=bool(row.get("is_active", True)),
            )
            for row in (response.data or [])
        ]

    def get_busy_intervals(self, walker_id: str, start: datetime, end: datetime) -> list[BusyInterval]:
        bookings = (
            self.client.table("bookings")
            .select(BOOKING_COLUMNS)
            .eq("walker_id", walker_id)
            .neq("status", "cancelled")
            .lt("scheduled_start", end.isoformat())
            .gt("scheduled_end", start.isoformat())
            .execute()
        )
        blocks = (
            self.client.table("blocks")
            .select("id,start_time,end_time")
            .eq("walker_id", walker_id)
            .lt("start_time", end.isoformat())
            .gt("end_time", start.isoformat())
            .execute()
        )

        busy = [
            BusyInterval.booking(
                _parse_timestamp(row["scheduled_start"]),
                _parse_timestamp(row["scheduled_end"]),
                _booking_location(row),
                str(row["id"]),
            )
            for row in (bookings.data or [])
        ]
        busy.extend(
            BusyInterval.block(_parse_timestamp(row["start_time"]), _parse_timestamp(row["end_time"]), str(row["id"]))
            for row in (blocks.data or [])
        )
        return busy

    def get_route_bookings(self, walker_id: str, start: datetime, end: datetime) -> list[RouteBooking]:
        response = (
            self.client.table("bookings")
            .select(BOOKING_COLUMNS)
            .eq("walker_id", walker_id)
            .in_("status", list(ACTIVE_BOOKING_STATUSES))
            .gte("scheduled_start", start.isoformat())
            .lt("scheduled_start", end.isoformat())
            .order("scheduled_start")
            .execute()
        )
        bookings = []
        for row in response.data or []:
            location = _booking_location(row)
            if location is None:
                logger.warning(f"Booking {row.get('id')} has no coordinates; left out of route")
                continue
            bookings.append(
                RouteBooking(
                    booking_id=str(row["id"]),
                    location_id=location.location_id,
                    latitude=location.latitude,
                    longitude=location.longitude,
                    scheduled_start=_parse_timestamp(row["scheduled_start"]),
                    scheduled_end=_parse_timestamp(row["scheduled_end"]),
                )
            )
        return bookings


class SupabaseTravelTimeCache:
    """Travel-time cache rows keyed by the canonical (sorted) location pair."""

    def __init__(self, client: Any | None = None) -> None:
        self.client = client if client is not None else get_supabase_client()

    def get(self, origin_id: str, destination_id: str) -> Optional[CachedTravelTime]:
        if not self.client:
            return None
        first, second = cache_key(origin_id, destination_id)
        try:
            response = (
                self.client.table("travel_time_cache")
                .select("origin_location_id,destination_location_id,travel_seconds,distance_meters,calculated_at")
                .eq("origin_location_id", first)
                .eq("destination_location_id", second)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.warning(f"Failed to read travel-time cache for {first}->{second}: {e}")
            return None
        rows = response.data or []
        if not rows:
            return None
        row = rows[0]
        return CachedTravelTime(
            origin_location_id=str(row["origin_location_id"]),
            destination_location_id=str(row["destination_location_id"]),
            travel_seconds=int(row["travel_seconds"]),
            distance_meters=int(row.get("distance_meters") or 0),
            calculated_at=_parse_timestamp(row["calculated_at"]),
        )

    def upsert(
        self,
        origin_id: str,
        destination_id: str,
        travel_seconds: int,
        distance_meters: int,
        calculated_at: datetime,
    ) -> None:
        if not self.client:
            return
        first, second = cache_key(origin_id, destination_id)
        self.client.table("travel_time_cache").upsert(
            {
                "origin_location_id": first,
                "destination_location_id": second,
                "travel_seconds": travel_seconds,
                "distance_meters": distance_meters,
                "calculated_at": calculated_at.isoformat(),
            },
            on_conflict="origin_location_id,destination_location_id",
        ).execute()


class SupabaseLiveLocationFeed:
    def __init__(self, client: Any | None = None) -> None:
        self.client = client if client is not None else get_supabase_client()

    def latest(self, walker_id: str) -> Optional[LivePosition]:
        if not self.client:
            return None
        try:
            response = (
                self.client.table("walker_locations")
                .select("walker_id,latitude,longitude,accuracy_meters,updated_at")
                .eq("walker_id", walker_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.warning(f"Failed to read live location for walker {walker_id}: {e}")
            return None
        rows = response.data or []
        if not rows:
            return None
        row = rows[0]
        accuracy = row.get("accuracy_meters")
        return LivePosition(
            walker_id=str(row["walker_id"]),
            latitude=float(row["latitude"]),
            longitude=float(row["longitude"]),
            recorded_at=_parse_timestamp(row["updated_at"]),
            accuracy_meters=float(accuracy) if accuracy is not None else None,
        )
