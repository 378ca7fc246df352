"""Domain models for walker schedules, travel estimates and routes."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Iterator, Optional
from zoneinfo import ZoneInfo


class InvalidRequestError(ValueError):
    """Raised when caller-supplied parameters are malformed."""


class Confidence(str, Enum):
    """Reliability of a travel-time estimate, highest first."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return _CONFIDENCE_RANK[self]

    @classmethod
    def lowest(cls, *values: "Confidence") -> "Confidence":
        if not values:
            return cls.HIGH
        return max(values, key=lambda value: value.rank)


_CONFIDENCE_RANK = {Confidence.HIGH: 0, Confidence.MEDIUM: 1, Confidence.LOW: 2}


class TravelSource(str, Enum):
    """Which link of the fallback chain produced an estimate."""

    SAME_LOCATION = "same_location"
    CACHE = "cache"
    LIVE_LOCATION = "live_location"
    ROUTING_API = "routing_api"
    GREAT_CIRCLE = "great_circle"
    DEFAULT = "default"


class BusySource(str, Enum):
    BOOKING = "booking"
    BLOCK = "block"


@dataclass(frozen=True, slots=True)
class Location:
    """A point the walker travels between. ``location_id`` is None for ad-hoc coordinates."""

    location_id: Optional[str]
    latitude: float
    longitude: float

    def same_place(self, other: "Location") -> bool:
        if self.location_id is not None and self.location_id == other.location_id:
            return True
        return self.latitude == other.latitude and self.longitude == other.longitude


@dataclass(frozen=True, slots=True)
class TimeInterval:
    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.end <= self.start:
            raise InvalidRequestError(f"Interval end {self.end} must be after start {self.start}.")

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def overlaps(self, other: "TimeInterval") -> bool:
        return self.start < other.end and self.end > other.start


@dataclass(frozen=True, slots=True)
class BusyInterval:
    """Occupied time: a booking (with location) or a worker-declared block (without)."""

    interval: TimeInterval
    source: BusySource
    reference_id: Optional[str] = None
    location: Optional[Location] = None

    @classmethod
    def booking(
        cls, start: datetime, end: datetime, location: Optional[Location], booking_id: Optional[str] = None
    ) -> "BusyInterval":
        return cls(TimeInterval(start, end), BusySource.BOOKING, booking_id, location)

    @classmethod
    def block(cls, start: datetime, end: datetime, block_id: Optional[str] = None) -> "BusyInterval":
        return cls(TimeInterval(start, end), BusySource.BLOCK, block_id, None)

    @property
    def start(self) -> datetime:
        return self.interval.start

    @property
    def end(self) -> datetime:
        return self.interval.end


@dataclass(frozen=True, slots=True)
class WorkingHoursWindow:
    """Working hours for one weekday (0 = Monday, as ``date.weekday()``)."""

    day_of_week: int
    start: time
    end: time
    timezone: str = "UTC"
    active: bool = True

    def to_utc(self, day: date) -> Optional[TimeInterval]:
        """Return the window on ``day`` as a UTC interval, or None if it is empty."""
        tz = ZoneInfo(self.timezone)
        utc = ZoneInfo("UTC")
        start = datetime.combine(day, self.start, tzinfo=tz).astimezone(utc)
        end = datetime.combine(day, self.end, tzinfo=tz).astimezone(utc)
        if end <= start:
            return None
        return TimeInterval(start, end)


@dataclass(frozen=True, slots=True)
class DateRange:
    """Inclusive range of calendar days."""

    start: date
    end: date

    def days(self) -> Iterator[date]:
        current = self.start
        while current <= self.end:
            yield current
            current += timedelta(days=1)


@dataclass(frozen=True, slots=True)
class AvailableSlot:
    start: datetime
    end: datetime
    travel_from_previous: Optional[timedelta] = None
    confidence: Confidence = Confidence.HIGH

    @property
    def duration(self) -> timedelta:
        return self.end - self.start


@dataclass(frozen=True, slots=True)
class TravelTimeEstimate:
    duration: timedelta
    distance_meters: int
    confidence: Confidence
    computed_at: datetime
    source: TravelSource = TravelSource.DEFAULT


@dataclass(frozen=True, slots=True)
class CachedTravelTime:
    """A persisted travel-time cache row."""

    origin_location_id: str
    destination_location_id: str
    travel_seconds: int
    distance_meters: int
    calculated_at: datetime


@dataclass(frozen=True, slots=True)
class LivePosition:
    """Most recent GPS fix reported by the walker's device."""

    walker_id: str
    latitude: float
    longitude: float
    recorded_at: datetime
    accuracy_meters: Optional[float] = None


@dataclass(frozen=True, slots=True)
class RouteBooking:
    booking_id: str
    location_id: str
    latitude: float
    longitude: float
    scheduled_start: datetime
    scheduled_end: datetime
    service_duration: Optional[timedelta] = None

    def __post_init__(self) -> None:
        if self.service_duration is None:
            object.__setattr__(self, "service_duration", self.scheduled_end - self.scheduled_start)

    @property
    def location(self) -> Location:
        return Location(self.location_id, self.latitude, self.longitude)

    @property
    def latest_arrival(self) -> datetime:
        """Latest arrival that still lets the visit finish inside its window."""
        return max(self.scheduled_start, self.scheduled_end - self.service_duration)


@dataclass(slots=True)
class RouteStop:
    sequence: int
    booking_id: str
    location_id: str
    arrival_time: datetime
    departure_time: datetime
    travel_from_previous: timedelta
    service_duration: timedelta


@dataclass(slots=True)
class OptimizedRoute:
    stops: list[RouteStop] = field(default_factory=list)
    total_travel: timedelta = timedelta(0)
    total_distance: int = 0
    savings_vs_chronological: timedelta = timedelta(0)
    is_optimized: bool = False

    @property
    def total_service(self) -> timedelta:
        return sum((stop.service_duration for stop in self.stops), timedelta(0))
