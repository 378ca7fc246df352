"""Interchangeable links of the travel-time fallback chain."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Optional

from ...models.domain import Confidence, Location, TravelSource, TravelTimeEstimate
from ...persistence.base import LiveLocationFeed, TravelTimeCacheStore, cache_key
from ..geospatial import estimate_drive_seconds, haversine_km
from .routing_client import RoutingClient
from .traffic import NO_TRAFFIC, TrafficProfile

logger = logging.getLogger(__name__)


class TravelTimeSource(ABC):
    """Contract for one travel-time source.

    ``lookup`` returns None when the source has no answer for the pair; raising is
    also allowed and is treated the same way by the provider.
    """

    name: TravelSource
    #: Whether a successful answer should be written through to the persisted cache.
    writes_through: bool = False

    @abstractmethod
    def lookup(
        self,
        origin: Location,
        destination: Location,
        *,
        as_of: datetime,
        depart_at: datetime | None = None,
    ) -> Optional[TravelTimeEstimate]:
        raise NotImplementedError


class CacheSource(TravelTimeSource):
    """Fresh rows from the travel-time cache, High confidence.

    Rows hold base durations. A hit is returned as stored except when ``depart_at``
    falls in a peak hour of ``traffic``, where the duration is scaled by the peak
    multiplier. Rows older than ``max_age_minutes`` at ``as_of`` are misses.
    """

    name = TravelSource.CACHE

    def __init__(
        self,
        store: TravelTimeCacheStore,
        max_age_minutes: int,
        traffic: TrafficProfile = NO_TRAFFIC,
    ) -> None:
        self.store = store
        self.max_age = timedelta(minutes=max_age_minutes)
        self.traffic = traffic

    def lookup(self, origin, destination, *, as_of, depart_at=None):
        if origin.location_id is None or destination.location_id is None:
            return None
        entry = self.store.get(*cache_key(origin.location_id, destination.location_id))
        if entry is None:
            return None
        age = as_of - entry.calculated_at
        if age > self.max_age:
            logger.debug(
                f"Cache entry {origin.location_id}->{destination.location_id} is stale "
                f"({age.total_seconds() / 60:.0f} min old)"
            )
            return None
        seconds = self.traffic.adjust_seconds(entry.travel_seconds, depart_at)
        return TravelTimeEstimate(
            duration=timedelta(seconds=seconds),
            distance_meters=entry.distance_meters,
            confidence=Confidence.HIGH,
            computed_at=entry.calculated_at,
            source=self.name,
        )

    def store_estimate(self, origin: Location, destination: Location, estimate: TravelTimeEstimate) -> None:
        if origin.location_id is None or destination.location_id is None:
            return
        first, second = cache_key(origin.location_id, destination.location_id)
        self.store.upsert(
            first,
            second,
            int(estimate.duration.total_seconds()),
            estimate.distance_meters,
            estimate.computed_at,
        )


class GreatCircleSource(TravelTimeSource):
    name = TravelSource.GREAT_CIRCLE

    def __init__(
        self,
        speed_kmh: float,
        medium_max_km: float,
        minimum_minutes: float = 0.0,
        traffic: TrafficProfile = NO_TRAFFIC,
    ) -> None:
        self.speed_kmh = speed_kmh
        self.medium_max_km = medium_max_km
        self.minimum_minutes = minimum_minutes
        self.traffic = traffic

    def lookup(self, origin, destination, *, as_of, depart_at=None):
        distance_km = haversine_km(origin.latitude, origin.longitude, destination.latitude, destination.longitude)
        seconds = estimate_drive_seconds(distance_km, self.speed_kmh, self.minimum_minutes)
        seconds = self.traffic.adjust_seconds(seconds, depart_at)
        confidence = Confidence.MEDIUM if distance_km <= self.medium_max_km else Confidence.LOW
        return TravelTimeEstimate(
            duration=timedelta(seconds=seconds),
            distance_meters=round(distance_km * 1000.0),
            confidence=confidence,
            computed_at=as_of,
            source=self.name,
        )


class RoutingApiSource(TravelTimeSource):
    name = TravelSource.ROUTING_API
    writes_through = True

    def __init__(self, client: RoutingClient) -> None:
        self.client = client

    def lookup(self, origin, destination, *, as_of, depart_at=None):
        # Routing APIs reject departure times in the past
        departure = depart_at if depart_at is not None and depart_at >= as_of else None
        leg = self.client.travel_time(origin, destination, depart_at=departure)
        return TravelTimeEstimate(
            duration=timedelta(seconds=round(leg.duration_seconds)),
            distance_meters=round(leg.distance_meters),
            confidence=Confidence.HIGH,
            computed_at=as_of,
            source=self.name,
        )


class LiveLocationSource(TravelTimeSource):
    """Travel from the walker's latest GPS fix, standing in for the true origin."""

    name = TravelSource.LIVE_LOCATION

    def __init__(
        self,
        feed: LiveLocationFeed,
        walker_id: str,
        max_age_minutes: int,
        fallback: GreatCircleSource,
        client: RoutingClient | None = None,
    ) -> None:
        self.feed = feed
        self.walker_id = walker_id
        self.max_age = timedelta(minutes=max_age_minutes)
        self.fallback = fallback
        self.client = client

    def lookup(self, origin, destination, *, as_of, depart_at=None):
        position = self.feed.latest(self.walker_id)
        if position is None:
            return None
        age = as_of - position.recorded_at
        if age < timedelta(0) or age > self.max_age:
            return None

        fix = Location(None, position.latitude, position.longitude)
        estimate = None
        if self.client is not None:
            try:
                leg = self.client.travel_time(fix, destination)
                estimate = TravelTimeEstimate(
                    duration=timedelta(seconds=round(leg.duration_seconds)),
                    distance_meters=round(leg.distance_meters),
                    confidence=Confidence.MEDIUM,
                    computed_at=as_of,
                    source=self.name,
                )
            except Exception as e:
                logger.debug(f"Routing lookup from live position of walker {self.walker_id} failed: {e}")
        if estimate is None:
            straight = self.fallback.lookup(fix, destination, as_of=as_of, depart_at=depart_at)
            estimate = TravelTimeEstimate(
                duration=straight.duration,
                distance_meters=straight.distance_meters,
                confidence=Confidence.MEDIUM,
                computed_at=as_of,
                source=self.name,
            )
        return estimate


class DefaultSource(TravelTimeSource):
    name = TravelSource.DEFAULT

    def __init__(self, default_minutes: int) -> None:
        self.default = timedelta(minutes=default_minutes)

    def lookup(self, origin, destination, *, as_of, depart_at=None):
        return TravelTimeEstimate(
            duration=self.default,
            distance_meters=0,
            confidence=Confidence.LOW,
            computed_at=as_of,
            source=self.name,
        )
