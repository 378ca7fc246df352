"""Route optimization orchestration service."""

from __future__ import annotations

import logging
from datetime import datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from ...models.domain import OptimizedRoute
from ...persistence.base import SchedulingRepository
from ...schemas.routing import OptimizedRouteResponse, RouteRequest, RouteStopModel
from ..travel.provider import TravelTimeProvider, build_provider
from .optimizer import RouteOptimizer

logger = logging.getLogger(__name__)


def _minutes(delta: timedelta) -> float:
    return round(delta.total_seconds() / 60.0, 2)


def _to_response(payload: RouteRequest, route: OptimizedRoute) -> OptimizedRouteResponse:
    return OptimizedRouteResponse(
        walker_id=payload.walker_id,
        route_date=payload.route_date,
        stops=[
            RouteStopModel(
                sequence=stop.sequence,
                booking_id=stop.booking_id,
                location_id=stop.location_id,
                arrival_time=stop.arrival_time,
                departure_time=stop.departure_time,
                travel_from_previous_minutes=_minutes(stop.travel_from_previous),
                service_duration_minutes=_minutes(stop.service_duration),
            )
            for stop in route.stops
        ],
        total_travel_minutes=_minutes(route.total_travel),
        total_distance_km=round(route.total_distance / 1000.0, 3),
        savings_minutes=_minutes(route.savings_vs_chronological),
        is_optimized=route.is_optimized,
    )


def optimize_walker_route(
    payload: RouteRequest,
    *,
    repository: SchedulingRepository | None = None,
    provider: TravelTimeProvider | None = None,
) -> OptimizedRouteResponse:
    """Sequence the walker's confirmed and in-progress bookings for one day."""
    if repository is None:
        from ...persistence.database import SupabaseSchedulingRepository

        repository = SupabaseSchedulingRepository()
    owns_provider = provider is None
    if provider is None:
        from ...persistence.database import SupabaseTravelTimeCache

        provider = build_provider(walker_id=payload.walker_id, cache_store=SupabaseTravelTimeCache())

    tz = ZoneInfo(payload.timezone)
    day_start = datetime.combine(payload.route_date, time.min, tzinfo=tz)
    day_end = day_start + timedelta(days=1)
    as_of = payload.as_of or datetime.now(timezone.utc)

    try:
        bookings = repository.get_route_bookings(payload.walker_id, day_start, day_end)
        logger.info(f"Optimizing {len(bookings)} bookings for walker {payload.walker_id} on {payload.route_date}")
        route = RouteOptimizer(provider, as_of, payload.max_parallel_lookups).optimize(bookings)
    finally:
        if owns_provider:
            provider.close()
    return _to_response(payload, route)
