"""Serializers for optimized walker itineraries."""

from __future__ import annotations

import csv
import io

from ...models.domain import OptimizedRoute


def _minutes(seconds: float) -> float:
    return round(seconds / 60.0, 2)


def route_to_json(route: OptimizedRoute) -> dict:
    return {
        "is_optimized": route.is_optimized,
        "total_travel_minutes": _minutes(route.total_travel.total_seconds()),
        "total_service_minutes": _minutes(route.total_service.total_seconds()),
        "total_distance_km": round(route.total_distance / 1000.0, 3),
        "savings_minutes": _minutes(route.savings_vs_chronological.total_seconds()),
        "stops": [
            {
                "sequence": stop.sequence,
                "booking_id": stop.booking_id,
                "location_id": stop.location_id,
                "arrival_time": stop.arrival_time.isoformat(),
                "departure_time": stop.departure_time.isoformat(),
                "travel_from_previous_minutes": _minutes(stop.travel_from_previous.total_seconds()),
                "service_duration_minutes": _minutes(stop.service_duration.total_seconds()),
            }
            for stop in route.stops
        ],
    }


def route_to_csv(route: OptimizedRoute) -> str:
    buffer = io.StringIO()
    fieldnames = [
        "sequence",
        "booking_id",
        "location_id",
        "arrival_time",
        "departure_time",
        "travel_from_previous_minutes",
        "service_duration_minutes",
    ]
    writer = csv.DictWriter(buffer, fieldnames=fieldnames)
    writer.writeheader()
    for stop in route.stops:
        writer.writerow(
            {
                "sequence": stop.sequence,
                "booking_id": stop.booking_id,
                "location_id": stop.location_id,
                "arrival_time": stop.arrival_time.isoformat(),
                "departure_time": stop.departure_time.isoformat(),
                "travel_from_previous_minutes": _minutes(stop.travel_from_previous.total_seconds()),
                "service_duration_minutes": _minutes(stop.service_duration.total_seconds()),
            }
        )
    return buffer.getvalue()
