"""Geospatial helper functions."""

from __future__ import annotations

import math

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute distance between two coordinates using the Haversine formula."""

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def estimate_drive_seconds(distance_km: float, speed_kmh: float, minimum_minutes: float = 0.0) -> int:
    """Convert a straight-line distance into a drive time at a constant average speed.

    The result is rounded up to whole seconds and never drops below ``minimum_minutes``
    for any non-zero distance.
    """

    if distance_km <= 0:
        return 0
    seconds = math.ceil(distance_km / speed_kmh * 3600.0)
    return max(seconds, math.ceil(minimum_minutes * 60))
