"""Travel-time estimation services."""

from .matrix import TravelMatrix, build_travel_matrix
from .provider import TravelTimeProvider, build_provider
from .routing_client import GoogleDistanceMatrixClient, OSRMClient, RouteLeg, RoutingClient, build_routing_client
from .sources import (
    CacheSource,
    DefaultSource,
    GreatCircleSource,
    LiveLocationSource,
    RoutingApiSource,
    TravelTimeSource,
)
from .traffic import NO_TRAFFIC, TrafficProfile

__all__ = [
    "CacheSource",
    "DefaultSource",
    "GoogleDistanceMatrixClient",
    "GreatCircleSource",
    "LiveLocationSource",
    "NO_TRAFFIC",
    "OSRMClient",
    "RouteLeg",
    "RoutingApiSource",
    "RoutingClient",
    "TrafficProfile",
    "TravelMatrix",
    "TravelTimeProvider",
    "TravelTimeSource",
    "build_provider",
    "build_routing_client",
    "build_travel_matrix",
]
