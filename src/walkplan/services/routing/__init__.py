"""Daily route optimization for a single walker."""

from .optimizer import RouteOptimizer, chronological, is_time_feasible, route_travel_seconds
from .service import optimize_walker_route

__all__ = [
    "RouteOptimizer",
    "chronological",
    "is_time_feasible",
    "optimize_walker_route",
    "route_travel_seconds",
]
