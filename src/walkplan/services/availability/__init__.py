"""Availability engine: bookable slots around existing bookings and blocks."""

from .config import EngineConfig
from .engine import AvailabilityEngine
from .intervals import FreeGap, find_schedule_gaps, merge_busy_intervals
from .service import get_available_slots

__all__ = [
    "AvailabilityEngine",
    "EngineConfig",
    "FreeGap",
    "find_schedule_gaps",
    "get_available_slots",
    "merge_busy_intervals",
]
