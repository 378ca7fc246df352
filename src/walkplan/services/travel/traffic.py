"""Rush-hour adjustment for travel times that carry no traffic information."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from zoneinfo import ZoneInfo

from ...config import Settings, settings


@dataclass(frozen=True, slots=True)
class TrafficProfile:
    peak_hours: tuple[tuple[int, int], ...] = ((7, 9), (16, 18))
    peak_multiplier: float = 1.3
    timezone: str = "UTC"

    @classmethod
    def from_settings(cls, config: Settings | None = None) -> "TrafficProfile":
        config = config or settings
        return cls(
            peak_hours=tuple(config.peak_hours),
            peak_multiplier=config.peak_multiplier,
            timezone=config.traffic_timezone,
        )

    def is_peak(self, moment: datetime) -> bool:
        hour = moment.astimezone(ZoneInfo(self.timezone)).hour
        return any(start <= hour < end for start, end in self.peak_hours)

    def multiplier(self, moment: datetime | None) -> float:
        if moment is None or not self.is_peak(moment):
            return 1.0
        return self.peak_multiplier

    def adjust_seconds(self, seconds: float, moment: datetime | None) -> int:
        return math.ceil(seconds * self.multiplier(moment))


NO_TRAFFIC = TrafficProfile(peak_hours=(), peak_multiplier=1.0)
