"""Per-request configuration for availability calculation."""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from datetime import timedelta
from typing import Any

from ...config import Settings, settings
from ...models.domain import InvalidRequestError


@dataclass(frozen=True, slots=True)
class EngineConfig:
    """
    Options for one availability request.

    Attributes:
        min_buffer_minutes: Slack kept after travel on each side of a booking
        default_travel_minutes: Travel assumed when no location is known
        slot_interval_minutes: Grid step for candidate slot starts
        max_advance_days: How many days ahead slots are offered
        min_notice_hours: Minimum lead time before a slot may start
        max_travel_minutes: Longest travel looked for between a booking just outside
            the working window and a slot inside it
    """

    min_buffer_minutes: int = 15
    default_travel_minutes: int = 20
    slot_interval_minutes: int = 30
    max_advance_days: int = 30
    min_notice_hours: int = 2
    max_travel_minutes: int = 120

    def __post_init__(self) -> None:
        if self.slot_interval_minutes <= 0:
            raise InvalidRequestError(f"slot_interval_minutes must be positive, got {self.slot_interval_minutes}")
        for name in (
            "min_buffer_minutes",
            "default_travel_minutes",
            "max_advance_days",
            "min_notice_hours",
            "max_travel_minutes",
        ):
            value = getattr(self, name)
            if value < 0:
                raise InvalidRequestError(f"{name} must not be negative, got {value}")

    @classmethod
    def from_settings(cls, config: Settings | None = None) -> "EngineConfig":
        config = config or settings
        return cls(**{f.name: getattr(config, f.name) for f in fields(cls)})

    def with_overrides(self, **overrides: Any) -> "EngineConfig":
        """Return a copy with the given options replaced; None values are ignored."""
        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise InvalidRequestError(f"Unknown engine options: {', '.join(sorted(unknown))}")
        changes = {name: value for name, value in overrides.items() if value is not None}
        return replace(self, **changes) if changes else self

    @property
    def min_buffer(self) -> timedelta:
        return timedelta(minutes=self.min_buffer_minutes)

    @property
    def default_travel(self) -> timedelta:
        return timedelta(minutes=self.default_travel_minutes)

    @property
    def max_travel(self) -> timedelta:
        return timedelta(minutes=self.max_travel_minutes)

    @property
    def slot_interval(self) -> timedelta:
        return timedelta(minutes=self.slot_interval_minutes)

    @property
    def min_notice(self) -> timedelta:
        return timedelta(hours=self.min_notice_hours)
