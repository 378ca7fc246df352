"""Bookable slot calculation for a single walker."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from ...models.domain import (
    AvailableSlot,
    BusyInterval,
    BusySource,
    Confidence,
    DateRange,
    InvalidRequestError,
    Location,
    TimeInterval,
    WorkingHoursWindow,
)
from ...persistence.base import SchedulingRepository
from ..travel.provider import TravelTimeProvider
from .config import EngineConfig
from .intervals import FreeGap, find_schedule_gaps

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class EdgeBuffer:
    """Time reserved between a gap edge and a slot: travel plus the minimum buffer."""

    buffer: timedelta
    confidence: Confidence
    travel: Optional[timedelta] = None


WINDOW_EDGE = EdgeBuffer(timedelta(0), Confidence.HIGH)


class AvailabilityEngine:
    """Enumerate valid slots inside a walker's working hours.

    Slots are laid on a grid anchored at the start of each working window and
    stepping by ``slot_interval_minutes``. Around every existing booking the engine
    reserves travel to or from the requested ``target`` plus ``min_buffer_minutes``;
    blocks and bookings without a known location reserve ``default_travel_minutes``
    plus the minimum buffer instead. The only clock read is the ``now`` passed in.
    """

    def __init__(self, repository: SchedulingRepository, provider: TravelTimeProvider) -> None:
        self.repository = repository
        self.provider = provider

    def find_slots(
        self,
        walker_id: str,
        date_range: DateRange,
        service_duration: timedelta,
        config: EngineConfig,
        *,
        now: datetime,
        target: Location | None = None,
    ) -> list[AvailableSlot]:
        if service_duration <= timedelta(0):
            raise InvalidRequestError(f"Service duration must be positive, got {service_duration}.")
        if date_range.end < date_range.start:
            raise InvalidRequestError(f"Date range end {date_range.end} is before start {date_range.start}.")
        if now.tzinfo is None:
            raise InvalidRequestError("now must be timezone-aware.")

        windows: dict[int, list[WorkingHoursWindow]] = {}
        for window in self.repository.get_working_hours(walker_id):
            if window.active:
                windows.setdefault(window.day_of_week, []).append(window)

        slots: list[AvailableSlot] = []
        for day in date_range.days():
            day_windows = sorted(windows.get(day.weekday(), []), key=lambda w: w.start)
            if not day_windows:
                continue
            for window in day_windows:
                slots.extend(
                    self._slots_for_window(walker_id, day, window, service_duration, config, now, target)
                )

        logger.debug(
            f"Found {len(slots)} slots for walker {walker_id} between {date_range.start} and {date_range.end}"
        )
        return slots

    def _slots_for_window(
        self,
        walker_id: str,
        day: date,
        window: WorkingHoursWindow,
        service_duration: timedelta,
        config: EngineConfig,
        now: datetime,
        target: Location | None,
    ) -> list[AvailableSlot]:
        today = now.astimezone(ZoneInfo(window.timezone)).date()
        if day > today + timedelta(days=config.max_advance_days):
            return []
        open_interval = window.to_utc(day)
        if open_interval is None:
            return []
        earliest = max(open_interval.start, now + config.min_notice)
        if earliest + service_duration > open_interval.end:
            return []

        # Bookings just outside the window still need travel and buffer inside it
        reach = max(config.default_travel, config.max_travel) + config.min_buffer
        busy = self.repository.get_busy_intervals(walker_id, open_interval.start - reach, open_interval.end + reach)
        slots: list[AvailableSlot] = []
        for gap in find_schedule_gaps(open_interval.start, open_interval.end, busy):
            if gap.duration < service_duration or gap.end - service_duration < earliest:
                continue
            slots.extend(self._slots_in_gap(gap, open_interval, earliest, service_duration, config, now, target))
        return slots

    def _slots_in_gap(
        self,
        gap: FreeGap,
        open_interval: TimeInterval,
        earliest: datetime,
        service_duration: timedelta,
        config: EngineConfig,
        now: datetime,
        target: Location | None,
    ) -> list[AvailableSlot]:
        before = self._edge_buffer(gap.previous, target, config, now, leaving=True)
        after = self._edge_buffer(gap.next, target, config, now, leaving=False)

        usable_start, usable_end = gap.start, gap.end
        if gap.previous is not None:
            if gap.previous.end < gap.start and gap.previous.end + before.buffer <= gap.start:
                before = WINDOW_EDGE
            usable_start = max(gap.start, gap.previous.end + before.buffer)
        if gap.next is not None:
            if gap.next.start > gap.end and gap.next.start - after.buffer >= gap.end:
                after = WINDOW_EDGE
            usable_end = min(gap.end, gap.next.start - after.buffer)
        if usable_end - usable_start < service_duration:
            return []

        first = max(usable_start, earliest)
        candidate = _align_to_grid(first, open_interval.start, config.slot_interval)
        confidence = Confidence.lowest(before.confidence, after.confidence)
        travel = before.travel

        slots = []
        while candidate + service_duration <= usable_end:
            slots.append(AvailableSlot(candidate, candidate + service_duration, travel, confidence))
            candidate += config.slot_interval
        return slots

    def _edge_buffer(
        self,
        neighbour: BusyInterval | None,
        target: Location | None,
        config: EngineConfig,
        now: datetime,
        *,
        leaving: bool,
    ) -> EdgeBuffer:
        """Buffer on one side of a gap; ``leaving`` means the walker comes from ``neighbour``."""
        if neighbour is None:
            return WINDOW_EDGE
        if neighbour.source is BusySource.BOOKING and neighbour.location is not None and target is not None:
            if leaving:
                estimate = self.provider.estimate(neighbour.location, target, now, depart_at=neighbour.end)
            else:
                estimate = self.provider.estimate(target, neighbour.location, now, depart_at=neighbour.start)
            return EdgeBuffer(estimate.duration + config.min_buffer, estimate.confidence, estimate.duration)
        return EdgeBuffer(config.default_travel + config.min_buffer, Confidence.LOW, config.default_travel)


def _align_to_grid(moment: datetime, anchor: datetime, step: timedelta) -> datetime:
    """Smallest grid point ``anchor + k * step`` (k >= 0) at or after ``moment``."""
    if moment <= anchor:
        return anchor
    steps = -((anchor - moment) // step)
    return anchor + steps * step
