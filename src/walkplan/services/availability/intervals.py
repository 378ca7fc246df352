"""Interval arithmetic over busy time: union and free-gap extraction."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Optional

from ...models.domain import BusyInterval


@dataclass(slots=True)
class MergedBusy:
    """A union of overlapping or touching busy intervals.

    ``leading`` is the member that starts first and ``trailing`` the one that ends
    last; they are what a free gap before or after the union actually borders.
    """

    start: datetime
    end: datetime
    leading: BusyInterval
    trailing: BusyInterval


@dataclass(frozen=True, slots=True)
class FreeGap:
    start: datetime
    end: datetime
    previous: Optional[BusyInterval] = None
    next: Optional[BusyInterval] = None

    @property
    def duration(self) -> timedelta:
        return self.end - self.start


def merge_busy_intervals(busy: Iterable[BusyInterval]) -> list[MergedBusy]:
    ordered = sorted(busy, key=lambda item: (item.start, item.end))
    merged: list[MergedBusy] = []
    for item in ordered:
        if merged and item.start <= merged[-1].end:
            last = merged[-1]
            if item.end >= last.end:
                last.end = item.end
                last.trailing = item
            continue
        merged.append(MergedBusy(item.start, item.end, item, item))
    return merged


def find_schedule_gaps(
    window_start: datetime,
    window_end: datetime,
    busy: Iterable[BusyInterval],
) -> list[FreeGap]:
    """Free gaps inside [window_start, window_end) around the given busy time.

    Busy intervals may overlap each other or extend past the window. Each gap
    records the busy interval it follows and the one it precedes. A gap touching
    the window edge borders the nearest busy interval outside the window on that
    side, or None when there is none.
    """
    gaps: list[FreeGap] = []
    cursor = window_start
    previous: Optional[BusyInterval] = None
    following: Optional[BusyInterval] = None
    for group in merge_busy_intervals(busy):
        if group.end <= window_start:
            previous = group.trailing
            continue
        if group.start >= window_end:
            following = group.leading
            break
        if group.start > cursor:
            gaps.append(FreeGap(cursor, group.start, previous, group.leading))
        cursor = max(cursor, group.end)
        previous = group.trailing
    if cursor < window_end:
        gaps.append(FreeGap(cursor, window_end, previous, following))
    return gaps
