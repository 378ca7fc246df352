"""Savings-based sequencing of one walker's bookings for a day."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Iterable, Sequence

from ...config import settings
from ...models.domain import InvalidRequestError, OptimizedRoute, RouteBooking, RouteStop
from ..travel.matrix import TravelMatrix, build_travel_matrix
from ..travel.provider import TravelTimeProvider
from .fragments import FragmentSet

logger = logging.getLogger(__name__)


def chronological(bookings: Iterable[RouteBooking]) -> list[RouteBooking]:
    """Unique bookings (first occurrence of each id wins) ordered by scheduled start."""
    unique: dict[str, RouteBooking] = {}
    for booking in bookings:
        unique.setdefault(booking.booking_id, booking)
    return sorted(unique.values(), key=lambda booking: (booking.scheduled_start, booking.booking_id))


def route_travel_seconds(order: Sequence[int], durations: Sequence[Sequence[int]]) -> int:
    return sum(durations[prev][nxt] for prev, nxt in zip(order, order[1:]))


def is_time_feasible(order: Sequence[int], bookings: Sequence[RouteBooking], durations: Sequence[Sequence[int]]) -> bool:
    """Whether every stop is reached by its latest acceptable arrival.

    The first stop is reached at its scheduled start. Each later stop is reached
    after the previous visit plus travel, waiting for its scheduled start if early.
    """
    if not order:
        return True
    first = bookings[order[0]]
    departure = first.scheduled_start + first.service_duration
    for prev, nxt in zip(order, order[1:]):
        arrival = max(departure + timedelta(seconds=durations[prev][nxt]), bookings[nxt].scheduled_start)
        if arrival > bookings[nxt].latest_arrival:
            return False
        departure = arrival + bookings[nxt].service_duration
    return True


class RouteOptimizer:
    """Clarke-Wright savings heuristic for an open route without a depot.

    The classic savings formula measures each stop against a depot. With no depot,
    the average travel from a stop to every other stop stands in for it:

        score(i, j) = S_i + S_j - (N - 1) * c(i, j)

    where ``S_k`` is the sum of travel seconds from ``k`` to all other stops. This
    is ``(N - 1) * (mean_i + mean_j - c(i, j))`` kept in integers, so pairs that
    are close to each other relative to their typical distance merge first. Only
    positive scores are merge candidates.
    """

    def __init__(
        self,
        provider: TravelTimeProvider,
        as_of: datetime,
        max_workers: int | None = None,
    ) -> None:
        if as_of.tzinfo is None:
            raise InvalidRequestError("as_of must be timezone-aware.")
        self.provider = provider
        self.as_of = as_of
        self.max_workers = max_workers or settings.matrix_max_parallel_lookups

    def optimize(self, bookings: Iterable[RouteBooking]) -> OptimizedRoute:
        ordered = chronological(bookings)
        if len(ordered) <= 1:
            return self._build_route(list(range(len(ordered))), ordered, None, savings=0, is_optimized=False)

        matrix = build_travel_matrix(
            [booking.location for booking in ordered], self.provider, self.as_of, self.max_workers
        )
        baseline = list(range(len(ordered)))
        baseline_travel = route_travel_seconds(baseline, matrix.durations)
        baseline_feasible = is_time_feasible(baseline, ordered, matrix.durations)

        candidate = self._savings_order(ordered, matrix)
        candidate_travel = route_travel_seconds(candidate, matrix.durations)
        candidate_feasible = is_time_feasible(candidate, ordered, matrix.durations)

        improves = candidate_travel < baseline_travel and (candidate_feasible or not baseline_feasible)
        logger.info(
            f"Route of {len(ordered)} stops: chronological travel {baseline_travel}s "
            f"(feasible={baseline_feasible}), savings order {candidate_travel}s "
            f"(feasible={candidate_feasible}); using {'optimized' if improves else 'chronological'} order"
        )
        if not improves:
            return self._build_route(baseline, ordered, matrix, savings=0, is_optimized=False)
        return self._build_route(
            candidate, ordered, matrix, savings=baseline_travel - candidate_travel, is_optimized=True
        )

    def _savings_order(self, bookings: Sequence[RouteBooking], matrix: TravelMatrix) -> list[int]:
        size = len(bookings)
        durations = matrix.durations
        row_sums = [sum(row) for row in durations]

        scored = []
        for i in range(size):
            for j in range(i + 1, size):
                score = row_sums[i] + row_sums[j] - (size - 1) * durations[i][j]
                if score <= 0:
                    continue
                combined_start = bookings[i].scheduled_start.timestamp() + bookings[j].scheduled_start.timestamp()
                scored.append((-score, combined_start, i, j))
        scored.sort()

        fragments = FragmentSet(size)
        for _, _, i, j in scored:
            if len(fragments) == 1:
                break
            if not fragments.can_join(i, j):
                continue
            for path in fragments.join_candidates(i, j):
                if is_time_feasible(path, bookings, durations):
                    fragments.join(i, j, path)
                    break

        # Largest fragment wins; on ties the one holding the earliest booking
        main = min(fragments.fragments(), key=lambda path: (-len(path), min(path)))
        leftovers = sorted(stop for path in fragments.fragments() if path is not main for stop in path)
        route = list(main)
        for stop in leftovers:
            route = self._insert(route, stop, bookings, durations)
        return route

    @staticmethod
    def _insert(
        route: list[int], stop: int, bookings: Sequence[RouteBooking], durations: Sequence[Sequence[int]]
    ) -> list[int]:
        """Insert ``stop`` where it adds the least travel, preferring time-feasible positions."""
        best_key = None
        best_route = route
        for position in range(len(route) + 1):
            if position == 0:
                added = durations[stop][route[0]]
            elif position == len(route):
                added = durations[route[-1]][stop]
            else:
                before, after = route[position - 1], route[position]
                added = durations[before][stop] + durations[stop][after] - durations[before][after]
            trial = route[:position] + [stop] + route[position:]
            key = (not is_time_feasible(trial, bookings, durations), added, position)
            if best_key is None or key < best_key:
                best_key, best_route = key, trial
        return best_route

    @staticmethod
    def _build_route(
        order: Sequence[int],
        bookings: Sequence[RouteBooking],
        matrix: TravelMatrix | None,
        *,
        savings: int,
        is_optimized: bool,
    ) -> OptimizedRoute:
        stops: list[RouteStop] = []
        total_travel = 0
        total_distance = 0
        departure: datetime | None = None
        previous: int | None = None
        for sequence, index in enumerate(order, start=1):
            booking = bookings[index]
            if previous is None or matrix is None:
                travel = 0
                arrival = booking.scheduled_start
            else:
                travel = matrix.durations[previous][index]
                total_distance += matrix.distances[previous][index]
                arrival = max(departure + timedelta(seconds=travel), booking.scheduled_start)
            total_travel += travel
            departure = arrival + booking.service_duration
            stops.append(
                RouteStop(
                    sequence=sequence,
                    booking_id=booking.booking_id,
                    location_id=booking.location_id,
                    arrival_time=arrival,
                    departure_time=departure,
                    travel_from_previous=timedelta(seconds=travel),
                    service_duration=booking.service_duration,
                )
            )
            previous = index
        return OptimizedRoute(
            stops=stops,
            total_travel=timedelta(seconds=total_travel),
            total_distance=total_distance,
            savings_vs_chronological=timedelta(seconds=max(0, savings)),
            is_optimized=is_optimized,
        )
