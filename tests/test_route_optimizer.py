from datetime import datetime, timedelta, timezone

import pytest

from walkplan.models.domain import (
    Confidence,
    InvalidRequestError,
    Location,
    RouteBooking,
    TravelSource,
    TravelTimeEstimate,
)
from walkplan.services.routing.fragments import FragmentSet
from walkplan.services.routing.optimizer import RouteOptimizer, chronological, is_time_feasible
from walkplan.services.travel.provider import TravelTimeProvider
from walkplan.services.travel.sources import DefaultSource, TravelTimeSource

AS_OF = datetime(2025, 3, 3, 6, 0, tzinfo=timezone.utc)


class LineProvider:
    """Stops sit on a line; one kilometre takes one minute."""

    def __init__(self, positions: dict[str, float]):
        self.positions = positions

    def estimate(self, origin, destination, as_of, *, depart_at=None):
        km = abs(self.positions[origin.location_id] - self.positions[destination.location_id])
        return TravelTimeEstimate(timedelta(minutes=km), int(km * 1000), Confidence.HIGH, as_of)


def _at(hour: int, minute: int = 0) -> datetime:
    return datetime(2025, 3, 3, hour, minute, tzinfo=timezone.utc)


def _booking(booking_id, start, end, service_minutes=None):
    return RouteBooking(
        booking_id=booking_id,
        location_id=booking_id,
        latitude=39.7,
        longitude=-105.0,
        scheduled_start=start,
        scheduled_end=end,
        service_duration=timedelta(minutes=service_minutes) if service_minutes is not None else None,
    )


def _flexible(booking_id, minute_offset):
    """A 30-minute visit that may happen any time between 08:00 and 18:00."""
    return _booking(booking_id, _at(8, minute_offset), _at(18), service_minutes=30)


def _optimizer(positions):
    return RouteOptimizer(LineProvider(positions), AS_OF, max_workers=2)


def test_no_bookings_gives_empty_route():
    route = _optimizer({}).optimize([])

    assert route.stops == []
    assert route.total_travel == timedelta(0)
    assert route.is_optimized is False


def test_single_booking_has_zero_travel_and_savings():
    route = _optimizer({"A": 0}).optimize([_booking("A", _at(9), _at(10))])

    assert len(route.stops) == 1
    stop = route.stops[0]
    assert stop.sequence == 1
    assert stop.arrival_time == _at(9)
    assert stop.departure_time == _at(10)
    assert stop.travel_from_previous == timedelta(0)
    assert route.total_travel == timedelta(0)
    assert route.savings_vs_chronological == timedelta(0)
    assert route.is_optimized is False


def test_savings_reorders_zigzag_route():
    positions = {"A": 0, "B": 10, "C": 1}
    bookings = [_flexible("A", 0), _flexible("B", 1), _flexible("C", 2)]

    route = _optimizer(positions).optimize(bookings)

    assert [stop.booking_id for stop in route.stops] == ["A", "C", "B"]
    assert route.is_optimized is True
    assert route.total_travel == timedelta(minutes=10)
    assert route.total_distance == 10000
    assert route.savings_vs_chronological == timedelta(minutes=9)
    assert route.stops[1].arrival_time == _at(8, 31)
    assert route.stops[2].arrival_time == route.stops[1].departure_time + timedelta(minutes=9)


def test_chronological_route_kept_when_already_best():
    positions = {"A": 0, "B": 1, "C": 2}
    bookings = [_flexible("C", 2), _flexible("A", 0), _flexible("B", 1)]

    route = _optimizer(positions).optimize(bookings)

    assert [stop.booking_id for stop in route.stops] == ["A", "B", "C"]
    assert route.is_optimized is False
    assert route.savings_vs_chronological == timedelta(0)
    assert route.total_travel == timedelta(minutes=2)


def test_time_windows_block_infeasible_reordering():
    positions = {"A": 0, "B": 10, "C": 1}
    bookings = [
        _booking("A", _at(9), _at(10)),
        _booking("B", _at(10, 30), _at(11, 30)),
        _booking("C", _at(12), _at(13)),
    ]

    route = _optimizer(positions).optimize(bookings)

    assert [stop.booking_id for stop in route.stops] == ["A", "B", "C"]
    assert route.is_optimized is False
    assert route.savings_vs_chronological == timedelta(0)


def test_savings_are_never_negative():
    positions = {"A": 0, "B": 7, "C": 3, "D": 12, "E": 5}
    bookings = [_flexible(booking_id, index) for index, booking_id in enumerate(positions)]

    route = _optimizer(positions).optimize(bookings)

    assert route.savings_vs_chronological >= timedelta(0)
    assert sorted(stop.booking_id for stop in route.stops) == sorted(positions)
    assert [stop.sequence for stop in route.stops] == [1, 2, 3, 4, 5]


def test_optimization_is_deterministic():
    positions = {"A": 0, "B": 7, "C": 3, "D": 12, "E": 5, "F": 3}
    bookings = [_flexible(booking_id, index % 3) for index, booking_id in enumerate(positions)]

    first = _optimizer(positions).optimize(bookings)
    second = _optimizer(positions).optimize(list(reversed(bookings)))

    assert [stop.booking_id for stop in first.stops] == [stop.booking_id for stop in second.stops]
    assert first.total_travel == second.total_travel


def test_duplicate_bookings_are_visited_once():
    positions = {"A": 0, "B": 4}
    bookings = [_flexible("A", 0), _flexible("B", 5), _flexible("A", 0)]

    route = _optimizer(positions).optimize(bookings)

    assert [stop.booking_id for stop in route.stops] == ["A", "B"]


def test_provider_failures_fall_back_to_default_travel():
    class BrokenSource(TravelTimeSource):
        name = TravelSource.ROUTING_API

        def lookup(self, origin, destination, *, as_of, depart_at=None):
            raise ConnectionError("routing service unreachable")

    provider = TravelTimeProvider([BrokenSource()], DefaultSource(20))
    bookings = [
        RouteBooking("A", "loc-a", 39.70, -105.00, _at(9), _at(10)),
        RouteBooking("B", "loc-b", 39.75, -105.05, _at(11), _at(12)),
    ]

    route = RouteOptimizer(provider, AS_OF).optimize(bookings)

    assert route.total_travel == timedelta(minutes=20)
    assert route.stops[1].travel_from_previous == timedelta(minutes=20)


def test_naive_as_of_is_rejected():
    with pytest.raises(InvalidRequestError):
        RouteOptimizer(LineProvider({}), datetime(2025, 3, 3, 6, 0))


def test_chronological_orders_by_start_then_id():
    bookings = [_booking("B", _at(9), _at(10)), _booking("A", _at(9), _at(10)), _booking("C", _at(8), _at(9))]

    assert [booking.booking_id for booking in chronological(bookings)] == ["C", "A", "B"]


def test_latest_arrival_allows_slack_inside_window():
    booking = _booking("A", _at(9), _at(12), service_minutes=60)
    tight = _booking("B", _at(9), _at(10))

    assert booking.latest_arrival == _at(11)
    assert tight.latest_arrival == _at(9)


def test_is_time_feasible_checks_every_arrival():
    bookings = [_booking("A", _at(9), _at(10)), _booking("B", _at(10, 15), _at(11))]
    durations = [[0, 600], [600, 0]]

    assert is_time_feasible([0, 1], bookings, durations)
    assert not is_time_feasible([0, 1], bookings, [[0, 1200], [1200, 0]])


def test_fragments_join_only_at_endpoints():
    fragments = FragmentSet(4)
    fragments.join(0, 1, fragments.join_candidates(0, 1)[0])
    fragments.join(1, 2, fragments.join_candidates(1, 2)[0])

    assert fragments.fragment(2) == [0, 1, 2]
    assert not fragments.can_join(1, 3)
    assert not fragments.can_join(0, 2)
    assert fragments.can_join(2, 3)
    assert fragments.join_candidates(0, 3) == [[3, 0, 1, 2], [2, 1, 0, 3]]
    assert len(fragments) == 2


def test_stops_wait_for_their_scheduled_start():
    bookings = [_booking("A", _at(9), _at(10)), _booking("B", _at(14), _at(15))]

    route = _optimizer({"A": 0, "B": 5}).optimize(bookings)

    second = route.stops[1]
    assert second.arrival_time == _at(14)
    assert second.departure_time == _at(15)
    assert second.travel_from_previous == timedelta(minutes=5)
    for stop, booking in zip(route.stops, bookings):
        assert booking.scheduled_start <= stop.arrival_time <= booking.latest_arrival


def test_is_time_feasible_counts_waiting_for_later_stops():
    bookings = [
        _booking("A", _at(9), _at(10)),
        _booking("B", _at(11), _at(12)),
        _booking("C", _at(11, 30), _at(12, 15), service_minutes=30),
    ]
    durations = [[0, 300, 300], [300, 0, 300], [300, 300, 0]]

    # B cannot start before 11:00, so C is reached at 12:05, after its 11:45 limit
    assert not is_time_feasible([0, 1, 2], bookings, durations)
    assert is_time_feasible([0, 1], bookings, durations)
