from datetime import datetime, timedelta, timezone

import pytest

from walkplan.config import Settings
from walkplan.models.domain import (
    CachedTravelTime,
    Confidence,
    InvalidRequestError,
    LivePosition,
    Location,
    TravelSource,
)
from walkplan.persistence.memory import InMemoryTravelTimeCache, StaticLiveLocationFeed
from walkplan.services.travel.provider import TravelTimeProvider, build_provider
from walkplan.services.travel.routing_client import RouteLeg, RoutingClient
from walkplan.services.travel.sources import (
    CacheSource,
    DefaultSource,
    GreatCircleSource,
    LiveLocationSource,
    RoutingApiSource,
    TravelTimeSource,
)
from walkplan.services.travel.traffic import TrafficProfile

AS_OF = datetime(2025, 3, 3, 12, 0, tzinfo=timezone.utc)
HOME = Location("loc-home", 39.7392, -104.9903)
PARK = Location("loc-park", 39.7500, -104.9800)
FAR = Location("loc-far", 40.5853, -105.0844)  # Fort Collins, ~95 km away


def _settings(**overrides) -> Settings:
    values = {"routing_backend": "none", "peak_hours": ((7, 9), (16, 18)), "traffic_timezone": "UTC"}
    values.update(overrides)
    return Settings(**values)


class DummyRoutingClient(RoutingClient):
    def __init__(self, duration=420.0, distance=3500.0, error=None):
        super().__init__(timeout=1.0, max_retries=0, backoff_seconds=0.0)
        self.duration = duration
        self.distance = distance
        self.error = error
        self.calls = []

    def travel_time(self, origin, destination, *, depart_at=None):
        self.calls.append((origin, destination, depart_at))
        if self.error:
            raise self.error
        return RouteLeg(self.duration, self.distance)


class FailingSource(TravelTimeSource):
    name = TravelSource.ROUTING_API

    def lookup(self, origin, destination, *, as_of, depart_at=None):
        raise RuntimeError("source down")


def _cache_entry(seconds=540, age_minutes=10) -> CachedTravelTime:
    return CachedTravelTime("loc-home", "loc-park", seconds, 4000, AS_OF - timedelta(minutes=age_minutes))


def test_same_location_is_zero_with_high_confidence():
    provider = build_provider(_settings())
    estimate = provider.estimate(HOME, Location("loc-home", 0.0, 0.0), AS_OF)

    assert estimate.duration == timedelta(0)
    assert estimate.confidence is Confidence.HIGH
    assert estimate.source is TravelSource.SAME_LOCATION


def test_fresh_cache_entry_is_returned_unchanged():
    cache = InMemoryTravelTimeCache([_cache_entry()])
    client = DummyRoutingClient()
    provider = build_provider(_settings(), cache_store=cache, routing_client=client)

    estimate = provider.estimate(HOME, PARK, AS_OF)

    assert estimate.duration == timedelta(seconds=540)
    assert estimate.distance_meters == 4000
    assert estimate.confidence is Confidence.HIGH
    assert estimate.source is TravelSource.CACHE
    assert client.calls == []


def test_cache_is_symmetric():
    cache = InMemoryTravelTimeCache([_cache_entry()])
    provider = build_provider(_settings(), cache_store=cache)

    estimate = provider.estimate(PARK, HOME, AS_OF)

    assert estimate.source is TravelSource.CACHE
    assert estimate.duration == timedelta(seconds=540)


def test_stale_cache_entry_is_skipped():
    cache = InMemoryTravelTimeCache([_cache_entry(age_minutes=90)])
    provider = build_provider(_settings(cache_max_age_minutes=60), cache_store=cache)

    estimate = provider.estimate(HOME, PARK, AS_OF)

    assert estimate.source is TravelSource.GREAT_CIRCLE


def test_cache_applies_peak_multiplier_at_departure():
    cache = InMemoryTravelTimeCache([_cache_entry(seconds=600)])
    provider = build_provider(_settings(peak_multiplier=1.3), cache_store=cache)

    rush = provider.estimate(HOME, PARK, AS_OF, depart_at=datetime(2025, 3, 3, 17, 15, tzinfo=timezone.utc))
    midday = provider.estimate(HOME, PARK, AS_OF, depart_at=datetime(2025, 3, 3, 13, 0, tzinfo=timezone.utc))
    undated = provider.estimate(HOME, PARK, AS_OF)

    assert rush.duration == timedelta(seconds=780)
    assert midday.duration == timedelta(seconds=600)
    assert undated.duration == timedelta(seconds=600)


def test_recent_live_position_is_medium_confidence():
    feed = StaticLiveLocationFeed(
        [LivePosition("walker-1", 39.7400, -104.9900, recorded_at=AS_OF - timedelta(minutes=5))]
    )
    provider = build_provider(_settings(), walker_id="walker-1", live_feed=feed)

    estimate = provider.estimate(HOME, PARK, AS_OF)

    assert estimate.source is TravelSource.LIVE_LOCATION
    assert estimate.confidence is Confidence.MEDIUM


def test_live_position_uses_routing_client_when_available():
    feed = StaticLiveLocationFeed([LivePosition("walker-1", 39.74, -104.99, recorded_at=AS_OF)])
    client = DummyRoutingClient(duration=300.0)
    provider = build_provider(_settings(), walker_id="walker-1", live_feed=feed, routing_client=client)

    estimate = provider.estimate(HOME, PARK, AS_OF)

    assert estimate.source is TravelSource.LIVE_LOCATION
    assert estimate.duration == timedelta(seconds=300)
    assert client.calls[0][0].location_id is None


def test_old_live_position_is_ignored():
    feed = StaticLiveLocationFeed(
        [LivePosition("walker-1", 39.74, -104.99, recorded_at=AS_OF - timedelta(minutes=45))]
    )
    provider = build_provider(
        _settings(live_location_max_age_minutes=30), walker_id="walker-1", live_feed=feed
    )

    assert provider.estimate(HOME, PARK, AS_OF).source is TravelSource.GREAT_CIRCLE


def test_routing_api_result_is_written_through_to_cache():
    cache = InMemoryTravelTimeCache()
    client = DummyRoutingClient(duration=421.6, distance=3500.4)
    provider = build_provider(_settings(), cache_store=cache, routing_client=client)

    estimate = provider.estimate(HOME, PARK, AS_OF)
    assert provider.flush(timeout=5)
    provider.close()

    assert estimate.source is TravelSource.ROUTING_API
    assert estimate.confidence is Confidence.HIGH
    assert estimate.duration == timedelta(seconds=422)
    stored = cache.get("loc-park", "loc-home")
    assert stored is not None
    assert stored.travel_seconds == 422
    assert stored.distance_meters == 3500
    assert (stored.origin_location_id, stored.destination_location_id) == ("loc-home", "loc-park")


def test_routing_api_skips_departure_times_in_the_past():
    client = DummyRoutingClient()
    source = RoutingApiSource(client)

    source.lookup(HOME, PARK, as_of=AS_OF, depart_at=AS_OF - timedelta(hours=1))
    source.lookup(HOME, PARK, as_of=AS_OF, depart_at=AS_OF + timedelta(hours=1))

    assert client.calls[0][2] is None
    assert client.calls[1][2] == AS_OF + timedelta(hours=1)


def test_routing_api_failure_falls_back_to_great_circle():
    client = DummyRoutingClient(error=TimeoutError("slow"))
    provider = build_provider(_settings(), routing_client=client)

    estimate = provider.estimate(HOME, PARK, AS_OF)

    assert estimate.source is TravelSource.GREAT_CIRCLE
    assert estimate.confidence is Confidence.MEDIUM
    assert len(client.calls) == 1


def test_cache_write_failure_does_not_fail_lookup():
    class BrokenCache(InMemoryTravelTimeCache):
        def upsert(self, *args, **kwargs):
            raise RuntimeError("database unavailable")

    provider = build_provider(_settings(), cache_store=BrokenCache(), routing_client=DummyRoutingClient())

    estimate = provider.estimate(HOME, PARK, AS_OF)
    provider.close()

    assert estimate.source is TravelSource.ROUTING_API


def test_great_circle_confidence_depends_on_distance():
    source = GreatCircleSource(speed_kmh=40.0, medium_max_km=20.0, minimum_minutes=5)

    near = source.lookup(HOME, PARK, as_of=AS_OF)
    far = source.lookup(HOME, FAR, as_of=AS_OF)

    assert near.confidence is Confidence.MEDIUM
    assert near.duration == timedelta(minutes=5)
    assert far.confidence is Confidence.LOW
    assert far.duration > timedelta(hours=2)


def test_default_is_low_confidence_when_all_sources_fail():
    provider = TravelTimeProvider([FailingSource(), FailingSource()], DefaultSource(20))

    estimate = provider.estimate(HOME, PARK, AS_OF)

    assert estimate.duration == timedelta(minutes=20)
    assert estimate.confidence is Confidence.LOW
    assert estimate.source is TravelSource.DEFAULT


def test_naive_as_of_is_rejected():
    provider = build_provider(_settings())
    with pytest.raises(InvalidRequestError):
        provider.estimate(HOME, PARK, datetime(2025, 3, 3, 12, 0))


def test_build_provider_chain_order():
    feed = StaticLiveLocationFeed()
    provider = build_provider(
        _settings(),
        walker_id="walker-1",
        cache_store=InMemoryTravelTimeCache(),
        live_feed=feed,
        routing_client=DummyRoutingClient(),
    )

    assert [type(source) for source in provider.sources] == [
        CacheSource,
        LiveLocationSource,
        RoutingApiSource,
        GreatCircleSource,
    ]
    assert provider.default.default == timedelta(minutes=20)


def test_traffic_profile_uses_configured_timezone():
    profile = TrafficProfile(peak_hours=((7, 9),), peak_multiplier=1.5, timezone="America/Denver")
    # 14:30 UTC is 07:30 in Denver during standard time
    moment = datetime(2025, 1, 6, 14, 30, tzinfo=timezone.utc)

    assert profile.is_peak(moment)
    assert profile.adjust_seconds(100, moment) == 150
    assert profile.adjust_seconds(100, None) == 100
