"""Travel-time provider walking an ordered fallback chain of sources."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from datetime import datetime, timedelta
from typing import Optional, Sequence

from ...config import Settings, settings
from ...models.domain import Confidence, InvalidRequestError, Location, TravelSource, TravelTimeEstimate
from ...persistence.base import LiveLocationFeed, TravelTimeCacheStore
from .routing_client import RoutingClient, build_routing_client
from .sources import (
    CacheSource,
    DefaultSource,
    GreatCircleSource,
    LiveLocationSource,
    RoutingApiSource,
    TravelTimeSource,
)
from .traffic import TrafficProfile

logger = logging.getLogger(__name__)


class TravelTimeProvider:
    """Answer "how long from A to B" with the best source that has an answer.

    Sources are consulted in order; a source returning None or raising passes the
    request on to the next one. The final default source always answers, so
    ``estimate`` never fails for a well-formed request. Results from sources marked
    ``writes_through`` are stored in the cache on a background thread.
    """

    def __init__(
        self,
        sources: Sequence[TravelTimeSource],
        default: DefaultSource,
        cache: CacheSource | None = None,
        write_timeout_seconds: float = 2.0,
    ) -> None:
        self.sources = list(sources)
        self.default = default
        self.cache = cache
        self.write_timeout_seconds = write_timeout_seconds
        self._writer: ThreadPoolExecutor | None = None
        self._pending: set[Future] = set()
        self._lock = threading.Lock()

    def estimate(
        self,
        origin: Location,
        destination: Location,
        as_of: datetime,
        *,
        depart_at: datetime | None = None,
    ) -> TravelTimeEstimate:
        if as_of.tzinfo is None:
            raise InvalidRequestError("as_of must be timezone-aware.")

        if origin.same_place(destination):
            return TravelTimeEstimate(
                duration=timedelta(0),
                distance_meters=0,
                confidence=Confidence.HIGH,
                computed_at=as_of,
                source=TravelSource.SAME_LOCATION,
            )

        for source in self.sources:
            try:
                result = source.lookup(origin, destination, as_of=as_of, depart_at=depart_at)
            except Exception as e:
                logger.warning(
                    f"Travel-time source '{source.name.value}' failed for "
                    f"{origin.location_id}->{destination.location_id}: {e}"
                )
                continue
            if result is None:
                logger.debug(f"Travel-time source '{source.name.value}' had no answer")
                continue
            if source.writes_through:
                self._write_through(origin, destination, result)
            return result

        logger.info(
            f"No travel-time source answered for {origin.location_id}->{destination.location_id}; "
            f"using default of {self.default.default}"
        )
        return self.default.lookup(origin, destination, as_of=as_of, depart_at=depart_at)

    def _write_through(self, origin: Location, destination: Location, result: TravelTimeEstimate) -> None:
        if self.cache is None:
            return
        with self._lock:
            if self._writer is None:
                self._writer = ThreadPoolExecutor(max_workers=1, thread_name_prefix="travel-cache-writer")
            future = self._writer.submit(self._store, origin, destination, result)
            self._pending.add(future)
        future.add_done_callback(self._discard)

    def _store(self, origin: Location, destination: Location, result: TravelTimeEstimate) -> None:
        try:
            self.cache.store_estimate(origin, destination, result)
        except Exception as e:
            logger.warning(f"Failed to cache travel time {origin.location_id}->{destination.location_id}: {e}")

    def _discard(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    def flush(self, timeout: float | None = None) -> bool:
        """Wait for pending cache writes. Returns False if some are still running."""
        with self._lock:
            pending = list(self._pending)
        if not pending:
            return True
        done, not_done = wait(pending, timeout=self.write_timeout_seconds if timeout is None else timeout)
        if not_done:
            logger.warning(f"{len(not_done)} travel-time cache writes still pending after flush")
        return not not_done

    def close(self) -> None:
        self.flush()
        with self._lock:
            writer, self._writer = self._writer, None
        if writer is not None:
            writer.shutdown(wait=False, cancel_futures=True)

    def __enter__(self) -> "TravelTimeProvider":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def build_provider(
    config: Settings | None = None,
    *,
    walker_id: Optional[str] = None,
    cache_store: TravelTimeCacheStore | None = None,
    live_feed: LiveLocationFeed | None = None,
    routing_client: RoutingClient | None = None,
    default_travel_minutes: int | None = None,
) -> TravelTimeProvider:
    """Assemble the standard chain: cache, live location, routing API, great-circle, default.

    Links whose collaborator is missing are left out. ``routing_client`` overrides
    the client chosen by ``routing_backend`` in settings.
    """
    config = config or settings
    traffic = TrafficProfile.from_settings(config)
    client = routing_client if routing_client is not None else build_routing_client(config)
    great_circle = GreatCircleSource(
        speed_kmh=config.great_circle_speed_kmh,
        medium_max_km=config.great_circle_medium_max_km,
        minimum_minutes=config.min_estimated_travel_minutes,
        traffic=traffic,
    )

    sources: list[TravelTimeSource] = []
    cache = None
    if cache_store is not None:
        cache = CacheSource(cache_store, config.cache_max_age_minutes, traffic)
        sources.append(cache)
    if live_feed is not None and walker_id is not None:
        sources.append(
            LiveLocationSource(
                live_feed,
                walker_id,
                config.live_location_max_age_minutes,
                fallback=great_circle,
                client=client,
            )
        )
    if client is not None:
        sources.append(RoutingApiSource(client))
    sources.append(great_circle)

    default_minutes = default_travel_minutes if default_travel_minutes is not None else config.default_travel_minutes
    logger.debug(f"Travel-time chain: {[source.name.value for source in sources]}")
    return TravelTimeProvider(
        sources,
        DefaultSource(default_minutes),
        cache=cache,
        write_timeout_seconds=config.cache_write_timeout_seconds,
    )
