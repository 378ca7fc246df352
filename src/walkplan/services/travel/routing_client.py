"""HTTP clients for external routing APIs (OSRM and Google Distance Matrix)."""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import httpx

from ...config import Settings, settings
from ...models.domain import Location

GOOGLE_DISTANCE_MATRIX_URL = "https://maps.googleapis.com/maps/api/distancematrix/json"

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RouteLeg:
    duration_seconds: float
    distance_meters: float


class RoutingClient(ABC):
    """Driving time between two points from an external routing service.

    Timeouts are raised immediately rather than retried so callers can fall back
    to a cheaper source; other transport errors are retried with linear backoff.
    """

    def __init__(
        self,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.timeout = timeout if timeout is not None else settings.routing_timeout_seconds
        self.max_retries = max_retries if max_retries is not None else settings.routing_max_retries
        self.backoff_seconds = backoff_seconds if backoff_seconds is not None else settings.routing_backoff_seconds
        self._transport = transport

    @abstractmethod
    def travel_time(
        self, origin: Location, destination: Location, *, depart_at: datetime | None = None
    ) -> RouteLeg:
        raise NotImplementedError

    def _get_client(self) -> httpx.Client:
        """Create a client per request; lookups run on several threads at once."""
        return httpx.Client(
            timeout=httpx.Timeout(self.timeout, connect=min(self.timeout, 2.0)),
            transport=self._transport,
        )

    def _get_json(self, url: str, params: dict[str, Any]) -> dict:
        client = self._get_client()
        try:
            attempt = 0
            while True:
                try:
                    response = client.get(url, params=params)
                    response.raise_for_status()
                    return response.json()
                except httpx.TimeoutException:
                    logger.debug(f"Routing request to {url} timed out after {self.timeout}s")
                    raise
                except httpx.HTTPStatusError as e:
                    # 4xx responses are not retried
                    if e.response.status_code < 500:
                        raise
                    attempt += 1
                    if attempt > self.max_retries:
                        raise
                    time.sleep(self.backoff_seconds * attempt)
                except (httpx.ConnectError, httpx.NetworkError) as e:
                    attempt += 1
                    if attempt > self.max_retries:
                        raise ConnectionError(f"Failed to connect to routing service at {url}: {e}") from e
                    logger.debug(
                        f"Routing network error, retrying in {self.backoff_seconds * attempt:.1f}s "
                        f"(attempt {attempt}/{self.max_retries}): {e}"
                    )
                    time.sleep(self.backoff_seconds * attempt)
        finally:
            client.close()


class OSRMClient(RoutingClient):
    def __init__(
        self,
        base_url: str | None = None,
        profile: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.base_url = base_url or settings.osrm_base_url
        if not self.base_url:
            raise ValueError("OSRM base URL is not configured.")
        self.base_url = self.base_url.rstrip("/")
        self.profile = profile or settings.osrm_profile

    def travel_time(
        self, origin: Location, destination: Location, *, depart_at: datetime | None = None
    ) -> RouteLeg:
        # OSRM has no traffic model, so depart_at is ignored
        coordinate_str = f"{origin.longitude},{origin.latitude};{destination.longitude},{destination.latitude}"
        url = f"{self.base_url}/route/v1/{self.profile}/{coordinate_str}"
        params = {"overview": "false", "steps": "false"}

        data = self._get_json(url, params)
        if data.get("code") != "Ok":
            error_msg = data.get("message", "Unknown OSRM route error")
            raise ValueError(f"OSRM route request failed: {error_msg}")
        routes = data.get("routes") or []
        if not routes:
            raise ValueError("OSRM route response contained no routes.")
        best = routes[0]
        return RouteLeg(duration_seconds=float(best["duration"]), distance_meters=float(best["distance"]))


class GoogleDistanceMatrixClient(RoutingClient):
    def __init__(self, api_key: str | None = None, url: str = GOOGLE_DISTANCE_MATRIX_URL, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.api_key = api_key or settings.google_maps_api_key
        if not self.api_key:
            raise ValueError("Google Maps API key is not configured.")
        self.url = url

    def travel_time(
        self, origin: Location, destination: Location, *, depart_at: datetime | None = None
    ) -> RouteLeg:
        params = {
            "origins": f"{origin.latitude},{origin.longitude}",
            "destinations": f"{destination.latitude},{destination.longitude}",
            "mode": "driving",
            "departure_time": str(int(depart_at.timestamp())) if depart_at else "now",
            "key": self.api_key,
        }
        data = self._get_json(self.url, params)
        if data.get("status") != "OK":
            raise ValueError(f"Distance Matrix API error: {data.get('status')}")

        rows = data.get("rows") or []
        elements = rows[0].get("elements") if rows else None
        if not elements:
            raise ValueError("Distance Matrix API returned no results.")
        element = elements[0]
        if element.get("status") != "OK":
            raise ValueError(f"Distance Matrix element error: {element.get('status')}")

        # Traffic-aware duration is only present when departure_time is given
        duration = element.get("duration_in_traffic") or element.get("duration")
        distance = element.get("distance")
        if not duration or not distance:
            raise ValueError("Distance Matrix element missing duration or distance.")
        return RouteLeg(duration_seconds=float(duration["value"]), distance_meters=float(distance["value"]))


def build_routing_client(config: Settings | None = None) -> RoutingClient | None:
    """Return the routing client selected in settings, or None if routing is disabled."""
    config = config or settings
    client_kwargs = {
        "timeout": config.routing_timeout_seconds,
        "max_retries": config.routing_max_retries,
        "backoff_seconds": config.routing_backoff_seconds,
    }
    try:
        if config.routing_backend == "osrm":
            return OSRMClient(base_url=config.osrm_base_url, profile=config.osrm_profile, **client_kwargs)
        if config.routing_backend == "google":
            return GoogleDistanceMatrixClient(api_key=config.google_maps_api_key, **client_kwargs)
    except ValueError as e:
        logger.warning(f"Routing backend '{config.routing_backend}' unavailable: {e}")
    return None
