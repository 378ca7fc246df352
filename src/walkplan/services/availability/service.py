"""Availability orchestration service."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from ...models.domain import AvailableSlot, DateRange, Location
from ...persistence.base import SchedulingRepository
from ...schemas.availability import AvailabilityRequest, AvailabilityResponse, AvailableSlotModel
from ..travel.provider import TravelTimeProvider, build_provider
from .config import EngineConfig
from .engine import AvailabilityEngine

logger = logging.getLogger(__name__)


def _build_config(payload: AvailabilityRequest, base: EngineConfig | None = None) -> EngineConfig:
    base = base or EngineConfig.from_settings()
    if payload.overrides is None:
        return base
    return base.with_overrides(**payload.overrides.model_dump())


def _slot_to_model(slot: AvailableSlot) -> AvailableSlotModel:
    travel = slot.travel_from_previous
    return AvailableSlotModel(
        start=slot.start,
        end=slot.end,
        travel_from_previous_minutes=round(travel.total_seconds() / 60.0, 2) if travel is not None else None,
        confidence=slot.confidence.value,
    )


def get_available_slots(
    payload: AvailabilityRequest,
    *,
    repository: SchedulingRepository | None = None,
    provider: TravelTimeProvider | None = None,
    base_config: EngineConfig | None = None,
) -> AvailabilityResponse:
    """Load the walker's schedule and return bookable slots.

    Without explicit collaborators the Supabase-backed repository, cache and
    live-location feed are used.
    """
    if repository is None:
        from ...persistence.database import SupabaseSchedulingRepository

        repository = SupabaseSchedulingRepository()
    owns_provider = provider is None
    if provider is None:
        from ...persistence.database import SupabaseLiveLocationFeed, SupabaseTravelTimeCache

        provider = build_provider(
            walker_id=payload.walker_id,
            cache_store=SupabaseTravelTimeCache(),
            live_feed=SupabaseLiveLocationFeed(),
        )

    config = _build_config(payload, base_config)
    now = payload.now or datetime.now(timezone.utc)
    target = (
        Location(payload.target.location_id, payload.target.latitude, payload.target.longitude)
        if payload.target
        else None
    )

    engine = AvailabilityEngine(repository, provider)
    try:
        slots = engine.find_slots(
            payload.walker_id,
            DateRange(payload.start_date, payload.end_date),
            timedelta(minutes=payload.service_duration_minutes),
            config,
            now=now,
            target=target,
        )
    finally:
        if owns_provider:
            provider.close()

    logger.info(
        f"Walker {payload.walker_id}: {len(slots)} slots of {payload.service_duration_minutes} min "
        f"between {payload.start_date} and {payload.end_date}"
    )
    return AvailabilityResponse(
        walker_id=payload.walker_id,
        service_duration_minutes=payload.service_duration_minutes,
        slots=[_slot_to_model(slot) for slot in slots],
        metadata={
            "generated_at": now.isoformat(),
            "slot_interval_minutes": config.slot_interval_minutes,
            "min_buffer_minutes": config.min_buffer_minutes,
            "target_known": target is not None,
        },
    )
