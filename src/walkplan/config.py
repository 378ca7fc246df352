"""Application configuration and settings management."""

from typing import Any, Literal, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="WALKPLAN_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Walker Scheduling Core"

    # External routing API
    routing_backend: Literal["none", "osrm", "google"] = Field(
        default="none",
        description="Routing API consulted after the cache and live-location sources.",
    )
    osrm_base_url: Optional[str] = Field(
        default=None,
        description="Base URL for the OSRM routing service (e.g., http://localhost:5000).",
    )
    osrm_profile: Literal["driving", "driving-hgv"] = Field(
        default="driving",
        description="OSRM profile to use when computing travel times.",
    )
    google_maps_api_key: Optional[str] = Field(
        default=None,
        description="API key for the Google Distance Matrix API.",
    )
    routing_timeout_seconds: float = Field(default=3.0, gt=0.0)
    routing_max_retries: int = Field(default=1, ge=0)
    routing_backoff_seconds: float = Field(default=0.5, ge=0.0)

    # Travel-time fallback chain
    cache_max_age_minutes: int = Field(default=60, ge=1)
    cache_write_timeout_seconds: float = Field(default=2.0, gt=0.0)
    live_location_max_age_minutes: int = Field(default=30, ge=1)
    great_circle_speed_kmh: float = Field(default=40.0, gt=0.0)
    great_circle_medium_max_km: float = Field(default=20.0, ge=0.0)
    min_estimated_travel_minutes: int = Field(default=5, ge=0)
    matrix_max_parallel_lookups: int = Field(default=8, ge=1)

    # Traffic profile
    peak_hours: tuple[tuple[int, int], ...] = Field(
        default=((7, 9), (16, 18)),
        description="Rush-hour ranges as (start_hour, end_hour), end exclusive.",
    )
    peak_multiplier: float = Field(default=1.3, ge=1.0)
    traffic_timezone: str = "UTC"

    # Availability engine defaults
    min_buffer_minutes: int = Field(default=15, ge=0)
    default_travel_minutes: int = Field(default=20, ge=0)
    slot_interval_minutes: int = Field(default=30, ge=1)
    max_advance_days: int = Field(default=30, ge=0)
    min_notice_hours: int = Field(default=2, ge=0)
    max_travel_minutes: int = Field(
        default=120,
        ge=0,
        description="Longest travel looked for from bookings just outside a working window.",
    )

    # Supabase configuration
    supabase_url: Optional[str] = Field(
        default=None,
        description="Supabase project URL (e.g., https://xxx.supabase.co).",
    )
    supabase_key: Optional[str] = Field(
        default=None,
        description="Supabase service role key for backend operations.",
    )

    @field_validator("peak_hours", mode="before")
    @classmethod
    def _parse_hour_ranges_from_env(cls, value: Any) -> tuple[tuple[int, int], ...]:
        """Parse hour ranges from environment variable ("7-9,16-18" or JSON array of pairs)."""
        if isinstance(value, (tuple, list)):
            return tuple((int(start), int(end)) for start, end in value)
        if isinstance(value, str):
            # Try JSON first
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple((int(start), int(end)) for start, end in parsed)
            except (json.JSONDecodeError, TypeError, ValueError):
                pass
            ranges: list[tuple[int, int]] = []
            for item in value.split(","):
                item = item.strip()
                if not item:
                    continue
                start, _, end = item.partition("-")
                ranges.append((int(start), int(end)))
            return tuple(ranges)
        # Return empty tuple if value is None or empty
        return tuple()


settings = Settings()
