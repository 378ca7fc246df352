"""Supabase client for the scheduling backend."""

import logging
from functools import lru_cache
from supabase import create_client, Client
from ..config import settings

logger = logging.getLogger(__name__)


@lru_cache()
def get_supabase_client() -> Client | None:
    """Get cached Supabase client instance.

    Returns:
        Supabase Client instance if configured, None otherwise.
        Note: This does not test the connection - actual queries may fail with network errors.
    """
    if not settings.supabase_url or not settings.supabase_key:
        logger.warning("Supabase credentials not configured (missing URL or key)")
        return None

    try:
        return create_client(settings.supabase_url, settings.supabase_key)
    except Exception as e:
        logger.error(f"Failed to create Supabase client: {e}")
        return None


# Tables read by walkplan.persistence.database:
#
#   working_hours      walker_id, day_of_week (0 = Sunday), start_time, end_time, is_active,
#                      joined with users(timezone)
#   bookings           id, walker_id, location_id, status, scheduled_start, scheduled_end,
#                      joined with locations(id, latitude, longitude)
#   blocks             id, walker_id, start_time, end_time
#   travel_time_cache  origin_location_id, destination_location_id, travel_seconds,
#                      distance_meters, calculated_at  (unique on the location pair)
#   walker_locations   walker_id, latitude, longitude, accuracy_meters, updated_at
