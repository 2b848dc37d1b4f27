# housecall/core/business.py
from __future__ import annotations

from datetime import date, datetime, timedelta

from housecall.core.config import settings

LOCAL_TZ = settings.tz

NO_PREFERENCE = "I have no preference"

# Visits are planned in 5-minute increments
SLOT_ROUNDING_MINUTES = 5


def today_local(now: datetime | None = None) -> date:
    now = now or datetime.now(tz=LOCAL_TZ)
    if now.tzinfo is None:
        now = now.replace(tzinfo=LOCAL_TZ)
    return now.astimezone(LOCAL_TZ).date()


def estimate_service_minutes(selected_count: int) -> int:
    """First animal gets the base visit length; every extra animal adds a fixed increment."""
    extra = max(0, selected_count - 1)
    return settings.BASE_SERVICE_MINUTES + extra * settings.ADDITIONAL_ANIMAL_MINUTES


def round_to_nearest_slot(dt: datetime) -> datetime:
    rounded = int(dt.minute / SLOT_ROUNDING_MINUTES + 0.5) * SLOT_ROUNDING_MINUTES
    return dt.replace(minute=0, second=0, microsecond=0) + timedelta(minutes=rounded)
