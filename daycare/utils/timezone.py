"""Timezone utilities for reliable UTC handling."""

from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo

from daycare.core.settings import settings

LOCAL_TZ = ZoneInfo(settings.timezone)


def now_utc() -> datetime:
    """Get current time in UTC."""
    return datetime.now(timezone.utc)


def now_local() -> datetime:
    """Get current time in the daycare's local timezone."""
    return datetime.now(LOCAL_TZ)


def today_local() -> date:
    """Today's date as seen by the daycare."""
    return now_local().date()


def current_local_time() -> time:
    """Wall-clock time of day, truncated to seconds."""
    return now_local().time().replace(microsecond=0, tzinfo=None)


def hours_between(start: time, end: time) -> float:
    """Hours between two times of day on the same date."""
    start_minutes = start.hour * 60 + start.minute
    end_minutes = end.hour * 60 + end.minute
    return round((end_minutes - start_minutes) / 60, 2)
