"""
Timezone utilities for the tutorbook scheduling core.

The system runs on one fixed zone (``settings.system_timezone``). Template
times are wall-clock times in that zone; every instant handed between layers
is timezone-aware.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple

import pytz

from .config import settings


def get_system_timezone(name: Optional[str] = None) -> pytz.BaseTzInfo:
    """Return the configured system zone (or an explicit override)."""
    return pytz.timezone(name or settings.system_timezone)


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def localize(day: date, wall_time: time, tz: pytz.BaseTzInfo) -> datetime:
    """
    Attach ``tz`` to a wall-clock time on ``day``.

    Non-existent/ambiguous DST times resolve to standard time rather than raising.
    """
    return tz.localize(datetime.combine(day, wall_time), is_dst=False)


def ensure_aware(value: datetime, tz: pytz.BaseTzInfo) -> datetime:
    """Interpret naive datetimes as wall-clock times in ``tz``."""
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        return tz.localize(value, is_dst=False)
    return value


def to_zone(value: datetime, tz: pytz.BaseTzInfo) -> datetime:
    return tz.normalize(ensure_aware(value, tz).astimezone(tz))


def to_utc(value: datetime, tz: Optional[pytz.BaseTzInfo] = None) -> datetime:
    return ensure_aware(value, tz or get_system_timezone()).astimezone(timezone.utc)


def week_start_for(day: date) -> date:
    """Sunday that opens the calendar week containing ``day``."""
    return day - timedelta(days=(day.weekday() + 1) % 7)


def week_bounds(day: date, tz: pytz.BaseTzInfo) -> Tuple[datetime, datetime]:
    """
    Return ``[Sunday 00:00, next Sunday 00:00)`` around ``day`` in ``tz``.

    The exclusive upper bound covers Saturday up to 23:59:59.999999.
    """
    sunday = week_start_for(day)
    return localize(sunday, time.min, tz), localize(sunday + timedelta(days=7), time.min, tz)


def minutes_since_midnight(value: time) -> int:
    return value.hour * 60 + value.minute


def time_from_minutes(total_minutes: int) -> time:
    if not 0 <= total_minutes < 24 * 60:
        raise ValueError(f"minute offset out of range: {total_minutes}")
    return time(total_minutes // 60, total_minutes % 60)
