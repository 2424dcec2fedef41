"""
Bookable-slot generation.

Pure and deterministic: the same template, booked sessions and window always
produce the same list in the same order. Nothing here touches the database
or the clock.
"""

from bisect import bisect_left
from datetime import date, datetime, timedelta
from typing import Iterable, List, Sequence, Tuple

import pytz

from ..core.exceptions import ValidationException
from ..core.timezone_utils import localize, minutes_since_midnight, time_from_minutes, to_zone
from ..schemas.availability import BookedSession, BookingSlot, WeeklyAvailability

Interval = Tuple[datetime, datetime]


def merge_intervals(intervals: Iterable[Interval]) -> List[Interval]:
    """Union of half-open intervals as a sorted list of disjoint intervals."""
    merged: List[Interval] = []
    for start, end in sorted(intervals):
        if merged and start <= merged[-1][1]:
            if end > merged[-1][1]:
                merged[-1] = (merged[-1][0], end)
        else:
            merged.append((start, end))
    return merged


def _intersects(blocked: List[Interval], starts: List[datetime], start: datetime, end: datetime) -> bool:
    # Last blocked interval beginning before ``end``; earlier ones end even sooner.
    idx = bisect_left(starts, end) - 1
    return idx >= 0 and blocked[idx][1] > start


def generate_slots(
    template: WeeklyAvailability,
    booked: Sequence[BookedSession],
    window_start: date,
    window_days: int,
    tutor_id: str,
    granularity_minutes: int,
    tz: pytz.BaseTzInfo,
) -> List[BookingSlot]:
    """
    Expand ``template`` into concrete units over ``window_days`` days.

    Each weekday range yields consecutive ``granularity_minutes`` units; a
    trailing remainder shorter than one unit is dropped, as is a unit that
    spans a DST transition in ``tz``. A unit is
    unavailable when it intersects a scheduled or completed session of
    ``tutor_id``. Results are ordered by start instant.

    Raises:
        ValidationException: window_days or granularity_minutes below 1
    """
    if window_days < 1:
        raise ValidationException(
            "window_days must be at least 1", details={"window_days": window_days}
        )
    if granularity_minutes < 1:
        raise ValidationException(
            "granularity_minutes must be at least 1",
            details={"granularity_minutes": granularity_minutes},
        )

    blocked = merge_intervals(
        (session.start_time, session.end_time)
        for session in booked
        if session.tutor_id == tutor_id and session.is_blocking
    )
    blocked_starts = [start for start, _ in blocked]
    unit_length = timedelta(minutes=granularity_minutes)

    slots: List[BookingSlot] = []
    for offset in range(window_days):
        day = window_start + timedelta(days=offset)
        for window in template.for_day(day):
            cursor = minutes_since_midnight(window.start)
            limit = minutes_since_midnight(window.end)
            while cursor + granularity_minutes <= limit:
                unit_start = time_from_minutes(cursor)
                unit_end = time_from_minutes(cursor + granularity_minutes)
                starts_at = localize(day, unit_start, tz)
                ends_at = localize(day, unit_end, tz)
                cursor += granularity_minutes
                # Units crossing a DST transition are not one unit long in real time
                if ends_at - starts_at != unit_length:
                    continue
                slots.append(
                    BookingSlot(
                        tutor_id=tutor_id,
                        day=day,
                        start=unit_start,
                        end=unit_end,
                        available=not _intersects(blocked, blocked_starts, starts_at, ends_at),
                        starts_at=starts_at,
                        ends_at=ends_at,
                    )
                )

    slots.sort(key=lambda slot: slot.starts_at)
    return slots


def fits_template(
    template: WeeklyAvailability, starts_at: datetime, ends_at: datetime, tz: pytz.BaseTzInfo
) -> bool:
    """True when ``[starts_at, ends_at)`` lies inside one template range of its local day."""
    local_start = to_zone(starts_at, tz)
    local_end = to_zone(ends_at, tz)
    if local_end <= local_start or local_start.date() != local_end.date():
        return False
    start_minute = minutes_since_midnight(local_start.time())
    end_minute = minutes_since_midnight(local_end.time())
    if local_start.second or local_start.microsecond or local_end.second or local_end.microsecond:
        return False
    # Wall-clock span and elapsed time disagree across a DST transition
    if local_end - local_start != timedelta(minutes=end_minute - start_minute):
        return False
    return any(
        minutes_since_midnight(window.start) <= start_minute
        and end_minute <= minutes_since_midnight(window.end)
        for window in template.for_day(local_start.date())
    )


def valid_durations(
    template: WeeklyAvailability, day: date, start_minute: int, options: Iterable[int]
) -> List[int]:
    """Durations from ``options`` that, starting at ``start_minute`` on ``day``, fit one range."""
    ranges = [
        (minutes_since_midnight(w.start), minutes_since_midnight(w.end))
        for w in template.for_day(day)
    ]
    return sorted(
        {
            minutes
            for minutes in options
            if minutes > 0
            and any(lo <= start_minute and start_minute + minutes <= hi for lo, hi in ranges)
        }
    )
