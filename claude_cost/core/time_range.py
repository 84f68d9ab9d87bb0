"""
Named query windows.

Maps the ranges offered by the display layer (today, this week, this month,
all time) to inclusive (since, until) bounds in local time.
"""

import calendar
from datetime import date, datetime, time, timedelta, tzinfo
from enum import Enum
from typing import Optional, Tuple

Bounds = Tuple[Optional[datetime], Optional[datetime]]


class TimeRange(Enum):
    """Query windows offered to the user."""
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"
    ALL = "all"


def _localize(day: date, wall_time: time, tz: Optional[tzinfo]) -> datetime:
    # Offset is the one in force on that day, not the reference time's
    wall = datetime.combine(day, wall_time)
    if tz is None:
        return wall.astimezone()
    return wall.replace(tzinfo=tz)


def resolve_time_range(
    time_range: TimeRange,
    now: Optional[datetime] = None,
    tz: Optional[tzinfo] = None,
) -> Bounds:
    """Resolve a named window to (since, until) bounds.

    Weeks start on Sunday. The month window is closed at the last
    microsecond of the month; the other windows are open-ended. Each bound
    is a wall-clock time on its own day, so a daylight-saving change inside
    the window does not shift it.

    Args:
        time_range: Window to resolve
        now: Reference time, defaults to the current time
        tz: Zone for the bounds; defaults to the zone of ``now``, or the
            host local zone when ``now`` is naive or omitted

    Returns:
        Tuple of (since, until); None means unbounded
    """
    if now is None:
        now = datetime.now(tz)
    if tz is None:
        tz = now.tzinfo
    elif now.tzinfo is not None:
        now = now.astimezone(tz)
    today = now.date()

    if time_range == TimeRange.TODAY:
        return _localize(today, time.min, tz), None

    if time_range == TimeRange.WEEK:
        # weekday(): Monday == 0 ... Sunday == 6
        days_since_sunday = (today.weekday() + 1) % 7
        return _localize(today - timedelta(days=days_since_sunday), time.min, tz), None

    if time_range == TimeRange.MONTH:
        last_day = calendar.monthrange(today.year, today.month)[1]
        since = _localize(today.replace(day=1), time.min, tz)
        until = _localize(today.replace(day=last_day), time.max, tz)
        return since, until

    return None, None
