"""Recurrence arithmetic in a task's named timezone.

Instants are stored in UTC, but "every day at 09:00" means 09:00 on the
wall clock of the task's timezone. Occurrences are therefore computed on
naive wall-clock values and converted back to UTC at the end.

Local-time resolution:
- ambiguous wall times (DST fall-back) resolve to the earlier instant;
- non-existent wall times (DST spring-forward gap) use the offset in force
  before the transition, which moves them forward by the gap length.
Both are what PEP 495 gives for ``fold=0``.
"""

import calendar
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from do_in_time.errors import TimeParseError
from do_in_time.models.task import RepeatInterval

# Upper bounds on the absolute length of one step. Dividing a span by these
# never overestimates the number of whole steps it contains.
_MAX_STEP = {
    RepeatInterval.DAILY: timedelta(hours=25),
    RepeatInterval.WEEKLY: timedelta(days=7, hours=1),
    RepeatInterval.MONTHLY: timedelta(days=31, hours=1),
}


def resolve_timezone(name: str) -> ZoneInfo:
    """Look up an IANA timezone, raising TimeParseError when unknown."""
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, TypeError) as e:
        raise TimeParseError(f"Invalid timezone: {name}") from e


def to_instant(wall: datetime, tz: ZoneInfo) -> datetime:
    """Convert a naive wall-clock value in tz to an aware UTC instant."""
    return wall.replace(tzinfo=tz, fold=0).astimezone(timezone.utc)


def is_nonexistent(wall: datetime, tz: ZoneInfo) -> bool:
    """True if the wall time falls in a DST gap of tz."""
    roundtrip = to_instant(wall, tz).astimezone(tz).replace(tzinfo=None)
    return roundtrip != wall


def _add_months(wall: datetime, months: int) -> datetime:
    """Same wall time `months` later, clamped to the target month's last day."""
    month_index = wall.month - 1 + months
    year = wall.year + month_index // 12
    month = month_index % 12 + 1
    day = min(wall.day, calendar.monthrange(year, month)[1])
    return wall.replace(year=year, month=month, day=day)


def occurrence(
    start: datetime, tz_name: str, interval: RepeatInterval, n: int
) -> datetime:
    """The n-th occurrence of the series anchored at start (n=0 is start).

    Computed directly from the anchor, so monthly series keep their day of
    month (Jan 31 -> Feb 28 -> Mar 31) instead of drifting.
    """
    tz = resolve_timezone(tz_name)
    if n == 0:
        return start.astimezone(timezone.utc)

    wall = start.astimezone(tz).replace(tzinfo=None)

    try:
        if interval == RepeatInterval.DAILY:
            next_wall = wall + timedelta(days=n)
        elif interval == RepeatInterval.WEEKLY:
            next_wall = wall + timedelta(weeks=n)
        else:
            next_wall = _add_months(wall, n)
    except (OverflowError, ValueError) as e:
        raise TimeParseError(f"Failed to calculate occurrence {n} after {start}") from e

    return to_instant(next_wall, tz)


def next_occurrence(base: datetime, tz_name: str, interval: RepeatInterval) -> datetime:
    """The occurrence one interval after base. Always strictly later than base."""
    return occurrence(base, tz_name, interval, 1)


def first_index_after(
    start: datetime, tz_name: str, interval: RepeatInterval, after: datetime
) -> int:
    """Index of the earliest occurrence strictly later than `after`."""
    if start > after:
        return 0

    n = max(1, (after - start) // _MAX_STEP[interval])
    while occurrence(start, tz_name, interval, n) <= after:
        n += 1
    return n


def first_occurrence_after(
    start: datetime, tz_name: str, interval: RepeatInterval, after: datetime
) -> datetime:
    """Earliest occurrence of the series anchored at start later than `after`."""
    n = first_index_after(start, tz_name, interval, after)
    return occurrence(start, tz_name, interval, n)
