"""
Datetime utilities for consistent timezone handling across the application.

Every instant handled by the booking engine is a timezone-aware UTC datetime.
All "local" reasoning (calendar date, weekday, hour of day) projects an
instant into the chapel's IANA timezone first; nothing ever assumes the
server's own zone.
"""

import logging
from datetime import datetime, timezone, timedelta, date
from typing import Iterator, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from core.config import DEFAULT_TIMEZONE
from core.constants import WEEKDAY_NAMES

logger = logging.getLogger(__name__)

ONE_HOUR = timedelta(hours=1)


def utc_now() -> datetime:
    """
    Get the current instant as a timezone-aware UTC datetime.

    Returns:
        Current datetime with UTC timezone
    """
    return datetime.now(timezone.utc)


def resolve_timezone(tz_name: Optional[str]) -> ZoneInfo:
    """
    Resolve a chapel timezone name, falling back to the default zone.

    Args:
        tz_name: IANA zone name (e.g. "Europe/Vienna"), or None/empty

    Returns:
        ZoneInfo for the name, or for DEFAULT_TIMEZONE when no name is given

    Raises:
        ValueError: If the name is not a known IANA zone
    """
    name = (tz_name or "").strip() or DEFAULT_TIMEZONE
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Unknown timezone: {name}") from e


def is_valid_timezone(tz_name: str) -> bool:
    """Return True if tz_name names a known IANA zone."""
    try:
        resolve_timezone(tz_name)
    except ValueError:
        return False
    return bool(tz_name and tz_name.strip())


def ensure_utc(dt: datetime) -> datetime:
    """
    Ensure a datetime is a timezone-aware UTC instant.

    Naive datetimes are taken to already be UTC.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_instant(value: str | datetime) -> datetime:
    """
    Parse an ISO format datetime string (or datetime) into a UTC instant.

    Handles:
    - ISO format with offset (e.g., "2024-06-02T10:00:00+03:00")
    - ISO format with Z (e.g., "2024-06-02T07:00:00.000Z")
    - ISO format without offset (taken as UTC)

    Raises:
        ValueError: If the string cannot be parsed
    """
    if isinstance(value, datetime):
        return ensure_utc(value)
    try:
        parsed = datetime.fromisoformat(value.strip().replace('Z', '+00:00'))
    except (ValueError, AttributeError) as e:
        raise ValueError(f"Invalid datetime string format: {value}") from e
    return ensure_utc(parsed)


def format_instant(dt: datetime) -> str:
    """Format an instant as the ISO-8601 UTC string stored in documents."""
    return ensure_utc(dt).isoformat().replace('+00:00', 'Z')


def to_local(instant: datetime, tz: ZoneInfo) -> datetime:
    """Project an instant into the given zone."""
    return ensure_utc(instant).astimezone(tz)


def local_date(instant: datetime, tz: ZoneInfo) -> date:
    """Calendar date of the instant in the given zone."""
    return to_local(instant, tz).date()


def local_hour(instant: datetime, tz: ZoneInfo) -> int:
    """Wall-clock hour (0-23) of the instant in the given zone."""
    return to_local(instant, tz).hour


def weekday_name(day: date) -> str:
    """English weekday name (Monday..Sunday) of a calendar date."""
    return WEEKDAY_NAMES[day.weekday()]


def local_weekday_name(instant: datetime, tz: ZoneInfo) -> str:
    """English weekday name of the instant's local date."""
    return weekday_name(local_date(instant, tz))


def instant_at_local_hour(day: date, hour: int, tz: ZoneInfo) -> datetime:
    """
    Instant at which the given local date reaches the given wall-clock hour.

    Hours past 23 roll over into the following days, so hour 24 is the next
    local midnight.

    Args:
        day: Local calendar date used as the anchor
        hour: Wall-clock hour; 24 means midnight at the end of ``day``
        tz: Chapel timezone

    Returns:
        UTC instant
    """
    extra_days, hour = divmod(hour, 24)
    anchor = day + timedelta(days=extra_days)
    local = datetime(anchor.year, anchor.month, anchor.day, hour, tzinfo=tz)
    return local.astimezone(timezone.utc)


def local_day_bounds(day: date, tz: ZoneInfo) -> Tuple[datetime, datetime]:
    """Half-open [start, end) instants of a whole local calendar day."""
    return instant_at_local_hour(day, 0, tz), instant_at_local_hour(day, 24, tz)


def iter_local_dates(start: datetime, end: datetime, tz: ZoneInfo) -> Iterator[date]:
    """
    Yield every local calendar date from the date of ``start`` through the
    date of ``end`` (inclusive).
    """
    current = local_date(start, tz)
    last = local_date(end, tz)
    while current <= last:
        yield current
        current += timedelta(days=1)


def is_local_hour_boundary(instant: datetime, tz: ZoneInfo) -> bool:
    """True if the local wall clock reads exactly HH:00:00 at the instant."""
    local = to_local(instant, tz)
    return local.minute == 0 and local.second == 0 and local.microsecond == 0


def floor_to_local_hour(instant: datetime, tz: ZoneInfo) -> datetime:
    """Latest local top-of-hour instant at or before the given instant."""
    local = to_local(instant, tz)
    floored = local.replace(minute=0, second=0, microsecond=0)
    return floored.astimezone(timezone.utc)


def next_local_hour(instant: datetime, tz: ZoneInfo) -> datetime:
    """
    First local top-of-hour instant strictly after the given instant.

    Steps through local wall-clock hours, so DST transitions are respected:
    the result is read off the local clock, not computed as a fixed
    3600-second offset.
    """
    candidate = ensure_utc(instant) + ONE_HOUR
    floored = floor_to_local_hour(candidate, tz)
    if floored > ensure_utc(instant):
        return floored
    return candidate


def iter_local_hours(start: datetime, end: datetime, tz: ZoneInfo) -> Iterator[Tuple[datetime, datetime]]:
    """
    Walk [start, end) in local one-hour steps.

    Yields:
        (step_start, step_end) UTC instant pairs; the last step is clipped
        to ``end``.
    """
    cursor = ensure_utc(start)
    stop = ensure_utc(end)
    while cursor < stop:
        step_end = min(next_local_hour(cursor, tz), stop)
        yield cursor, step_end
        cursor = step_end


def exception_hours_for_step(step_start: datetime, step_end: datetime, tz: ZoneInfo) -> Tuple[str, int, int]:
    """
    Local date and [startHour, endHour) that describe a one-hour step.

    A step that ends at the next local midnight gets endHour 24, so the
    exception still matches the step on its own date.

    Both occurrences of a repeated fall-back hour map to the same
    [h, h+1), and that exception covers both of them: unblocking either one
    unblocks the whole repeated hour. Exceptions only carry wall-clock
    hours, so the two occurrences cannot be told apart.

    Returns:
        (date string, start hour, end hour)
    """
    start_local = to_local(step_start, tz)
    end_local = to_local(step_end, tz)
    end_hour = end_local.hour
    if end_local.date() != start_local.date():
        end_hour += 24
    elif end_hour <= start_local.hour:
        # Repeated wall-clock hour when clocks fall back
        end_hour = start_local.hour + 1
    return start_local.date().isoformat(), start_local.hour, end_hour
