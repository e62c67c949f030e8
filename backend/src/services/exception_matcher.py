"""Matching of per-date rule exceptions against hour slots."""

from datetime import datetime
from typing import Iterable
from zoneinfo import ZoneInfo

from shared_types.calendar import TimeException
from utils.datetime_utils import ensure_utc, instant_at_local_hour, local_date


def is_excepted(
    exceptions: Iterable[TimeException],
    h_start: datetime,
    h_end: datetime,
    tz: ZoneInfo,
) -> bool:
    """
    Check whether a slot is carved out of a rule by one of its exceptions.

    Only exceptions dated on the local date of ``h_start`` are considered.
    Their hours are anchored to that local day, and any strict overlap with
    the slot is enough; the slot does not need to be inside the exception.

    Args:
        exceptions: The rule's exception list
        h_start: Slot start (instant)
        h_end: Slot end (instant)
        tz: Chapel timezone

    Returns:
        True if any same-date exception overlaps [h_start, h_end)
    """
    start = ensure_utc(h_start)
    end = ensure_utc(h_end)
    day = local_date(start, tz)
    date_str = day.isoformat()

    for ex in exceptions:
        if not ex.date or ex.date_key != date_str:
            continue
        ex_start = instant_at_local_hour(day, ex.start_hour, tz)
        ex_end = instant_at_local_hour(day, ex.end_hour, tz)
        if start < ex_end and end > ex_start:
            return True
    return False
