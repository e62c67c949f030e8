"""
Coverage checks for recurring auto-block rules.

An hour rule covers a slot only when the slot lies entirely inside the
rule's hours on that local day, while an exception removes coverage as soon
as it overlaps the slot at all. Day rules cover every hour of the listed
weekdays, minus exceptions.
"""

from datetime import datetime
from typing import Iterator, List, Optional
from zoneinfo import ZoneInfo

from services.exception_matcher import is_excepted
from services.time_slice_merger import MergePolicy, merge_slices
from shared_types.calendar import DayRule, HourRule
from shared_types.intervals import TimeSlice
from utils.datetime_utils import (
    ensure_utc,
    instant_at_local_hour,
    iter_local_dates,
    iter_local_hours,
    local_date,
    local_day_bounds,
    local_hour,
    local_weekday_name,
    weekday_name,
)


def hour_rule_covers(rule: HourRule, h_start: datetime, h_end: datetime, tz: ZoneInfo) -> bool:
    """
    Check whether an hour rule covers a slot.

    The rule's hours are anchored to the local day containing ``h_start``.
    A slot straddling either rule boundary is not covered, not even partially.

    Args:
        rule: Hour rule with its exceptions
        h_start: Slot start (instant)
        h_end: Slot end (instant)
        tz: Chapel timezone

    Returns:
        True if the slot is fully inside the rule and not excepted
    """
    start = ensure_utc(h_start)
    end = ensure_utc(h_end)
    day = local_date(start, tz)
    rule_start = instant_at_local_hour(day, rule.start_hour, tz)
    rule_end = instant_at_local_hour(day, rule.end_hour, tz)

    if start < rule_start or end > rule_end:
        return False
    if is_excepted(rule.exceptions, start, end, tz):
        return False
    return True


def day_rule_covers(day_rule: Optional[DayRule], h_start: datetime, h_end: datetime, tz: ZoneInfo) -> bool:
    """
    Check whether the day rule covers a slot.

    True iff the local weekday of ``h_start`` is one of the rule's days and
    the slot is not excepted. A missing day rule covers nothing.
    """
    if day_rule is None or not day_rule.days_of_week:
        return False
    if local_weekday_name(h_start, tz) not in day_rule.days_of_week:
        return False
    return not is_excepted(day_rule.exceptions, h_start, h_end, tz)


def _hour_slices_in_window(
    day_start_hour: int,
    day_end_hour: int,
    window_start: datetime,
    window_end: datetime,
    tz: ZoneInfo,
    include_day=None,
) -> Iterator[TimeSlice]:
    # Steps come from the local clock, so a fall-back day yields its repeated
    # hour twice and a spring-forward day skips the missing one.
    for day in iter_local_dates(window_start, window_end, tz):
        if include_day is not None and not include_day(day):
            continue
        for step_start, step_end in iter_local_hours(*local_day_bounds(day, tz), tz):
            if not day_start_hour <= local_hour(step_start, tz) < day_end_hour:
                continue
            if step_end <= window_start or step_start >= window_end:
                continue
            yield TimeSlice(step_start, step_end)


def hour_rule_slices(
    rule: HourRule,
    window_start: datetime,
    window_end: datetime,
    tz: ZoneInfo,
    policy: MergePolicy = MergePolicy.OVERLAP_OR_TOUCH,
) -> List[TimeSlice]:
    """
    Expand an hour rule into merged busy runs over a window.

    Every day touched by the window contributes the rule's hours, skipping
    excepted hours and hours entirely outside the window.
    """
    start = ensure_utc(window_start)
    end = ensure_utc(window_end)
    slices = [
        s for s in _hour_slices_in_window(rule.start_hour, rule.end_hour, start, end, tz)
        if not is_excepted(rule.exceptions, s.start, s.end, tz)
    ]
    return merge_slices(slices, policy)


def day_rule_slices(
    day_rule: Optional[DayRule],
    window_start: datetime,
    window_end: datetime,
    tz: ZoneInfo,
    policy: MergePolicy = MergePolicy.OVERLAP_OR_TOUCH,
) -> List[TimeSlice]:
    """Expand the day rule into merged busy runs over a window."""
    if day_rule is None or not day_rule.days_of_week:
        return []
    start = ensure_utc(window_start)
    end = ensure_utc(window_end)
    days = set(day_rule.days_of_week)
    slices = [
        s for s in _hour_slices_in_window(0, 24, start, end, tz, include_day=lambda d: weekday_name(d) in days)
        if not is_excepted(day_rule.exceptions, s.start, s.end, tz)
    ]
    return merge_slices(slices, policy)
