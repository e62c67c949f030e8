"""
Availability service for chapel slot booking.

This module resolves, for any proposed interval, whether it is bookable,
blocked or reserved, and expands the auto-block rules into the busy
intervals drawn behind the calendar. It is shared by the booking path, the
admin block/unblock path and the calendar read endpoints.

Sources of unavailability:
- Manual blocks: one-hour admin blackouts, matched by exact bounds
- Hour rules: "every day, block local hours [startHour, endHour)"
- The day rule: "on these weekdays, block the whole local day"
- Reservations: matched by overlap
- The past: anything starting before "now"

The resolver only reads the snapshot it was given; it never writes.
"""

import logging
from datetime import date, datetime, timedelta
from typing import List, Optional, Tuple

from core.constants import EARLIEST_DAY_LOOKAHEAD_DAYS, FUTURE_WINDOW_DAYS, PAST_WINDOW_DAYS
from services.rule_coverage import day_rule_covers, day_rule_slices, hour_rule_covers, hour_rule_slices
from services.time_slice_merger import MergePolicy, covers_range
from shared_types.calendar import CalendarSnapshot
from shared_types.intervals import BackgroundInterval, IntervalSource, TimeSlice
from utils.datetime_utils import (
    ensure_utc,
    floor_to_local_hour,
    format_instant,
    instant_at_local_hour,
    is_local_hour_boundary,
    iter_local_hours,
    local_date,
    local_day_bounds,
    next_local_hour,
    resolve_timezone,
    utc_now,
)

logger = logging.getLogger(__name__)

PAST_BLOCK_ID = "past-block"


class AvailabilityResolver:
    """
    Availability decisions for one chapel at one moment.

    Build a new resolver per request (or whenever "now" should move on): the
    valid window and the past cutoff are computed from ``now`` on every call,
    never stored elsewhere.
    """

    def __init__(self, snapshot: CalendarSnapshot, now: Optional[datetime] = None):
        self.snapshot = snapshot
        try:
            self.tz = resolve_timezone(snapshot.tenant.timezone)
        except ValueError:
            logger.warning(
                f"Chapel {snapshot.tenant.id} has unknown timezone {snapshot.tenant.timezone!r}; using default"
            )
            self.tz = resolve_timezone(None)
        self.now = ensure_utc(now) if now is not None else utc_now()
        self._manual_bounds = {(b.start, b.end) for b in snapshot.manual_blocks}

    # ------------------------------------------------------------------
    # Slot predicates
    # ------------------------------------------------------------------

    def is_manually_blocked(self, start: datetime, end: datetime) -> bool:
        """True if some manual block has exactly these [start, end) bounds."""
        return (ensure_utc(start), ensure_utc(end)) in self._manual_bounds

    def overlaps_manual_block(self, start: datetime, end: datetime) -> bool:
        """True if any manual block overlaps [start, end) at all."""
        start, end = ensure_utc(start), ensure_utc(end)
        return any(b.start < end and b.end > start for b in self.snapshot.manual_blocks)

    def is_auto_blocked(self, start: datetime, end: datetime) -> bool:
        """True if the day rule or any hour rule covers the slot."""
        if day_rule_covers(self.snapshot.day_rule, start, end, self.tz):
            return True
        return any(hour_rule_covers(rule, start, end, self.tz) for rule in self.snapshot.hour_rules)

    def is_blocked(self, start: datetime, end: datetime) -> bool:
        """True if the slot is manually blocked or auto-blocked."""
        return self.is_manually_blocked(start, end) or self.is_auto_blocked(start, end)

    def is_range_fully_blocked(self, start: datetime, end: datetime) -> bool:
        """
        Check whether every local hour of [start, end) is blocked.

        Used to decide whether a selection should offer "unblock" rather than
        "block". An empty range is not considered blocked.
        """
        steps = list(iter_local_hours(start, end, self.tz))
        if not steps:
            return False
        return all(self.is_blocked(step_start, step_end) for step_start, step_end in steps)

    def is_reserved(self, start: datetime, end: datetime) -> bool:
        """True if [start, end) overlaps any existing reservation."""
        start, end = ensure_utc(start), ensure_utc(end)
        return any(r.start < end and r.end > start for r in self.snapshot.reservations)

    def is_past(self, start: datetime) -> bool:
        return ensure_utc(start) < self.now

    def can_reserve(self, start: datetime, end: datetime) -> bool:
        """
        The single bookability predicate.

        A span can be reserved when it starts no earlier than now, is not
        blocked and does not overlap a reservation. Every local hour the span
        touches is checked against the rules, and any manual block overlapping
        the span makes it unavailable, so longer or unaligned spans can't slip
        past a blocked hour.

        The booking path must call this again on freshly loaded data right
        before creating the reservation.
        """
        start, end = ensure_utc(start), ensure_utc(end)
        if end <= start:
            return False
        if self.is_past(start):
            return False
        if self.is_reserved(start, end):
            return False
        if self.overlaps_manual_block(start, end):
            return False
        cursor = floor_to_local_hour(start, self.tz)
        while cursor < end:
            step_end = next_local_hour(cursor, self.tz)
            if self.is_blocked(cursor, step_end):
                return False
            cursor = step_end
        return True

    # ------------------------------------------------------------------
    # Windows
    # ------------------------------------------------------------------

    def today(self) -> date:
        """Today's date in the chapel's timezone."""
        return local_date(self.now, self.tz)

    def valid_range(self) -> Tuple[datetime, datetime]:
        """
        Addressable range for display and selection.

        From local midnight seven days ago through the end of the local day
        thirty days ahead, recomputed from ``now``.
        """
        today = self.today()
        return (
            instant_at_local_hour(today - timedelta(days=PAST_WINDOW_DAYS), 0, self.tz),
            instant_at_local_hour(today + timedelta(days=FUTURE_WINDOW_DAYS), 24, self.tz),
        )

    def is_within_valid_range(self, start: datetime, end: datetime) -> bool:
        range_start, range_end = self.valid_range()
        return range_start <= ensure_utc(start) and ensure_utc(end) <= range_end

    def past_interval(self) -> BackgroundInterval:
        """Synthetic busy interval from local midnight seven days ago until now."""
        start = instant_at_local_hour(self.today() - timedelta(days=PAST_WINDOW_DAYS), 0, self.tz)
        return BackgroundInterval(
            id=PAST_BLOCK_ID,
            source=IntervalSource.PAST,
            start=start,
            end=self.now,
        )

    def next_bookable_hour(self) -> datetime:
        """The earliest top-of-hour a new selection may start at."""
        if is_local_hour_boundary(self.now, self.tz):
            return self.now
        return next_local_hour(self.now, self.tz)

    # ------------------------------------------------------------------
    # Background expansion
    # ------------------------------------------------------------------

    def _fully_covered_by_manual(self, start: datetime, end: datetime) -> bool:
        for step_start, step_end in iter_local_hours(start, end, self.tz):
            if not self.is_manually_blocked(step_start, step_end):
                return False
        return True

    def expand_background_intervals(
        self,
        window_start: datetime,
        window_end: datetime,
        policy: MergePolicy = MergePolicy.OVERLAP_OR_TOUCH,
    ) -> List[BackgroundInterval]:
        """
        Expand all sources into busy intervals for a visible window.

        Each source (the day rule, each hour rule) is expanded into hour
        slices and merged into contiguous runs on its own. Manual blocks are
        emitted as stored, plus one synthetic past interval. Sources are not
        merged with each other, so intervals may overlap. Rule runs that manual
        blocks already cover hour by hour are left out.

        Args:
            window_start: Start of the visible window (instant)
            window_end: End of the visible window (instant)
            policy: Merge policy applied within each rule source

        Returns:
            List of BackgroundInterval (day rule, hour rules, manual, past)
        """
        window_start, window_end = ensure_utc(window_start), ensure_utc(window_end)
        intervals: List[BackgroundInterval] = []
        if window_end <= window_start:
            return intervals

        day_rule = self.snapshot.day_rule
        if day_rule is not None:
            for s in day_rule_slices(day_rule, window_start, window_end, self.tz, policy):
                if self._fully_covered_by_manual(s.start, s.end):
                    continue
                intervals.append(BackgroundInterval(
                    id=f"auto-day-{day_rule.id}-{format_instant(s.start)}",
                    source=IntervalSource.DAY_RULE,
                    start=s.start,
                    end=s.end,
                    source_id=day_rule.id,
                ))

        for rule in self.snapshot.hour_rules:
            for s in hour_rule_slices(rule, window_start, window_end, self.tz, policy):
                if self._fully_covered_by_manual(s.start, s.end):
                    continue
                intervals.append(BackgroundInterval(
                    id=f"auto-hour-{rule.id}-{format_instant(s.start)}",
                    source=IntervalSource.HOUR_RULE,
                    start=s.start,
                    end=s.end,
                    source_id=rule.id,
                ))

        for block in self.snapshot.manual_blocks:
            if block.start < window_end and block.end > window_start:
                intervals.append(BackgroundInterval(
                    id=block.id,
                    source=IntervalSource.MANUAL,
                    start=block.start,
                    end=block.end,
                    source_id=block.id,
                ))

        intervals.append(self.past_interval())
        return intervals

    # ------------------------------------------------------------------
    # Whole-day questions
    # ------------------------------------------------------------------

    def is_day_fully_blocked(self, day: date) -> bool:
        """True if the background intervals leave no gap anywhere in the local day."""
        day_start, day_end = local_day_bounds(day, self.tz)
        slices = [
            TimeSlice(i.start, i.end)
            for i in self.expand_background_intervals(day_start, day_end)
        ]
        return covers_range(slices, day_start, day_end)

    def find_earliest_relevant_day(self, lookahead_days: int = EARLIEST_DAY_LOOKAHEAD_DAYS) -> Optional[date]:
        """
        First local day from today that has a reservation or is not fully blocked.

        Returns:
            The date, or None if every day in the lookahead is fully blocked
            and unreserved
        """
        today = self.today()
        for offset in range(lookahead_days + 1):
            day = today + timedelta(days=offset)
            day_start, day_end = local_day_bounds(day, self.tz)
            if self.is_reserved(day_start, day_end) or not self.is_day_fully_blocked(day):
                return day
        return None
