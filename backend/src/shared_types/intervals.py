"""
Shared interval types for availability resolution.

Intervals are half-open ``[start, end)`` pairs of UTC instants.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional


@dataclass(frozen=True)
class TimeSlice:
    """A half-open [start, end) span of time."""
    start: datetime
    end: datetime

    @property
    def duration(self) -> timedelta:
        return self.end - self.start


class IntervalSource(str, Enum):
    """Where a background interval came from."""
    DAY_RULE = "day_rule"
    HOUR_RULE = "hour_rule"
    MANUAL = "manual"
    PAST = "past"


@dataclass(frozen=True)
class BackgroundInterval:
    """
    A busy interval to draw behind the calendar.

    Intervals from different sources may overlap; they are never merged
    across sources.
    """
    id: str
    source: IntervalSource
    start: datetime
    end: datetime
    source_id: Optional[str] = None  # Rule or block document id, None for the past overlay
