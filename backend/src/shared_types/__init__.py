"""
Shared type definitions for the chapel booking backend.

This module contains dataclasses and types that are used across multiple services.
"""

from shared_types.calendar import (
    CalendarSnapshot,
    DayRule,
    HourRule,
    ManualBlock,
    Reservation,
    Tenant,
    TimeException,
)
from shared_types.intervals import BackgroundInterval, IntervalSource, TimeSlice

__all__ = [
    "BackgroundInterval",
    "CalendarSnapshot",
    "DayRule",
    "HourRule",
    "IntervalSource",
    "ManualBlock",
    "Reservation",
    "Tenant",
    "TimeException",
    "TimeSlice",
]
