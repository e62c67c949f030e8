"""
Merging of half-open time slices.

Two policies are supported:

- ``EXACT_TOUCH`` joins a slice onto the previous one only when the previous
  slice ends exactly where the next one starts.
- ``OVERLAP_OR_TOUCH`` also absorbs overlapping slices, which is what coverage
  questions ("is this whole day blocked?") need.
"""

from datetime import datetime
from enum import Enum
from typing import Iterable, List

from shared_types.intervals import TimeSlice


class MergePolicy(str, Enum):
    EXACT_TOUCH = "exact_touch"
    OVERLAP_OR_TOUCH = "overlap_or_touch"


def merge_slices(
    slices: Iterable[TimeSlice],
    policy: MergePolicy = MergePolicy.OVERLAP_OR_TOUCH,
) -> List[TimeSlice]:
    """
    Merge slices into a sorted list of combined runs.

    The input may be unsorted and is left untouched.

    Args:
        slices: Half-open slices to merge
        policy: When two neighbouring slices are combined

    Returns:
        Slices sorted by start
    """
    ordered = sorted(slices, key=lambda s: (s.start, s.end))
    if not ordered:
        return []

    merged = [ordered[0]]
    for curr in ordered[1:]:
        prev = merged[-1]
        if policy is MergePolicy.EXACT_TOUCH:
            joinable = prev.end == curr.start
        else:
            joinable = prev.end >= curr.start
        if joinable:
            merged[-1] = TimeSlice(prev.start, max(prev.end, curr.end))
        else:
            merged.append(curr)
    return merged


def clip_slices_to_range(slices: Iterable[TimeSlice], start: datetime, end: datetime) -> List[TimeSlice]:
    """Intersect each slice with [start, end), dropping empty results."""
    clipped = []
    for s in slices:
        lo = max(s.start, start)
        hi = min(s.end, end)
        if lo < hi:
            clipped.append(TimeSlice(lo, hi))
    return clipped


def covers_range(slices: Iterable[TimeSlice], start: datetime, end: datetime) -> bool:
    """
    True if the union of the slices covers all of [start, end).

    Slices are clipped to the range and merged with OVERLAP_OR_TOUCH; the
    range is covered when exactly one run remains and it spans the range.
    """
    coverage = merge_slices(clip_slices_to_range(slices, start, end), MergePolicy.OVERLAP_OR_TOUCH)
    if len(coverage) != 1:
        return False
    return coverage[0].start <= start and coverage[0].end >= end
