"""
Booking interval merging and clash detection.

Intervals are half-open ``[start, end)`` windows. Callers pass existing
intervals already sorted ascending by start (the database clients fetch them
``ORDER BY check_in``); nothing here sorts or validates.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Sequence


@dataclass(frozen=True)
class Interval:
    start: Any
    end: Any


def merge_intervals(intervals: Iterable[Interval]) -> list[Interval]:
    """
    Coalesce overlapping or touching intervals of an ascending sequence.
    """
    merged: list[Interval] = []
    for interval in intervals:
        if merged and interval.start <= merged[-1].end:
            last = merged[-1]
            # A nested interval may end before the running one.
            merged[-1] = Interval(last.start, max(last.end, interval.end))
        else:
            merged.append(interval)
    return merged


def clashes(candidate: Interval, occupied: Interval) -> bool:
    return (
        occupied.start <= candidate.start < occupied.end
        or occupied.start < candidate.end <= occupied.end
        or (candidate.start <= occupied.start and candidate.end >= occupied.end)
    )


def is_bookable(existing: Sequence[Interval], candidate: Interval) -> bool:
    """
    Return True when ``candidate`` overlaps none of ``existing``.

    A candidate starting exactly when an existing stay ends does not clash.
    """
    if not existing:
        return True
    for occupied in merge_intervals(existing):
        if clashes(candidate, occupied):
            return False
    return True
