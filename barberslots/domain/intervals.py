"""
Half-open interval arithmetic shared by every conflict check.

All schedule intervals are treated as ``[start, end)``: a booking ending at
12:00 does not collide with a slot starting at 12:00.
"""

from typing import Iterable, Protocol, TypeVar

from pendulum import DateTime


class Interval(Protocol):
    """Anything exposing ``start`` and ``end`` instants."""

    start: DateTime
    end: DateTime


T = TypeVar("T", bound=Interval)


def overlaps(start_a: DateTime, end_a: DateTime, start_b: DateTime, end_b: DateTime) -> bool:
    """
    Check whether ``[start_a, end_a)`` and ``[start_b, end_b)`` overlap.

    Touching intervals (``end_a == start_b``) do not overlap.
    """
    return start_a < end_b and start_b < end_a


def overlaps_any(start: DateTime, end: DateTime, intervals: Iterable[Interval]) -> bool:
    """Return True if ``[start, end)`` overlaps at least one of ``intervals``."""
    return any(overlaps(start, end, other.start, other.end) for other in intervals)


def clip_to_window(
    intervals: Iterable[T],
    window_start: DateTime,
    window_end: DateTime,
) -> list[T]:
    """Keep only the intervals that overlap the window, sorted by start."""
    kept = [
        interval for interval in intervals
        if overlaps(interval.start, interval.end, window_start, window_end)
    ]
    return sorted(kept, key=lambda interval: interval.start)
