"""Interval arithmetic over free minutes inside a slot.

Windows are half-open ``[start, end)`` minute ranges, kept disjoint and in
ascending start order. Every function returns a new list.
"""

from typing import List, NamedTuple


class Window(NamedTuple):
    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start


def subtract_interval(windows: List[Window], block_start: int, block_end: int) -> List[Window]:
    """Remove ``[block_start, block_end)`` from the windows.

    A window overlapping the block is split into at most two remainders.
    """
    result: List[Window] = []
    for window in windows:
        if block_end <= window.start or block_start >= window.end:
            result.append(window)
            continue
        if block_start > window.start:
            result.append(Window(window.start, block_start))
        if block_end < window.end:
            result.append(Window(block_end, window.end))
    return result


def clip_from(windows: List[Window], cutoff_minute: int) -> List[Window]:
    """Raise every window's start to at least the cutoff, dropping empties."""
    result: List[Window] = []
    for window in windows:
        start = max(window.start, cutoff_minute)
        if window.end > start:
            result.append(Window(start, window.end))
    return result


def intersect(window: Window, lower: int, upper: int) -> List[Window]:
    """The part of a window inside ``[lower, upper)`` (empty list if none)."""
    start = max(window.start, lower)
    end = min(window.end, upper)
    if end > start:
        return [Window(start, end)]
    return []


def total_minutes(windows: List[Window]) -> int:
    return sum(window.length for window in windows)
