"""Half-open interval arithmetic over epoch milliseconds."""

from __future__ import annotations

from typing import Iterable, NamedTuple


class Interval(NamedTuple):
    """A half-open span ``[start, end)`` in epoch milliseconds."""

    start: int
    end: int

    @property
    def duration(self) -> int:
        return self.end - self.start


def merge(intervals: Iterable[Interval]) -> list[Interval]:
    """Merge overlapping or touching intervals.

    Input order does not matter and the input is not modified. Empty and
    inverted intervals are dropped.

    Returns:
        A new list sorted by start, pairwise disjoint and non-adjacent.
    """
    ordered = sorted((iv for iv in intervals if iv.end > iv.start), key=lambda iv: iv.start)
    if not ordered:
        return []

    out: list[Interval] = []
    cur_start, cur_end = ordered[0]
    for start, end in ordered[1:]:
        if start <= cur_end:
            cur_end = max(cur_end, end)
        else:
            out.append(Interval(cur_start, cur_end))
            cur_start, cur_end = start, end
    out.append(Interval(cur_start, cur_end))
    return out


def is_merged(intervals: list[Interval]) -> bool:
    """Check that a list is in canonical merged form."""
    for i, iv in enumerate(intervals):
        if iv.end <= iv.start:
            return False
        if i and intervals[i - 1].end >= iv.start:
            return False
    return True


def intersect_merged(a: list[Interval], b: list[Interval]) -> list[Interval]:
    """Intersect two merged interval lists with a two-pointer sweep.

    Args:
        a: Merged interval list.
        b: Merged interval list.

    Returns:
        Merged list covering exactly the instants covered by both inputs.

    Raises:
        ValueError: If either input is not in merged form.
    """
    if not is_merged(a) or not is_merged(b):
        raise ValueError("intersect_merged() requires merged inputs; call merge() first")

    out: list[Interval] = []
    i = j = 0
    while i < len(a) and j < len(b):
        start = max(a[i].start, b[j].start)
        end = min(a[i].end, b[j].end)
        if end > start:
            out.append(Interval(start, end))
        if a[i].end < b[j].end:
            i += 1
        else:
            j += 1
    return out


def total(intervals: Iterable[Interval]) -> int:
    """Total covered duration in milliseconds."""
    return sum(iv.end - iv.start for iv in intervals)


def clip_and_collect(
    out: list[Interval], start: int, end: int, lo: int, hi: int
) -> None:
    """Clamp ``[start, end)`` into ``[lo, hi)`` and append it if non-empty."""
    s = max(start, lo)
    e = min(end, hi)
    if e > s:
        out.append(Interval(s, e))
