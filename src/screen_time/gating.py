"""Gate active-app time by screen and keyguard state."""

from __future__ import annotations

import logging

from screen_time.events import EventType
from screen_time.intervals import Interval, intersect_merged, merge, total
from screen_time.reducer import LOOKBACK_MS, build_toggle_intervals
from screen_time.source import EventSource

logger = logging.getLogger(__name__)


def build_gate(
    source: EventSource, lo: int, hi: int, *, lookback_ms: int = LOOKBACK_MS
) -> list[Interval]:
    """Build the merged intervals where the screen was on and the device unlocked.

    Fallbacks:
    - No screen intervals at all: the interactive signal is missing for this
      window, so nothing is countable and the gate is empty.
    - Screen intervals but no unlock intervals: keyguard events are treated as
      unavailable and the device as unlocked for the whole window.
    """
    screen = build_toggle_intervals(
        source, EventType.SCREEN_ON, EventType.SCREEN_OFF, lo, hi, lookback_ms=lookback_ms
    )
    if not screen:
        logger.debug("No screen intervals in [%d, %d); counting nothing", lo, hi)
        return []

    unlocked = build_toggle_intervals(
        source, EventType.UNLOCKED, EventType.LOCKED, lo, hi, lookback_ms=lookback_ms
    )
    if not unlocked:
        logger.debug("No unlock intervals in [%d, %d); assuming unlocked", lo, hi)
        unlocked = [Interval(lo, hi)]

    return intersect_merged(screen, unlocked)


def gate_and_sum(
    source: EventSource,
    active: list[Interval],
    lo: int,
    hi: int,
    *,
    lookback_ms: int = LOOKBACK_MS,
) -> int:
    """Milliseconds of ``active`` time that fall inside the screen/unlock gate."""
    gate = build_gate(source, lo, hi, lookback_ms=lookback_ms)
    if not gate:
        return 0

    counted = intersect_merged(merge(active), gate)
    counted_ms = total(counted)
    gate_ms = total(gate)
    logger.debug(
        "Window [%d, %d): gate=%dms counted=%dms (%d intervals)",
        lo, hi, gate_ms, counted_ms, len(counted),
    )

    if counted_ms > gate_ms:
        logger.warning(
            "Counted time %dms exceeds gated time %dms in [%d, %d)",
            counted_ms, gate_ms, lo, hi,
        )
    assert counted_ms <= gate_ms, "counted time exceeds gate"
    return min(counted_ms, gate_ms)
