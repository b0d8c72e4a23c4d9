"""Reduce ordered usage events into interval lists and per-app totals."""

from __future__ import annotations

import logging

from screen_time.events import EventType, UsageEvent
from screen_time.inclusion import Inclusion
from screen_time.intervals import Interval, clip_and_collect, merge
from screen_time.source import EventSource

logger = logging.getLogger(__name__)

# Sessions that started before the window but are still open at its start
# are picked up by querying this far back.
LOOKBACK_MS = 12 * 60 * 60 * 1000


def query_window_events(
    source: EventSource, lo: int, hi: int, lookback_ms: int = LOOKBACK_MS
) -> list[UsageEvent]:
    """Fetch events for ``[lo - lookback_ms, hi)``."""
    events = source.query_events(lo - lookback_ms, hi)
    logger.debug("Fetched %d events for window [%d, %d)", len(events), lo, hi)
    return events


def build_toggle_intervals(
    source: EventSource,
    on_type: EventType,
    off_type: EventType,
    lo: int,
    hi: int,
    *,
    lookback_ms: int = LOOKBACK_MS,
) -> list[Interval]:
    """Build merged intervals during which a two-state signal was on.

    Repeated on-events while already on are ignored and off-events while off
    are ignored. A signal still on at the end of the scan is closed at ``hi``.
    """
    out: list[Interval] = []
    open_since: int | None = None

    for event in query_window_events(source, lo, hi, lookback_ms):
        if event.type == on_type:
            if open_since is None:
                open_since = event.timestamp
        elif event.type == off_type:
            if open_since is not None:
                clip_and_collect(out, open_since, event.timestamp, lo, hi)
                open_since = None

    if open_since is not None:
        clip_and_collect(out, open_since, hi, lo, hi)

    return merge(out)


def _scan_subject_sessions(
    events: list[UsageEvent],
    lo: int,
    hi: int,
    inclusion: Inclusion,
    launchable: frozenset[str],
) -> dict[str, list[Interval]]:
    """Clip every included subject's foreground sessions into ``[lo, hi)``.

    Every subject that was opened during the scan has an entry, possibly empty.
    """
    sessions: dict[str, list[Interval]] = {}
    open_since: dict[str, int] = {}

    for event in events:
        subject = event.subject_id
        if subject is None:
            continue
        if event.type == EventType.APP_RESUMED:
            if not inclusion.includes(subject, launchable):
                continue
            sessions.setdefault(subject, [])
            open_since.setdefault(subject, event.timestamp)
        elif event.type == EventType.APP_PAUSED:
            start = open_since.pop(subject, None)
            if start is not None:
                clip_and_collect(sessions[subject], start, event.timestamp, lo, hi)

    # Still in the foreground when the scan ended
    for subject, start in open_since.items():
        clip_and_collect(sessions[subject], start, hi, lo, hi)

    return sessions


def build_subject_active_intervals(
    source: EventSource,
    lo: int,
    hi: int,
    inclusion: Inclusion,
    launchable: frozenset[str],
    *,
    lookback_ms: int = LOOKBACK_MS,
) -> list[Interval]:
    """Build the merged union of time during which any included app was active.

    Several apps may be in the foreground at once (split screen, picture in
    picture); their sessions are unioned, never added.
    """
    events = query_window_events(source, lo, hi, lookback_ms)
    sessions = _scan_subject_sessions(events, lo, hi, inclusion, launchable)
    return merge(iv for ivs in sessions.values() for iv in ivs)


def per_subject_totals(
    source: EventSource,
    lo: int,
    hi: int,
    inclusion: Inclusion,
    launchable: frozenset[str],
    *,
    lookback_ms: int = LOOKBACK_MS,
) -> dict[str, int]:
    """Raw (ungated) foreground milliseconds per included app.

    Apps that came to the foreground during the scan are present even when
    none of their time falls inside the window.
    """
    events = query_window_events(source, lo, hi, lookback_ms)
    sessions = _scan_subject_sessions(events, lo, hi, inclusion, launchable)
    return {
        subject: sum(iv.duration for iv in ivs)
        for subject, ivs in sessions.items()
    }
