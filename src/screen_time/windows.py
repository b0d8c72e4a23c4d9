"""Local-timezone calendar day windows.

Windows are built from local midnights, so a day is 23 or 25 hours long
across a DST transition. ``tz=None`` means the system's local time zone.
"""

from __future__ import annotations

import time as _time
from datetime import date, datetime, time, timedelta, tzinfo
from typing import NamedTuple

DAY_MS = 24 * 60 * 60 * 1000


class DayWindow(NamedTuple):
    """Half-open ``[start, end)`` window in epoch milliseconds for one local day."""

    start: int
    end: int
    key: str


def now_ms() -> int:
    """Current time in epoch milliseconds."""
    return _time.time_ns() // 1_000_000


def _to_local(instant: int, tz: tzinfo | None) -> datetime:
    if tz is None:
        return datetime.fromtimestamp(instant / 1000).astimezone()
    return datetime.fromtimestamp(instant / 1000, tz)


def _midnight_ms(day: date, tz: tzinfo | None) -> int:
    # A naive datetime's timestamp() is interpreted in system local time.
    return int(datetime.combine(day, time.min, tzinfo=tz).timestamp() * 1000)


def local_date(instant: int, tz: tzinfo | None = None) -> date:
    """Local calendar date containing ``instant``."""
    return _to_local(instant, tz).date()


def local_date_key(instant: int, tz: tzinfo | None = None) -> str:
    """Format the local date of ``instant`` as ``YYYY-MM-DD``."""
    return local_date(instant, tz).isoformat()


def window_for_day(day: date, tz: tzinfo | None = None) -> DayWindow:
    """Window from ``day``'s local midnight to the next day's local midnight."""
    return DayWindow(
        _midnight_ms(day, tz),
        _midnight_ms(day + timedelta(days=1), tz),
        day.isoformat(),
    )


def window_for_date(instant: int, tz: tzinfo | None = None) -> DayWindow:
    """The local calendar day containing ``instant``."""
    return window_for_day(local_date(instant, tz), tz)


def today_window(now: int | None = None, tz: tzinfo | None = None) -> DayWindow:
    """Today's local midnight up to now."""
    if now is None:
        now = now_ms()
    today = local_date(now, tz)
    return DayWindow(_midnight_ms(today, tz), now, today.isoformat())


def last_n_local_days(
    n: int,
    include_today: bool = True,
    *,
    now: int | None = None,
    tz: tzinfo | None = None,
) -> list[DayWindow]:
    """``n`` consecutive full local days, oldest first.

    Args:
        n: Number of days.
        include_today: End with today (whole day, end in the future) when
            True, otherwise end with yesterday.
        now: Current instant in epoch milliseconds (default: wall clock).
        tz: Time zone (default: system local).
    """
    if now is None:
        now = now_ms()
    last = local_date(now, tz)
    if not include_today:
        last -= timedelta(days=1)
    first = last - timedelta(days=n - 1)
    return [window_for_day(first + timedelta(days=i), tz) for i in range(n)]


def windows_between(start: int, end: int, tz: tzinfo | None = None) -> list[DayWindow]:
    """Every local day window from the day containing ``start`` to the one containing ``end``."""
    day = local_date(start, tz)
    last = local_date(end, tz)
    out: list[DayWindow] = []
    while day <= last:
        out.append(window_for_day(day, tz))
        day += timedelta(days=1)
    return out
