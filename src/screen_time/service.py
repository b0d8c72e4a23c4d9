"""Named screen time queries built on the gating engine."""

from __future__ import annotations

import logging
from datetime import tzinfo
from typing import Callable

from pydantic import BaseModel

from screen_time.errors import SourceUnavailableError
from screen_time.gating import gate_and_sum
from screen_time.inclusion import AllLaunchable, Inclusion, inclusion_for_goal
from screen_time.reducer import (
    LOOKBACK_MS,
    build_subject_active_intervals,
    per_subject_totals,
)
from screen_time.source import AppCatalog, AppInfo, EventSource, LaunchableCache
from screen_time.windows import (
    DAY_MS,
    DayWindow,
    last_n_local_days,
    now_ms,
    today_window,
    window_for_date,
    windows_between,
)

logger = logging.getLogger(__name__)

PERMISSION_PROBE_MS = 60_000


def cap_to_day(ms: int) -> int:
    """Clamp a reported duration to 24 hours."""
    return min(ms, DAY_MS)


def _until(window: DayWindow, now: int) -> DayWindow:
    # Sessions still open are closed at the window end; today's ends now.
    return DayWindow(window.start, min(window.end, now), window.key)


class RangeUsage(BaseModel):
    """Usage for one window: raw per-app foreground time and gated device total."""

    per_subject: dict[str, int]
    device_total: int


class AppUsage(AppInfo):
    """An app with its foreground time."""

    usage_ms: int


class ScreenTimeService:
    """Screen time queries over an event source and an app catalog.

    Args:
        source: Usage event log.
        catalog: Installed-app lookup.
        tz: Time zone for day boundaries (default: system local).
        clock: Returns the current instant in epoch milliseconds.
        launchable: Launchable-package cache; built from ``catalog`` when omitted.
        lookback_ms: How far before a window to look for open sessions.
        top_apps_limit: Maximum number of apps from ``usage_top_apps()``.
        top_apps_days: Number of days ``usage_top_apps()`` looks back over.
    """

    def __init__(
        self,
        source: EventSource,
        catalog: AppCatalog,
        *,
        tz: tzinfo | None = None,
        clock: Callable[[], int] = now_ms,
        launchable: LaunchableCache | None = None,
        lookback_ms: int = LOOKBACK_MS,
        top_apps_limit: int = 20,
        top_apps_days: int = 7,
    ) -> None:
        self.source = source
        self.catalog = catalog
        self.tz = tz
        self.clock = clock
        self.launchable = launchable or LaunchableCache(catalog)
        self.lookback_ms = lookback_ms
        self.top_apps_limit = top_apps_limit
        self.top_apps_days = top_apps_days

    # -- permission -----------------------------------------------------

    def is_permission_granted(self) -> bool:
        """Whether usage events can be read.

        Besides the access flag, a trial query over the last minute must
        succeed; a source that is not ready counts as not granted.
        """
        try:
            if not self.source.has_usage_access():
                return False
            now = self.clock()
            self.source.query_events(now - PERMISSION_PROBE_MS, now)
        except SourceUnavailableError as e:
            logger.debug("Usage access probe failed: %s", e)
            return False
        return True

    def request_permission(self) -> None:
        self.source.request_usage_access()

    # -- building blocks ------------------------------------------------

    def device_total(self, window: DayWindow, inclusion: Inclusion | None = None) -> int:
        """Gated device time in ``window`` for apps matching ``inclusion``."""
        active = build_subject_active_intervals(
            self.source,
            window.start,
            window.end,
            inclusion or AllLaunchable(),
            self.launchable.get(),
            lookback_ms=self.lookback_ms,
        )
        return gate_and_sum(
            self.source, active, window.start, window.end, lookback_ms=self.lookback_ms
        )

    def per_app_totals(self, window: DayWindow) -> dict[str, int]:
        """Raw foreground time per launchable app in ``window``."""
        return per_subject_totals(
            self.source,
            window.start,
            window.end,
            AllLaunchable(),
            self.launchable.get(),
            lookback_ms=self.lookback_ms,
        )

    def build_range_usage(self, window: DayWindow) -> RangeUsage:
        return RangeUsage(
            per_subject=self.per_app_totals(window),
            device_total=self.device_total(window),
        )

    # -- queries --------------------------------------------------------

    def total_device_usage(self) -> int:
        """Gated screen time today so far."""
        return cap_to_day(self.device_total(today_window(self.clock(), self.tz)))

    def total_usage_for_date(self, date_ms: int) -> int:
        """Gated screen time for the local day containing ``date_ms``."""
        window = window_for_date(date_ms, self.tz)
        return cap_to_day(self.device_total(_until(window, self.clock())))

    def weekly_device_screen_time(self) -> dict[str, int]:
        """Gated screen time for the last 7 local days including today, by date."""
        now = self.clock()
        windows = last_n_local_days(7, include_today=True, now=now, tz=self.tz)
        return {
            window.key: cap_to_day(self.device_total(_until(window, now)))
            for window in windows
        }

    def screen_time_for_last_six_days(self) -> list[int]:
        """Gated screen time for the 6 completed days before today, oldest first."""
        windows = last_n_local_days(6, include_today=False, now=self.clock(), tz=self.tz)
        return [cap_to_day(self.device_total(window)) for window in windows]

    def counted_device_usage(
        self,
        goal_type: str | None,
        tracked: list[str] | None = None,
        exempt: list[str] | None = None,
    ) -> int:
        """Gated screen time today counting only the apps the goal covers."""
        inclusion = inclusion_for_goal(goal_type, tracked, exempt)
        logger.debug("Counting usage for goal %r with %s", goal_type, inclusion.kind)
        return cap_to_day(self.device_total(today_window(self.clock(), self.tz), inclusion))

    def usage_for_apps(self, package_names: list[str]) -> int:
        """Raw foreground time today summed over ``package_names``."""
        if not package_names:
            return 0
        per_app = self.per_app_totals(today_window(self.clock(), self.tz))
        return cap_to_day(sum(per_app.get(pkg, 0) for pkg in package_names))

    def usage_for_date_range(self, start: int, end: int) -> dict[str, int]:
        """Raw foreground time per local day from ``start``'s day to ``end``'s day."""
        now = self.clock()
        return {
            window.key: cap_to_day(sum(self.per_app_totals(_until(window, now)).values()))
            for window in windows_between(start, end, self.tz)
        }

    def daily_usage_breakdown(self) -> list[AppUsage]:
        """Today's apps with foreground time, most used first.

        Apps missing from the catalog are left out.
        """
        per_app = self.per_app_totals(today_window(self.clock(), self.tz))
        out: list[AppUsage] = []
        for pkg, usage_ms in per_app.items():
            if usage_ms <= 0:
                continue
            info = self.catalog.app_info(pkg)
            if info is None:
                continue
            out.append(AppUsage(**info.model_dump(), usage_ms=usage_ms))
        out.sort(key=lambda app: app.usage_ms, reverse=True)
        return out

    def installed_apps(self) -> list[AppInfo]:
        """Launchable apps sorted by display name."""
        return sorted(self.catalog.installed_apps(), key=lambda app: app.name)

    def usage_top_apps(self) -> list[AppInfo]:
        """Most used launchable apps over the last ``top_apps_days`` days."""
        now = self.clock()
        totals: dict[str, int] = {}
        for window in last_n_local_days(self.top_apps_days, include_today=True, now=now, tz=self.tz):
            for pkg, usage_ms in self.per_app_totals(_until(window, now)).items():
                totals[pkg] = totals.get(pkg, 0) + usage_ms

        out: list[AppInfo] = []
        for pkg, usage_ms in sorted(totals.items(), key=lambda item: item[1], reverse=True):
            if usage_ms <= 0:
                continue
            info = self.catalog.app_info(pkg)
            if info is None:
                continue
            out.append(info)
            if len(out) >= self.top_apps_limit:
                break
        return out
