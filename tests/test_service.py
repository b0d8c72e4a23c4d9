"""Tests for the screen time query service."""

from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from screen_time.events import EventType, RawUsageEvent
from screen_time.service import ScreenTimeService, cap_to_day
from screen_time.source import AppInfo, LaunchableCache
from screen_time.store import EventStore
from screen_time.windows import DAY_MS, DayWindow

UTC = ZoneInfo("UTC")
NEW_YORK = ZoneInfo("America/New_York")
MINUTE = 60_000
HOUR = 60 * MINUTE

# "Now" is 2025-01-25 18:00 UTC unless a test says otherwise
NOW = datetime(2025, 1, 25, 18, 0, tzinfo=UTC)


def at(hour: int, minute: int = 0, *, day: int = 0, tz: ZoneInfo = UTC) -> int:
    """Epoch ms for a wall-clock time relative to 2025-01-25 in ``tz``."""
    base = datetime(2025, 1, 25, tzinfo=tz) + timedelta(days=day)
    return int(base.replace(hour=hour, minute=minute).timestamp() * 1000)


def insert_event(store: EventStore, event_type: EventType, timestamp: int, package: str | None = None) -> None:
    """Helper to insert a normalised test event."""
    store.insert_event(RawUsageEvent(timestamp=timestamp, type=event_type, package_name=package))


def app_session(store: EventStore, package: str, start: int, end: int | None) -> None:
    insert_event(store, EventType.APP_RESUMED, start, package)
    if end is not None:
        insert_event(store, EventType.APP_PAUSED, end, package)


def screen_session(store: EventStore, start: int, end: int | None) -> None:
    insert_event(store, EventType.SCREEN_ON, start)
    if end is not None:
        insert_event(store, EventType.SCREEN_OFF, end)


def daily_screen_on(store: EventStore, days: range) -> None:
    """Turn the screen on at midnight of each day, never off."""
    for day in days:
        insert_event(store, EventType.SCREEN_ON, at(0, day=day))


def make_store(*packages: str) -> EventStore:
    """In-memory store with usage access and the given launchable apps."""
    store = EventStore.open_in_memory()
    store.grant_usage_access()
    for package in packages:
        store.upsert_app(AppInfo(package_name=package, name=package.split(".")[-1].title()))
    return store


def make_service(store: EventStore, *, now: datetime = NOW, tz: ZoneInfo = UTC, **kwargs) -> ScreenTimeService:
    now_ms = int(now.timestamp() * 1000)
    return ScreenTimeService(store, store, tz=tz, clock=lambda: now_ms, **kwargs)


class TestDeviceTotals:
    """Gated device totals."""

    def test_simple_session(self):
        store = make_store("com.a")
        screen_session(store, at(8), at(10))
        insert_event(store, EventType.UNLOCKED, at(8))
        insert_event(store, EventType.LOCKED, at(10))
        app_session(store, "com.a", at(9), at(9, 30))

        service = make_service(store)
        assert service.total_device_usage() == 30 * MINUTE

    def test_screen_off_during_app_session(self):
        store = make_store("com.a")
        screen_session(store, at(9), at(9, 20))
        app_session(store, "com.a", at(9), at(9, 40))

        assert make_service(store).total_device_usage() == 20 * MINUTE

    def test_overlapping_apps_counted_once(self):
        store = make_store("com.a", "com.b")
        screen_session(store, at(0), None)
        app_session(store, "com.a", at(9), at(9, 10))
        app_session(store, "com.b", at(9, 5), at(9, 15))

        assert make_service(store).total_device_usage() == 15 * MINUTE

    def test_non_launchable_apps_ignored(self):
        store = make_store("com.a")
        store.upsert_app(AppInfo(package_name="com.android.systemui", name="System UI"), launchable=False)
        screen_session(store, at(8), at(12))
        app_session(store, "com.android.systemui", at(8), at(12))

        assert make_service(store).total_device_usage() == 0

    def test_today_ends_now(self):
        """A session still open today counts only up to now."""
        store = make_store("com.a")
        screen_session(store, at(17), None)
        app_session(store, "com.a", at(17, 30), None)

        assert make_service(store).total_device_usage() == 30 * MINUTE

    def test_open_session_clipped_at_day_end(self):
        """A session open at midnight counts up to midnight, not into the next day."""
        store = make_store("com.a")
        screen_session(store, at(23), at(0, day=1))
        app_session(store, "com.a", at(23, 50), None)

        service = make_service(store, now=NOW + timedelta(days=7))
        assert service.total_usage_for_date(at(12)) == 10 * MINUTE
        assert service.total_usage_for_date(at(12, day=1)) == 0

    def test_total_for_date_uses_whole_local_day(self):
        store = make_store("com.a")
        screen_session(store, at(0, day=-3), None)
        app_session(store, "com.a", at(6, day=-3), at(8, day=-3))
        app_session(store, "com.a", at(6, day=-2), at(7, day=-2))

        service = make_service(store)
        assert service.total_usage_for_date(at(15, day=-3)) == 2 * HOUR


class TestDayCap:
    """Every reported duration is capped at 24 hours."""

    def test_cap_to_day(self):
        assert cap_to_day(DAY_MS + 1) == DAY_MS
        assert cap_to_day(5) == 5

    def test_25_hour_day_capped(self):
        """The fall-back DST day is 25h long but reports at most 24h."""
        store = make_store("com.a")
        day_start = int(datetime(2025, 11, 2, tzinfo=NEW_YORK).timestamp() * 1000)
        day_end = int(datetime(2025, 11, 3, tzinfo=NEW_YORK).timestamp() * 1000)
        assert day_end - day_start == 25 * HOUR
        screen_session(store, day_start, day_end)
        app_session(store, "com.a", day_start, day_end)

        service = make_service(store, now=datetime(2025, 11, 10, tzinfo=NEW_YORK), tz=NEW_YORK)
        assert service.device_total(DayWindow(day_start, day_end, "2025-11-02")) == 25 * HOUR
        assert service.total_usage_for_date(day_start + HOUR) == DAY_MS


class TestSeries:
    """Weekly and last-six-days series."""

    def test_weekly_keys_and_values(self):
        store = make_store("com.a")
        daily_screen_on(store, range(-6, 1))
        app_session(store, "com.a", at(9, day=-6), at(10, day=-6))
        app_session(store, "com.a", at(9), at(9, 45))

        weekly = make_service(store).weekly_device_screen_time()
        assert list(weekly) == [
            "2025-01-19", "2025-01-20", "2025-01-21", "2025-01-22",
            "2025-01-23", "2025-01-24", "2025-01-25",
        ]
        assert weekly["2025-01-19"] == HOUR
        assert weekly["2025-01-25"] == 45 * MINUTE
        assert weekly["2025-01-22"] == 0

    def test_last_six_days_excludes_today(self):
        store = make_store("com.a")
        daily_screen_on(store, range(-6, 1))
        app_session(store, "com.a", at(9, day=-1), at(11, day=-1))
        app_session(store, "com.a", at(9), at(10))

        series = make_service(store).screen_time_for_last_six_days()
        assert series == [0, 0, 0, 0, 0, 2 * HOUR]

    def test_long_session_split_across_days(self):
        store = make_store("com.a")
        screen_session(store, at(20, day=-2), at(2, day=-1))
        app_session(store, "com.a", at(20, day=-2), at(2, day=-1))

        weekly = make_service(store).weekly_device_screen_time()
        assert weekly["2025-01-23"] == 4 * HOUR
        assert weekly["2025-01-24"] == 2 * HOUR


class TestCountedUsage:
    """Goal-aware counted usage."""

    @pytest.fixture
    def store(self):
        store = make_store("com.a", "com.b", "com.c")
        screen_session(store, at(0), None)
        app_session(store, "com.a", at(9), at(10))
        app_session(store, "com.b", at(11), at(11, 30))
        app_session(store, "com.c", at(12), at(12, 15))
        return store

    def test_custom_group_counts_tracked_only(self, store):
        service = make_service(store)
        assert service.counted_device_usage("custom_group", ["com.b"], ["com.b"]) == 30 * MINUTE

    def test_total_time_excludes_exempt(self, store):
        service = make_service(store)
        assert service.counted_device_usage("total_time", ["com.b"], ["com.a"]) == 45 * MINUTE

    def test_goal_type_case_insensitive(self, store):
        service = make_service(store)
        assert service.counted_device_usage("CUSTOM_GROUP", ["com.c"], []) == 15 * MINUTE

    def test_unknown_goal_counts_everything(self, store):
        service = make_service(store)
        assert service.counted_device_usage("", [], ["com.a"]) == HOUR + 45 * MINUTE
        assert service.counted_device_usage(None) == HOUR + 45 * MINUTE

    def test_tracked_app_must_be_launchable(self, store):
        service = make_service(store)
        assert service.counted_device_usage("custom_group", ["com.unknown"], []) == 0


class TestPerAppQueries:
    """Raw per-app usage queries."""

    def test_usage_for_apps_is_not_gated(self):
        """Per-app figures are raw foreground time, even with the screen off."""
        store = make_store("com.a", "com.b")
        app_session(store, "com.a", at(9), at(10))
        app_session(store, "com.b", at(9, 30), at(10))

        service = make_service(store)
        assert service.total_device_usage() == 0
        assert service.usage_for_apps(["com.a", "com.b"]) == HOUR + 30 * MINUTE
        assert service.usage_for_apps(["com.b", "com.missing"]) == 30 * MINUTE

    def test_usage_for_apps_empty_list(self):
        assert make_service(make_store()).usage_for_apps([]) == 0

    def test_usage_for_date_range(self):
        store = make_store("com.a")
        app_session(store, "com.a", at(9, day=-2), at(10, day=-2))
        app_session(store, "com.a", at(9), at(9, 20))

        result = make_service(store).usage_for_date_range(at(12, day=-2), at(8))
        assert result == {"2025-01-23": HOUR, "2025-01-24": 0, "2025-01-25": 20 * MINUTE}

    def test_daily_breakdown_sorted_and_named(self):
        store = make_store("com.a", "com.b")
        app_session(store, "com.a", at(9), at(9, 10))
        app_session(store, "com.b", at(10), at(11))

        breakdown = make_service(store).daily_usage_breakdown()
        assert [(app.package_name, app.name, app.usage_ms) for app in breakdown] == [
            ("com.b", "B", HOUR),
            ("com.a", "A", 10 * MINUTE),
        ]

    def test_daily_breakdown_skips_unknown_and_zero(self):
        store = make_store("com.a")
        app_session(store, "com.a", at(13, day=-1), at(14, day=-1))
        app_session(store, "com.ghost", at(9), at(10))

        launchable = LaunchableCache(packages=frozenset({"com.a", "com.ghost"}))
        service = make_service(store, launchable=launchable)
        assert service.daily_usage_breakdown() == []

    def test_installed_apps_sorted_by_name(self):
        store = make_store("com.zeta", "com.alpha")
        names = [app.name for app in make_service(store).installed_apps()]
        assert names == ["Alpha", "Zeta"]

    def test_top_apps_ordered_and_limited(self):
        store = make_store("com.a", "com.b", "com.c")
        app_session(store, "com.a", at(9, day=-3), at(9, 10, day=-3))
        app_session(store, "com.b", at(9, day=-2), at(11, day=-2))
        app_session(store, "com.c", at(9), at(10))
        app_session(store, "com.a", at(9, day=-20), at(20, day=-20))

        top = make_service(store, top_apps_limit=2).usage_top_apps()
        assert [app.package_name for app in top] == ["com.b", "com.c"]


class TestLaunchableCache:
    """Launchable package caching."""

    def test_computed_once(self):
        store = make_store("com.a")
        cache = LaunchableCache(store)
        assert cache.get() == frozenset({"com.a"})

        store.upsert_app(AppInfo(package_name="com.b", name="B"))
        assert cache.get() == frozenset({"com.a"})

        cache.invalidate()
        assert cache.get() == frozenset({"com.a", "com.b"})

    def test_injected_set_used_by_service(self):
        store = make_store("com.a")
        screen_session(store, at(0), None)
        app_session(store, "com.other", at(9), at(10))

        launchable = LaunchableCache(packages=frozenset({"com.other"}))
        assert make_service(store, launchable=launchable).total_device_usage() == HOUR

    def test_requires_catalog_or_packages(self):
        with pytest.raises(ValueError):
            LaunchableCache()


class TestPermission:
    """Usage access probing."""

    def test_granted(self):
        assert make_service(make_store()).is_permission_granted() is True

    def test_not_granted(self):
        store = EventStore.open_in_memory()
        assert make_service(store).is_permission_granted() is False

    def test_request_grants_access(self):
        store = EventStore.open_in_memory()
        service = make_service(store)
        service.request_permission()
        assert service.is_permission_granted() is True
