"""CLI entry point for screen time."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Callable

import click
from pydantic import BaseModel, ValidationError

from screen_time.channel import MethodChannel
from screen_time.config import DEFAULT_DB_PATH, ENV_DB_PATH, Settings
from screen_time.errors import ScreenTimeError
from screen_time.events import RawUsageEvent
from screen_time.service import ScreenTimeService
from screen_time.source import AppInfo
from screen_time.store import EventStore
from screen_time.windows import now_ms, window_for_day

logger = logging.getLogger(__name__)


def format_relative_time(timestamp_ms: int, *, now: int | None = None) -> str:
    """Format an epoch-ms timestamp as relative time (e.g., '5 minutes ago').

    Args:
        timestamp_ms: Epoch milliseconds.
        now: Optional current time in epoch milliseconds for testing.
    """
    if now is None:
        now = now_ms()

    seconds = (now - timestamp_ms) / 1000
    if seconds < 60:
        # Includes future timestamps (device clock skew)
        return "just now"
    elif seconds < 3600:
        minutes = int(seconds / 60)
        return f"{minutes} minute{'s' if minutes != 1 else ''} ago"
    elif seconds < 86400:
        hours = int(seconds / 3600)
        return f"{hours} hour{'s' if hours != 1 else ''} ago"
    else:
        days = int(seconds / 86400)
        return f"{days} day{'s' if days != 1 else ''} ago"


def format_duration(ms: int) -> str:
    """Format a screen time duration the way phone dashboards do.

    Under a minute shows seconds ('42s'), under an hour minutes ('45m'),
    otherwise hours and minutes ('2h 5m'). Partial units are dropped.
    """
    seconds = max(ms, 0) // 1000
    if seconds < 60:
        return f"{seconds}s"
    hours, minutes = divmod(seconds // 60, 60)
    return f"{hours}h {minutes}m" if hours else f"{minutes}m"


def make_progress_bar(value: int, max_value: int, width: int = 16) -> str:
    """Bar of ``width`` cells filled in proportion to ``value / max_value``.

    Any positive value fills at least one cell.
    """
    if value <= 0 or max_value <= 0:
        filled = 0
    else:
        filled = min(width, max(1, round(width * value / max_value)))
    return "█" * filled + "░" * (width - filled)


def db_option(func: Callable[..., Any]) -> Callable[..., Any]:
    return click.option(
        "--db",
        type=click.Path(path_type=Path),
        default=DEFAULT_DB_PATH,
        envvar=ENV_DB_PATH,
        help="Path to SQLite database",
    )(func)


def json_option(func: Callable[..., Any]) -> Callable[..., Any]:
    return click.option("--json", "output_json", is_flag=True, help="Output as JSON")(func)


def _require_db(db: Path) -> None:
    if not db.exists():
        click.echo("No database found", err=True)
        sys.exit(1)


def _call(db: Path, method: str, arguments: dict[str, Any] | None = None) -> Any:
    """Open the store, run a channel method and exit 1 on failure."""
    _require_db(db)
    try:
        settings = Settings.from_env(db_path=db)
        tz = settings.tzinfo()
    except ScreenTimeError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    with EventStore.open(db) as store:
        service = ScreenTimeService(
            store,
            store,
            tz=tz,
            lookback_ms=settings.lookback_ms,
            top_apps_limit=settings.top_apps_limit,
            top_apps_days=settings.top_apps_days,
        )
        result = MethodChannel(service).handle(method, arguments)

    if result.error is not None:
        click.echo(f"Error ({result.error.code}): {result.error.message}", err=True)
        sys.exit(1)
    return result.value


def _read_jsonl(model: type[BaseModel], handle: Callable[[Any], bool]) -> tuple[int, int, bool]:
    """Validate each stdin line with ``model`` and pass it to ``handle``.

    Returns:
        (accepted, valid, has_input) counts.
    """
    accepted = 0
    valid = 0
    has_input = False
    for line_number, line in enumerate(sys.stdin, 1):
        stripped = line.strip()
        if not stripped:
            continue

        has_input = True

        try:
            item = model.model_validate(json.loads(stripped))
            valid += 1
            if handle(item):
                accepted += 1
        except json.JSONDecodeError as e:
            click.echo(f"Warning: line {line_number}: invalid JSON: {e}", err=True)
        except (ValidationError, ValueError) as e:
            click.echo(f"Warning: line {line_number}: validation error: {e}", err=True)
    return accepted, valid, has_input


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
def main(verbose: bool) -> None:
    """Screen time local CLI."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@main.command("import")
@db_option
@click.option("--sdk", type=int, default=None, help="Platform SDK level for numeric event codes")
def import_events(db: Path, sdk: int | None) -> None:
    """Import usage events from stdin (JSONL format).

    Each line has ``timestamp`` (epoch ms), ``type`` (an event name such as
    ``screen_on`` or a numeric platform code) and, for app events,
    ``package_name``. Duplicate events are silently skipped.

    Example usage:
        cat events.jsonl | screen-time import --sdk 34
    """
    try:
        sdk_version = Settings.from_env(sdk_version=sdk).sdk_version
    except ScreenTimeError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    db.parent.mkdir(parents=True, exist_ok=True)

    with EventStore.open(db) as store:
        imported, valid, has_input = _read_jsonl(
            RawUsageEvent,
            lambda event: store.insert_event(event, sdk_version=sdk_version),
        )

    logger.info("Imported %d of %d valid events", imported, valid)
    click.echo(f"Imported {imported} events")

    # Exit code 1 if we had input but no valid events (all lines were errors)
    if has_input and valid == 0:
        sys.exit(1)


class _CatalogEntry(AppInfo):
    launchable: bool = True


@main.group("apps")
def apps_group() -> None:
    """Manage and query the app catalog."""


@apps_group.command("import")
@db_option
def import_apps(db: Path) -> None:
    """Import app catalog entries from stdin (JSONL format).

    Each line has ``package_name``, ``name`` and optionally ``launchable``.
    """
    db.parent.mkdir(parents=True, exist_ok=True)

    def upsert(entry: _CatalogEntry) -> bool:
        store.upsert_app(
            AppInfo(package_name=entry.package_name, name=entry.name, icon=entry.icon),
            launchable=entry.launchable,
        )
        return True

    with EventStore.open(db) as store:
        imported, valid, has_input = _read_jsonl(_CatalogEntry, upsert)

    click.echo(f"Imported {imported} apps")
    if has_input and valid == 0:
        sys.exit(1)


@apps_group.command("list")
@db_option
@json_option
def list_apps(db: Path, output_json: bool) -> None:
    """List launchable apps."""
    apps = _call(db, "get_installed_apps")
    if output_json:
        click.echo(json.dumps([{k: v for k, v in app.items() if k != "icon"} for app in apps], indent=2))
        return
    for app in apps:
        click.echo(f"  {app['name']:<30} {app['package_name']}")


@apps_group.command("usage")
@db_option
@click.argument("packages", nargs=-1)
def apps_usage(db: Path, packages: tuple[str, ...]) -> None:
    """Show today's raw foreground time for PACKAGES combined."""
    total = _call(db, "get_usage_for_apps", {"package_names": list(packages)})
    click.echo(format_duration(total))


@apps_group.command("top")
@db_option
def top_apps(db: Path) -> None:
    """List the most used apps of the last week."""
    for app in _call(db, "get_usage_top_apps"):
        click.echo(f"  {app['name']:<30} {app['package_name']}")


@main.command("grant")
@db_option
def grant_command(db: Path) -> None:
    """Grant usage access to the event log."""
    db.parent.mkdir(parents=True, exist_ok=True)
    with EventStore.open(db) as store:
        store.grant_usage_access()
    click.echo("Usage access granted")


@main.command("revoke")
@db_option
def revoke_command(db: Path) -> None:
    """Revoke usage access to the event log."""
    _require_db(db)
    with EventStore.open(db) as store:
        revoked = store.revoke_usage_access()
    click.echo("Usage access revoked" if revoked else "Usage access was not granted")


@main.command("status")
@db_option
def status_command(db: Path) -> None:
    """Show event log status.

    Displays usage access, the last event time for each event type and
    overall stats.
    """
    _require_db(db)

    with EventStore.open(db) as store:
        granted = store.has_usage_access()
        summary = store.get_event_summary()
        app_count = len(store.launchable_packages())

    click.echo(f"Database: {db}")
    click.echo(f"Usage access: {'granted' if granted else 'not granted'}")
    click.echo(f"Launchable apps: {app_count}")
    click.echo()

    if not summary:
        click.echo("No events recorded")
        return

    total_events = sum(s["event_count"] for s in summary)
    click.echo(f"Total events: {total_events}")
    click.echo()

    click.echo("Last event per type:")
    for row in summary:
        relative = format_relative_time(row["last_timestamp"])
        click.echo(f"  {row['type']}: {relative} ({row['event_count']} events)")


@main.command("today")
@db_option
def today_command(db: Path) -> None:
    """Show today's screen time so far."""
    click.echo(f"Today: {format_duration(_call(db, 'get_total_device_usage'))}")


@main.command("day")
@db_option
@click.argument("day")
def day_command(db: Path, day: str) -> None:
    """Show screen time for DAY (YYYY-MM-DD)."""
    try:
        date = datetime.strptime(day, "%Y-%m-%d").date()
    except ValueError:
        click.echo(f"Invalid date format: {day}. Use YYYY-MM-DD.", err=True)
        sys.exit(1)

    try:
        tz = Settings.from_env(db_path=db).tzinfo()
    except ScreenTimeError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    total = _call(db, "get_total_usage_for_date", {"date": window_for_day(date, tz).start})
    click.echo(f"{day}: {format_duration(total)}")


@main.command("week")
@db_option
@json_option
def week_command(db: Path, output_json: bool) -> None:
    """Show screen time for each of the last 7 days."""
    by_day: dict[str, int] = _call(db, "get_weekly_device_screen_time")

    if output_json:
        click.echo(json.dumps(by_day, indent=2))
        return

    max_total = max(by_day.values(), default=0)
    for key, total in by_day.items():
        bar = make_progress_bar(total, max_total)
        click.echo(f"  {key}  {format_duration(total):>9}   {bar}")


@main.command("counted")
@db_option
@click.option("--goal-type", default="", help="custom_group, total_time or empty for all apps")
@click.option("--track", "tracked", multiple=True, help="Package counted by a custom_group goal")
@click.option("--exempt", "exempt", multiple=True, help="Package excluded by a total_time goal")
def counted_command(db: Path, goal_type: str, tracked: tuple[str, ...], exempt: tuple[str, ...]) -> None:
    """Show today's screen time counted toward a goal."""
    total = _call(
        db,
        "get_counted_device_usage",
        {
            "goal_type": goal_type,
            "tracked_packages": list(tracked),
            "exempt_packages": list(exempt),
        },
    )
    click.echo(f"Counted: {format_duration(total)}")


@main.command("breakdown")
@db_option
@json_option
def breakdown_command(db: Path, output_json: bool) -> None:
    """Show today's foreground time per app."""
    apps = _call(db, "get_daily_usage_breakdown")

    if output_json:
        click.echo(json.dumps(
            [{k: v for k, v in app.items() if k != "icon"} for app in apps], indent=2
        ))
        return

    if not apps:
        click.echo("No app usage recorded today.")
        return

    max_total = apps[0]["usage_ms"]
    for app in apps:
        # Truncate long names
        name = app["name"]
        if len(name) > 20:
            name = name[:17] + "..."
        bar = make_progress_bar(app["usage_ms"], max_total)
        click.echo(f"  {name:<20} {format_duration(app['usage_ms']):>9}   {bar}")


if __name__ == "__main__":
    main()
