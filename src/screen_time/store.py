"""SQLite-backed usage event log and app catalog."""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from screen_time.errors import SourceUnavailableError
from screen_time.events import RawUsageEvent, UsageEvent
from screen_time.source import AppInfo

SCHEMA = """
CREATE TABLE IF NOT EXISTS events (
    id TEXT PRIMARY KEY,
    timestamp INTEGER NOT NULL,
    type TEXT NOT NULL,
    package_name TEXT,
    source TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS apps (
    package_name TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    launchable INTEGER NOT NULL DEFAULT 1,
    icon BLOB
);

CREATE TABLE IF NOT EXISTS grants (
    name TEXT PRIMARY KEY,
    granted_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_events_timestamp ON events(timestamp);
CREATE INDEX IF NOT EXISTS idx_events_type ON events(type);
CREATE INDEX IF NOT EXISTS idx_apps_launchable ON apps(launchable);
"""

USAGE_ACCESS = "usage_access"

logger = logging.getLogger(__name__)


class EventStore:
    """SQLite-backed event source and app catalog.

    Not thread-safe. Each thread should have its own EventStore instance.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._init_schema()

    def __enter__(self) -> "EventStore":
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        self.close()

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    def _init_schema(self) -> None:
        """Initialize database schema."""
        self._conn.executescript(SCHEMA)
        self._conn.commit()

    @classmethod
    def open(cls, path: Path) -> EventStore:
        """Open or create a database at the given path."""
        conn = sqlite3.connect(path)
        conn.row_factory = sqlite3.Row
        return cls(conn)

    @classmethod
    def open_in_memory(cls) -> EventStore:
        """Create an in-memory database for testing."""
        conn = sqlite3.connect(":memory:")
        conn.row_factory = sqlite3.Row
        return cls(conn)

    # -- events ---------------------------------------------------------

    def insert_event(self, event: RawUsageEvent, *, sdk_version: int | None = None) -> bool:
        """Normalise and insert an event.

        Uses INSERT OR IGNORE for idempotent inserts (same ID = no-op).

        Returns:
            True if a row was inserted, False if it already existed or its
            platform code is not tracked at ``sdk_version``.
        """
        usage = event.resolve(sdk_version)
        if usage is None:
            logger.debug("Skipping untracked event code %s", event.type)
            return False
        cursor = self._conn.execute(
            """
            INSERT OR IGNORE INTO events (id, timestamp, type, package_name, source)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                event.compute_id(usage),
                usage.timestamp,
                usage.type.value,
                usage.subject_id,
                event.source,
            ),
        )
        self._conn.commit()
        return cursor.rowcount > 0

    def query_events(self, start: int, end: int) -> list[UsageEvent]:
        """Events with ``start <= timestamp < end``, oldest first.

        Events sharing a timestamp keep their insertion order.
        """
        try:
            cursor = self._conn.execute(
                """
                SELECT timestamp, type, package_name FROM events
                WHERE timestamp >= ? AND timestamp < ?
                ORDER BY timestamp ASC, rowid ASC
                """,
                (start, end),
            )
            rows = cursor.fetchall()
        except sqlite3.ProgrammingError as e:
            # Raised when the connection has been closed
            raise SourceUnavailableError(str(e)) from e
        return [
            UsageEvent(type=row["type"], timestamp=row["timestamp"], subject_id=row["package_name"])
            for row in rows
        ]

    def get_event_summary(self) -> list[dict[str, Any]]:
        """Get event count and most recent timestamp for each event type.

        Returns list of dicts with keys: type, last_timestamp, event_count.
        Ordered by last_timestamp descending (most recent first).
        """
        cursor = self._conn.execute("""
            SELECT
                type,
                MAX(timestamp) as last_timestamp,
                COUNT(*) as event_count
            FROM events
            GROUP BY type
            ORDER BY last_timestamp DESC
        """)
        return [dict(row) for row in cursor.fetchall()]

    # -- usage access ---------------------------------------------------

    def has_usage_access(self) -> bool:
        try:
            cursor = self._conn.execute(
                "SELECT 1 FROM grants WHERE name = ?", (USAGE_ACCESS,)
            )
            return cursor.fetchone() is not None
        except sqlite3.ProgrammingError as e:
            raise SourceUnavailableError(str(e)) from e

    def request_usage_access(self) -> None:
        """Grant usage access. There is no user to prompt for a local log."""
        self.grant_usage_access()

    def grant_usage_access(self) -> None:
        now = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        self._conn.execute(
            "INSERT OR REPLACE INTO grants (name, granted_at) VALUES (?, ?)",
            (USAGE_ACCESS, now),
        )
        self._conn.commit()

    def revoke_usage_access(self) -> bool:
        """Revoke usage access. Returns True if it had been granted."""
        cursor = self._conn.execute("DELETE FROM grants WHERE name = ?", (USAGE_ACCESS,))
        self._conn.commit()
        return cursor.rowcount > 0

    # -- app catalog ----------------------------------------------------

    def upsert_app(self, app: AppInfo, *, launchable: bool = True) -> None:
        """Insert or replace an app's catalog entry."""
        self._conn.execute(
            """
            INSERT OR REPLACE INTO apps (package_name, name, launchable, icon)
            VALUES (?, ?, ?, ?)
            """,
            (app.package_name, app.name, int(launchable), app.icon),
        )
        self._conn.commit()

    def launchable_packages(self) -> frozenset[str]:
        cursor = self._conn.execute("SELECT package_name FROM apps WHERE launchable = 1")
        return frozenset(row["package_name"] for row in cursor.fetchall())

    def app_info(self, package_name: str) -> AppInfo | None:
        cursor = self._conn.execute(
            "SELECT package_name, name, icon FROM apps WHERE package_name = ?",
            (package_name,),
        )
        row = cursor.fetchone()
        if row is None:
            return None
        return AppInfo(package_name=row["package_name"], name=row["name"], icon=row["icon"])

    def installed_apps(self) -> list[AppInfo]:
        """Launchable apps, unordered."""
        cursor = self._conn.execute(
            "SELECT package_name, name, icon FROM apps WHERE launchable = 1"
        )
        return [
            AppInfo(package_name=row["package_name"], name=row["name"], icon=row["icon"])
            for row in cursor.fetchall()
        ]
