"""Interfaces of the collaborators the engine reads from."""

from __future__ import annotations

import logging
import threading
from typing import Protocol

from pydantic import BaseModel

from screen_time.events import UsageEvent

logger = logging.getLogger(__name__)


class AppInfo(BaseModel):
    """Display metadata for an installed app."""

    package_name: str
    name: str
    icon: bytes | None = None


class EventSource(Protocol):
    """Read-only, time-ordered usage event log."""

    def query_events(self, start: int, end: int) -> list[UsageEvent]:
        """Return events with ``start <= timestamp < end`` in timestamp order."""
        ...

    def has_usage_access(self) -> bool: ...

    def request_usage_access(self) -> None: ...


class AppCatalog(Protocol):
    """Installed-app lookup."""

    def launchable_packages(self) -> frozenset[str]: ...

    def app_info(self, package_name: str) -> AppInfo | None: ...

    def installed_apps(self) -> list[AppInfo]: ...


class LaunchableCache:
    """Lazily computed set of launchable package names.

    The set only changes on app install/uninstall, so it is computed once and
    reused until ``invalidate()`` is called.
    """

    def __init__(
        self,
        catalog: AppCatalog | None = None,
        *,
        packages: frozenset[str] | None = None,
    ) -> None:
        if catalog is None and packages is None:
            raise ValueError("LaunchableCache needs a catalog or a fixed package set")
        self._catalog = catalog
        self._packages = packages
        self._lock = threading.Lock()

    def get(self) -> frozenset[str]:
        packages = self._packages
        if packages is not None:
            return packages
        with self._lock:
            if self._packages is None:
                assert self._catalog is not None
                self._packages = frozenset(self._catalog.launchable_packages())
                logger.debug("Cached %d launchable packages", len(self._packages))
            return self._packages

    def invalidate(self) -> None:
        """Drop the cached set; the next ``get()`` re-reads the catalog.

        A cache built from a fixed package set has nothing to re-read and keeps
        its set.
        """
        if self._catalog is not None:
            self._packages = None
