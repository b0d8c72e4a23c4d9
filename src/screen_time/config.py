"""Runtime settings for the screen time engine and CLI."""

from __future__ import annotations

import os
from datetime import tzinfo
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, ValidationError

from screen_time.errors import InvalidArgumentError

DEFAULT_DB_PATH = Path.home() / ".local" / "share" / "screen-time" / "events.db"

ENV_DB_PATH = "SCREEN_TIME_DB"
ENV_TIMEZONE = "SCREEN_TIME_TZ"
ENV_SDK_VERSION = "SCREEN_TIME_SDK"


class Settings(BaseModel):
    """Engine settings.

    ``timezone`` is an IANA zone name; ``None`` uses the system local zone.
    """

    db_path: Path = DEFAULT_DB_PATH
    timezone: str | None = None
    lookback_hours: int = Field(default=12, ge=0)
    top_apps_limit: int = Field(default=20, ge=1)
    top_apps_days: int = Field(default=7, ge=1)
    sdk_version: int = Field(default=34, ge=1)

    @property
    def lookback_ms(self) -> int:
        return self.lookback_hours * 60 * 60 * 1000

    def tzinfo(self) -> tzinfo | None:
        """Resolve ``timezone`` to a tzinfo (``None`` for system local)."""
        if not self.timezone:
            return None
        try:
            return ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise InvalidArgumentError(f"Unknown time zone: {self.timezone}") from e

    @classmethod
    def from_env(cls, **overrides: object) -> Settings:
        """Build settings from environment variables, then apply overrides.

        Overrides set to ``None`` are ignored.
        """
        values: dict[str, object] = {}
        if os.environ.get(ENV_DB_PATH):
            values["db_path"] = os.environ[ENV_DB_PATH]
        if os.environ.get(ENV_TIMEZONE):
            values["timezone"] = os.environ[ENV_TIMEZONE]
        if os.environ.get(ENV_SDK_VERSION):
            values["sdk_version"] = os.environ[ENV_SDK_VERSION]
        values.update({k: v for k, v in overrides.items() if v is not None})
        try:
            return cls.model_validate(values)
        except ValidationError as e:
            raise InvalidArgumentError(f"Invalid settings: {e}") from e
