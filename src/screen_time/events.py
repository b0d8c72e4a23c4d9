"""Usage event models and platform event-code resolution."""

from __future__ import annotations

import hashlib
from enum import Enum

from pydantic import BaseModel, ConfigDict


class EventType(str, Enum):
    """Event vocabulary the engine understands."""

    APP_RESUMED = "app_resumed"
    APP_PAUSED = "app_paused"
    SCREEN_ON = "screen_on"
    SCREEN_OFF = "screen_off"
    UNLOCKED = "unlocked"
    LOCKED = "locked"


APP_EVENT_TYPES = {EventType.APP_RESUMED, EventType.APP_PAUSED}


class UsageEvent(BaseModel):
    """A normalised usage event as seen by the engine.

    ``subject_id`` is the foreground package for app events and ``None`` for
    screen and keyguard events.
    """

    model_config = ConfigDict(frozen=True)

    type: EventType
    timestamp: int
    subject_id: str | None = None


# android.app.usage.UsageEvents.Event constants
MOVE_TO_FOREGROUND = 1
MOVE_TO_BACKGROUND = 2
ACTIVITY_RESUMED = 1
ACTIVITY_PAUSED = 2
SCREEN_INTERACTIVE = 15
SCREEN_NON_INTERACTIVE = 16
KEYGUARD_SHOWN = 17
KEYGUARD_HIDDEN = 18

# SCREEN_* and KEYGUARD_* were added in API 28, ACTIVITY_* in API 29.
SCREEN_EVENTS_MIN_SDK = 28
ACTIVITY_EVENTS_MIN_SDK = 29


def platform_event_codes(sdk_version: int) -> dict[int, EventType]:
    """Map raw platform event codes to engine event types for an SDK level.

    Codes the platform does not report at ``sdk_version`` are absent from the
    mapping, so a device without screen/keyguard events simply produces none.
    """
    if sdk_version >= ACTIVITY_EVENTS_MIN_SDK:
        codes = {
            ACTIVITY_RESUMED: EventType.APP_RESUMED,
            ACTIVITY_PAUSED: EventType.APP_PAUSED,
        }
    else:
        codes = {
            MOVE_TO_FOREGROUND: EventType.APP_RESUMED,
            MOVE_TO_BACKGROUND: EventType.APP_PAUSED,
        }
    if sdk_version >= SCREEN_EVENTS_MIN_SDK:
        codes.update({
            SCREEN_INTERACTIVE: EventType.SCREEN_ON,
            SCREEN_NON_INTERACTIVE: EventType.SCREEN_OFF,
            KEYGUARD_HIDDEN: EventType.UNLOCKED,
            KEYGUARD_SHOWN: EventType.LOCKED,
        })
    return codes


class RawUsageEvent(BaseModel):
    """Event as exported from a device, before normalisation.

    ``type`` is either an engine event name or a numeric platform code.
    """

    timestamp: int
    type: EventType | int
    package_name: str | None = None
    source: str = "device"

    def resolve(self, sdk_version: int | None = None) -> UsageEvent | None:
        """Normalise to a ``UsageEvent``.

        Numeric codes are resolved against ``platform_event_codes`` and need an
        SDK level. Returns ``None`` for codes the engine does not track.
        """
        if isinstance(self.type, EventType):
            event_type = self.type
        else:
            if sdk_version is None:
                raise ValueError("numeric event codes require an SDK version")
            event_type = platform_event_codes(sdk_version).get(self.type)
            if event_type is None:
                return None

        subject_id = self.package_name if event_type in APP_EVENT_TYPES else None
        return UsageEvent(type=event_type, timestamp=self.timestamp, subject_id=subject_id)

    def compute_id(self, event: UsageEvent) -> str:
        """Compute deterministic ID from the normalised content."""
        content = "|".join([
            self.source,
            event.type.value,
            str(event.timestamp),
            event.subject_id or "",
        ])
        return hashlib.sha256(content.encode()).hexdigest()[:32]
