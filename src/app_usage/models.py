"""Domain models for usage events and sessions."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum, IntEnum
from typing import Optional


class EventKind(IntEnum):
    """Usage event codes reported by the OS event source."""

    NONE = 0
    MOVE_TO_FOREGROUND = 1
    MOVE_TO_BACKGROUND = 2
    END_OF_DAY = 3
    CONTINUE_PREVIOUS_DAY = 4
    CONFIGURATION_CHANGE = 5
    SYSTEM_INTERACTION = 6
    USER_INTERACTION = 7
    SHORTCUT_INVOCATION = 8
    STANDBY_BUCKET_CHANGED = 11
    NOTIFICATION_INTERRUPTION = 12
    SCREEN_INTERACTIVE = 15
    SCREEN_NON_INTERACTIVE = 16
    KEYGUARD_SHOWN = 17
    KEYGUARD_HIDDEN = 18
    FOREGROUND_SERVICE_START = 19
    FOREGROUND_SERVICE_STOP = 20
    ACTIVITY_STOPPED = 23
    DEVICE_SHUTDOWN = 26
    DEVICE_STARTUP = 27


class EventClass(str, Enum):
    APP_VISIBLE = "app_visible"
    APP_HIDDEN = "app_hidden"
    SCREEN_OFF = "screen_off"
    SCREEN_ON = "screen_on"
    IRRELEVANT = "irrelevant"


@dataclass(frozen=True, slots=True)
class RawEvent:
    """A single usage event as delivered by the event source.

    ``kind`` is kept as a plain integer because the source may report codes
    that :class:`EventKind` does not know about.
    """

    package_name: Optional[str]
    application_label: Optional[str]
    is_system_app: bool
    kind: int
    timestamp: int


@dataclass(slots=True)
class LiveSession:
    """An application that is currently visible on screen."""

    package_name: str
    application_label: Optional[str]
    is_system_app: bool
    start_time: int
    last_activity_time: int


@dataclass(frozen=True, slots=True)
class FinalizedSession:
    """Represents a closed interval of on-screen time for one application."""

    package_name: str
    application_label: Optional[str]
    is_system_app: bool
    start_time: int
    end_time: int

    @property
    def duration_ms(self) -> int:
        return self.end_time - self.start_time

    @property
    def app_on(self) -> datetime:
        return datetime.fromtimestamp(self.start_time / 1000)

    @property
    def app_off(self) -> datetime:
        return datetime.fromtimestamp(self.end_time / 1000)
