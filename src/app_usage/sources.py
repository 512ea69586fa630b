"""Raw usage event sources."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterable, Optional, Protocol, Union

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .models import EventKind, RawEvent

logger = logging.getLogger(__name__)


class EventSource(Protocol):
    def fetch(self, from_time: int, to_time: int) -> list[RawEvent]:
        """Return events with ``from_time <= timestamp < to_time``."""
        ...


class UsageEventRecord(BaseModel):
    """One line of a usage event export."""

    package_name: Optional[str] = None
    application_label: Optional[str] = None
    is_system_app: bool = False
    kind: int
    timestamp: int

    model_config = ConfigDict(extra="ignore")

    @field_validator("kind", mode="before")
    @classmethod
    def _kind_from_name(cls, value: Union[int, str]) -> Union[int, str]:
        if isinstance(value, str) and not value.strip().lstrip("-").isdigit():
            try:
                return int(EventKind[value.strip().upper()])
            except KeyError as exc:
                raise ValueError(f"unknown event kind {value!r}") from exc
        return value

    def to_event(self) -> RawEvent:
        return RawEvent(
            package_name=self.package_name,
            application_label=self.application_label,
            is_system_app=self.is_system_app,
            kind=self.kind,
            timestamp=self.timestamp,
        )


class JsonLinesEventSource:
    """Reads events from a JSON-lines export, one event object per line.

    ``fetch`` follows the export the way ``tail -f`` does: each call parses
    only the complete lines appended since the previous call, and events at
    or past the end of the window are held for the next one. A file that
    shrinks is read again from the start.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._offset = 0
        self._line_number = 0
        self._pending: list[RawEvent] = []

    def fetch(self, from_time: int, to_time: int) -> list[RawEvent]:
        self._pending.extend(self._read_appended())
        window = [event for event in self._pending if from_time <= event.timestamp < to_time]
        self._pending = [event for event in self._pending if event.timestamp >= to_time]
        return window

    def read_all(self) -> list[RawEvent]:
        if not self.path.exists():
            logger.warning("Event file %s does not exist", self.path)
            return []
        events: list[RawEvent] = []
        with self.path.open("rb") as handle:
            for line_number, line in enumerate(handle, start=1):
                event = _parse_line(line, line_number, self.path)
                if event is not None:
                    events.append(event)
        return events

    def _read_appended(self) -> list[RawEvent]:
        if not self.path.exists():
            logger.warning("Event file %s does not exist", self.path)
            return []
        if self.path.stat().st_size < self._offset:
            logger.info("Event file %s was truncated, reading from the start", self.path)
            self._offset = 0
            self._line_number = 0
            self._pending.clear()

        events: list[RawEvent] = []
        with self.path.open("rb") as handle:
            handle.seek(self._offset)
            for line in handle:
                if not line.endswith(b"\n"):
                    # Still being written; picked up once the newline lands.
                    break
                self._offset += len(line)
                self._line_number += 1
                event = _parse_line(line, self._line_number, self.path)
                if event is not None:
                    events.append(event)
        return events


class MemoryEventSource:
    """Serves events from memory, e.g. for replays."""

    def __init__(self, events: Iterable[RawEvent] = ()) -> None:
        self._events = list(events)

    def extend(self, events: Iterable[RawEvent]) -> None:
        self._events.extend(events)

    def fetch(self, from_time: int, to_time: int) -> list[RawEvent]:
        return [event for event in self._events if from_time <= event.timestamp < to_time]


def _parse_line(line: bytes, line_number: int, path: Path) -> Optional[RawEvent]:
    line = line.strip()
    if not line:
        return None
    try:
        payload = json.loads(line.decode("utf-8"))
        return UsageEventRecord.model_validate(payload).to_event()
    except (UnicodeDecodeError, json.JSONDecodeError, ValidationError) as exc:
        logger.warning("Skipping malformed event at %s:%d: %s", path, line_number, exc)
        return None
