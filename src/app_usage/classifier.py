"""Classification of raw usage events into session-relevant classes."""

from __future__ import annotations

import logging

from .models import EventClass, EventKind, RawEvent

logger = logging.getLogger(__name__)

# Only whole-app visibility and screen power open or close sessions.
_KIND_TO_CLASS: dict[int, EventClass] = {
    EventKind.MOVE_TO_FOREGROUND: EventClass.APP_VISIBLE,
    EventKind.MOVE_TO_BACKGROUND: EventClass.APP_HIDDEN,
    EventKind.SCREEN_NON_INTERACTIVE: EventClass.SCREEN_OFF,
    EventKind.SCREEN_INTERACTIVE: EventClass.SCREEN_ON,
}


def classify_event(event: RawEvent) -> EventClass:
    """Return the session class for ``event`` or ``IRRELEVANT``."""
    if not event.package_name or not event.package_name.strip():
        logger.debug("Dropping event without package (kind=%s ts=%s)", event.kind, event.timestamp)
        return EventClass.IRRELEVANT

    event_class = _KIND_TO_CLASS.get(event.kind)
    if event_class is None:
        logger.debug(
            "Dropping irrelevant event: package=%s kind=%s",
            event.package_name,
            describe_kind(event.kind),
        )
        return EventClass.IRRELEVANT
    return event_class


def describe_kind(kind: int) -> str:
    try:
        return EventKind(kind).name
    except ValueError:
        return f"UNKNOWN({kind})"
