"""Session reconciliation: turns classified usage events into sessions."""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from typing import Callable, Iterable, Optional

from .classifier import classify_event
from .models import EventClass, FinalizedSession, LiveSession, RawEvent

logger = logging.getLogger(__name__)

SessionSink = Callable[[FinalizedSession], None]
FilterPredicate = Callable[[str], bool]

DEFAULT_MIN_SESSION_DURATION_MS = 1000


def accept_all(package_name: str) -> bool:
    return True


class SessionReconciler:
    """Tracks which applications are on screen and emits closed sessions.

    The live table and the screen flag are guarded by a single lock so that
    batch processing and asynchronous screen notifications can run from
    different threads. Sessions are removed from the table before the sink
    sees them; the sink is called after the lock is released, in the order
    the sessions were finalized.

    Sessions are never merged: every visible/hidden cycle of an application
    yields its own record, and there is no inactivity timeout.
    """

    def __init__(
        self,
        sink: SessionSink,
        min_session_duration_ms: int = DEFAULT_MIN_SESSION_DURATION_MS,
    ) -> None:
        self._sink = sink
        self.min_session_duration_ms = min_session_duration_ms
        self._live: dict[str, LiveSession] = {}
        self._screen_on = True
        self._predicate: FilterPredicate = accept_all
        self._lock = threading.Lock()

    @property
    def screen_on(self) -> bool:
        with self._lock:
            return self._screen_on

    def process_batch(
        self,
        events: Iterable[RawEvent],
        filter_predicate: Optional[FilterPredicate] = None,
    ) -> int:
        """Consume ``events`` in timestamp order and emit finalized sessions.

        Events sharing a timestamp keep their original relative order.
        Returns the number of sessions delivered to the sink.
        """
        ordered = sorted(events, key=lambda event: event.timestamp)
        logger.debug("Processing %d events", len(ordered))

        with self._lock:
            if filter_predicate is not None:
                self._predicate = filter_predicate
            predicate = self._predicate
            finished: list[FinalizedSession] = []
            for event in ordered:
                self._apply_locked(event, predicate, finished)
        return self._emit(finished)

    def handle_screen_off(
        self, end_time: int, filter_predicate: Optional[FilterPredicate] = None
    ) -> int:
        """Screen went dark: close every live session at ``end_time``."""
        with self._lock:
            self._screen_on = False
            finished = self._finalize_all_and_clear_locked(
                end_time, filter_predicate or self._predicate
            )
        return self._emit(finished)

    def handle_screen_on(self) -> None:
        with self._lock:
            self._screen_on = True
        logger.debug("Screen on")

    def finalize_all(
        self, end_time: int, filter_predicate: Optional[FilterPredicate] = None
    ) -> int:
        """Close every live session at ``end_time`` without touching screen state."""
        with self._lock:
            finished = self._finalize_all_and_clear_locked(
                end_time, filter_predicate or self._predicate
            )
        return self._emit(finished)

    def live_count(self) -> int:
        with self._lock:
            return len(self._live)

    def live_snapshot(self) -> dict[str, LiveSession]:
        with self._lock:
            return {name: replace(session) for name, session in self._live.items()}

    def _apply_locked(
        self,
        event: RawEvent,
        predicate: FilterPredicate,
        finished: list[FinalizedSession],
    ) -> None:
        event_class = classify_event(event)
        if event_class is EventClass.SCREEN_OFF:
            self._screen_on = False
            finished.extend(self._finalize_all_and_clear_locked(event.timestamp, predicate))
        elif event_class is EventClass.SCREEN_ON:
            self._screen_on = True
            logger.debug("Screen on at %d", event.timestamp)
        elif event_class is EventClass.APP_VISIBLE:
            self._on_visible_locked(event)
        elif event_class is EventClass.APP_HIDDEN:
            session = self._live.pop(event.package_name, None)
            if session is None:
                return
            result = self._finalize_locked(session, event.timestamp, predicate)
            if result:
                finished.append(result)

    def _on_visible_locked(self, event: RawEvent) -> None:
        if not self._screen_on:
            logger.debug("Screen is off, ignoring visible event for %s", event.package_name)
            return

        current = self._live.get(event.package_name)
        if current is not None:
            # Multi-window and picture-in-picture produce repeated pulses.
            current.last_activity_time = max(current.last_activity_time, event.timestamp)
            return

        self._live[event.package_name] = LiveSession(
            package_name=event.package_name,
            application_label=event.application_label,
            is_system_app=event.is_system_app,
            start_time=event.timestamp,
            last_activity_time=event.timestamp,
        )
        logger.debug("Session opened: %s at %d", event.package_name, event.timestamp)

    def _finalize_all_and_clear_locked(
        self, end_time: int, predicate: FilterPredicate
    ) -> list[FinalizedSession]:
        if not self._live:
            return []
        logger.debug("Finalizing %d live sessions at %d", len(self._live), end_time)
        sessions = list(self._live.values())
        self._live.clear()
        finished: list[FinalizedSession] = []
        for session in sessions:
            result = self._finalize_locked(session, end_time, predicate)
            if result:
                finished.append(result)
        return finished

    def _finalize_locked(
        self, session: LiveSession, end_time: int, predicate: FilterPredicate
    ) -> Optional[FinalizedSession]:
        duration = end_time - session.start_time
        if duration <= 0 or duration < self.min_session_duration_ms:
            logger.debug("Session too short, not saving: %s (%dms)", session.package_name, duration)
            return None
        if not predicate(session.package_name):
            logger.debug("Session excluded by app filter: %s", session.package_name)
            return None
        return FinalizedSession(
            package_name=session.package_name,
            application_label=session.application_label,
            is_system_app=session.is_system_app,
            start_time=session.start_time,
            end_time=end_time,
        )

    def _emit(self, finished: list[FinalizedSession]) -> int:
        delivered = 0
        for session in finished:
            try:
                self._sink(session)
            except Exception:
                logger.exception(
                    "Session sink failed for %s (%d-%d)",
                    session.package_name,
                    session.start_time,
                    session.end_time,
                )
                continue
            delivered += 1
        return delivered
