"""Polling tracker that feeds usage events through the reconciler."""

from __future__ import annotations

import logging
import threading
import time
from pathlib import Path
from typing import Callable, Optional

from .config import TrackerSettings, to_ms
from .db import (
    get_checkpoint,
    insert_session,
    load_filter_settings,
    open_database,
    set_checkpoint,
)
from .models import FinalizedSession, RawEvent
from .reconciler import SessionReconciler
from .sources import EventSource

logger = logging.getLogger(__name__)

SessionListener = Callable[[FinalizedSession], None]


def _now_ms() -> int:
    return int(time.time() * 1000)


class UsageTracker:
    """Pulls usage events for successive windows and stores finished sessions."""

    def __init__(
        self,
        db_path: Path,
        settings: TrackerSettings,
        source: Optional[EventSource],
        *,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self.db_path = Path(db_path)
        self.settings = settings
        self.source = source
        self._clock = clock
        self._conn = open_database(self.db_path, check_same_thread=False)
        self._lock = threading.Lock()
        self._listeners: list[SessionListener] = []
        self.reconciler = SessionReconciler(
            sink=self._store_session,
            min_session_duration_ms=settings.min_session_duration_ms,
        )

    def add_listener(self, listener: SessionListener) -> None:
        self._listeners.append(listener)

    def next_window(self) -> Optional[tuple[int, int]]:
        """Return the ``[from, to)`` window for the next poll, or None if too short."""
        now = self._clock()
        with self._lock:
            checkpoint = get_checkpoint(self._conn)
        if checkpoint is None:
            start = now - to_ms(self.settings.first_run_lookback)
        else:
            start = max(checkpoint, now - to_ms(self.settings.max_lookback))
        if now - start < to_ms(self.settings.min_window):
            return None
        return start, now

    def poll_once(self) -> int:
        if self.source is None:
            logger.debug("No event source configured; nothing to poll.")
            return 0
        window = self.next_window()
        if window is None:
            return 0
        start, end = window
        events = self.source.fetch(start, end)
        with self._lock:
            app_filter = load_filter_settings(self._conn)
        emitted = self.reconciler.process_batch(events, app_filter.allows)
        with self._lock:
            set_checkpoint(self._conn, end)
        logger.debug(
            "Polled %d events in [%d, %d); %d sessions stored, %d live",
            len(events),
            start,
            end,
            emitted,
            self.reconciler.live_count(),
        )
        return emitted

    def handle_screen_off(self) -> int:
        logger.info("Screen turned off; finalizing all sessions.")
        return self.reconciler.handle_screen_off(self._clock())

    def handle_screen_on(self) -> None:
        logger.info("Screen turned on.")
        self.reconciler.handle_screen_on()

    def run_forever(self) -> None:
        stop_event = threading.Event()
        try:
            self._run_loop(stop_event)
        except KeyboardInterrupt:
            logger.info("Tracker interrupted; finalizing live sessions.")
        finally:
            self.shutdown()

    def run_until_stopped(self, stop_event: threading.Event) -> None:
        """Run the tracker until the provided event is set."""
        try:
            self._run_loop(stop_event)
        finally:
            self.shutdown()

    def ingest(self, events: list[RawEvent], *, finalize: bool = True) -> int:
        """Reconcile a complete event log in one batch, outside the polling window."""
        with self._lock:
            app_filter = load_filter_settings(self._conn)
        emitted = self.reconciler.process_batch(events, app_filter.allows)
        if finalize and events:
            last_seen = max(event.timestamp for event in events)
            emitted += self.reconciler.finalize_all(last_seen)
        return emitted

    def shutdown(self) -> None:
        try:
            self.reconciler.finalize_all(self._clock())
        finally:
            self.close()

    def close(self) -> None:
        with self._lock:
            self._conn.close()
        logger.info("Tracker stopped.")

    def _store_session(self, session: FinalizedSession) -> None:
        with self._lock:
            insert_session(self._conn, session, device_id=self.settings.device_id)
        logger.info(
            "Session saved: %s (%s ~ %s, %d seconds)",
            session.application_label or session.package_name,
            session.app_on.isoformat(timespec="seconds"),
            session.app_off.isoformat(timespec="seconds"),
            session.duration_ms // 1000,
        )
        for listener in self._listeners:
            try:
                listener(session)
            except Exception:
                logger.exception("Session listener failed for %s", session.package_name)

    def _run_loop(self, stop_event: threading.Event) -> None:
        logger.info("Starting tracker; writing to %s", self.db_path)
        interval = self.settings.check_interval.total_seconds()
        while not stop_event.is_set():
            self.poll_once()
            # Sleep in an interruptible manner.
            stop_event.wait(interval)
