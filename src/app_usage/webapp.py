"""FastAPI application that exposes a local API for the usage tracker."""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict

from .config import TrackerSettings
from .db import (
    DATETIME_FMT,
    database_connection,
    fetch_sessions_for_day,
    fetch_summary_by_day,
    load_filter_settings,
    save_filter_settings,
)
from .filters import AppFilter, FilterMode
from .paths import get_db_path
from .sources import EventSource, JsonLinesEventSource
from .tracker import UsageTracker

logger = logging.getLogger(__name__)


class TrackerRunner:
    """Manage the usage tracker in a background thread."""

    def __init__(self, tracker: UsageTracker) -> None:
        self.tracker = tracker
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None
        self._stopped = False

    def start(self) -> None:
        with self._lock:
            if self._stopped or (self._thread and self._thread.is_alive()):
                return
            if self.tracker.source is None:
                logger.info("No event source configured; tracker polling disabled.")
                return
            stop_event = threading.Event()
            thread = threading.Thread(
                target=self.tracker.run_until_stopped,
                args=(stop_event,),
                daemon=True,
            )
            self._thread = thread
            self._stop_event = stop_event
            thread.start()
            logger.info("Tracker background thread started.")

    def stop(self) -> None:
        thread: Optional[threading.Thread] = None
        with self._lock:
            if self._stopped:
                return
            self._stopped = True
            if self._thread and self._thread.is_alive() and self._stop_event:
                self._stop_event.set()
                thread = self._thread
            self._thread = None
            self._stop_event = None
        if thread:
            thread.join(timeout=10)
            logger.info("Tracker background thread stopped.")
        else:
            self.tracker.shutdown()

    def is_running(self) -> bool:
        with self._lock:
            return bool(self._thread and self._thread.is_alive())


class FilterPayload(BaseModel):
    mode: FilterMode
    apps: list[str] = []

    model_config = ConfigDict(extra="forbid")


def create_app(
    *,
    db_path: Optional[Path] = None,
    settings: Optional[TrackerSettings] = None,
    source: Optional[EventSource] = None,
    events_path: Optional[Path] = None,
) -> FastAPI:
    """Instantiate the FastAPI application."""
    resolved_db_path = Path(db_path or get_db_path())
    resolved_settings = settings or TrackerSettings()
    if source is None and events_path is not None:
        source = JsonLinesEventSource(events_path)
    tracker = UsageTracker(resolved_db_path, resolved_settings, source)
    runner = TrackerRunner(tracker)

    app = FastAPI(title="App Usage", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.db_path = resolved_db_path
    app.state.tracker_runner = runner

    @app.on_event("startup")
    async def _startup() -> None:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )
        runner.start()

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        runner.stop()

    @app.get("/api/status")
    def status(request: Request) -> Dict[str, Any]:
        reconciler = request.app.state.tracker_runner.tracker.reconciler
        live = reconciler.live_snapshot()
        return {
            "tracker_running": request.app.state.tracker_runner.is_running(),
            "database_path": str(request.app.state.db_path),
            "check_seconds": resolved_settings.check_interval.total_seconds(),
            "min_session_seconds": resolved_settings.min_session_duration.total_seconds(),
            "screen_on": reconciler.screen_on,
            "live_count": len(live),
            "live_sessions": [
                {
                    "package_name": session.package_name,
                    "application_name": session.application_label,
                    "is_system_app": session.is_system_app,
                    "start_time": session.start_time,
                    "last_activity_time": session.last_activity_time,
                }
                for session in sorted(live.values(), key=lambda item: item.start_time)
            ],
        }

    @app.post("/api/screen/{state}")
    def screen(state: str, request: Request) -> Dict[str, Any]:
        tracker: UsageTracker = request.app.state.tracker_runner.tracker
        if state == "off":
            emitted = tracker.handle_screen_off()
        elif state == "on":
            tracker.handle_screen_on()
            emitted = 0
        else:
            raise HTTPException(status_code=400, detail="state must be 'on' or 'off'")
        return {
            "screen_on": tracker.reconciler.screen_on,
            "sessions_emitted": emitted,
            "live_count": tracker.reconciler.live_count(),
        }

    @app.get("/api/sessions")
    def sessions(
        request: Request,
        date: Optional[str] = Query(
            default=None,
            description="Target date in YYYY-MM-DD format.",
        ),
    ) -> Dict[str, Any]:
        target_day = _parse_date(date)
        with database_connection(request.app.state.db_path) as conn:
            rows = fetch_sessions_for_day(conn, target_day)
        return {
            "date": target_day.strftime("%Y-%m-%d"),
            "sessions": [_row_to_session_payload(row) for row in rows],
        }

    @app.get("/api/summary")
    def summary(
        request: Request,
        date: Optional[str] = Query(
            default=None,
            description="Target date in YYYY-MM-DD format.",
        ),
    ) -> Dict[str, Any]:
        target_day = _parse_date(date)
        with database_connection(request.app.state.db_path) as conn:
            rows = fetch_summary_by_day(conn, target_day)
        return {
            "date": target_day.strftime("%Y-%m-%d"),
            "totals": {
                "seconds": sum(row["seconds"] or 0 for row in rows),
                "sessions": sum(row["sessions"] for row in rows),
            },
            "entries": [
                {
                    "package_name": row["package_name"],
                    "application_name": row["application_name"],
                    "sessions": row["sessions"],
                    "seconds": row["seconds"],
                }
                for row in rows
            ],
        }

    @app.get("/api/filter")
    def get_filter(request: Request) -> Dict[str, Any]:
        with database_connection(request.app.state.db_path) as conn:
            app_filter = load_filter_settings(conn)
        return _filter_payload(app_filter)

    @app.put("/api/filter")
    def put_filter(payload: FilterPayload, request: Request) -> Dict[str, Any]:
        app_filter = AppFilter(mode=payload.mode)
        for package_name in payload.apps:
            app_filter.add(package_name)
        with database_connection(request.app.state.db_path) as conn:
            changed = save_filter_settings(
                conn, app_filter, device_id=resolved_settings.device_id
            )
        response = _filter_payload(app_filter)
        response["changed"] = changed
        return response

    return app


def _parse_date(value: Optional[str]) -> datetime:
    if not value:
        return _start_of_day(datetime.now())
    try:
        parsed = datetime.strptime(value, "%Y-%m-%d")
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid date format") from exc
    return _start_of_day(parsed)


def _start_of_day(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def _filter_payload(app_filter: AppFilter) -> Dict[str, Any]:
    return {
        "mode": app_filter.mode.value,
        "apps": sorted(app_filter.packages),
        "app_count": app_filter.app_count,
    }


def _row_to_session_payload(row: Any) -> Dict[str, Any]:
    start = datetime.strptime(row["app_on"], DATETIME_FMT)
    end = datetime.strptime(row["app_off"], DATETIME_FMT)
    return {
        "id": row["id"],
        "package_name": row["package_name"],
        "application_name": row["application_name"],
        "is_system_app": bool(row["is_system_app"]),
        "app_on": start.isoformat(),
        "app_off": end.isoformat(),
        "duration_seconds": (end - start).total_seconds(),
    }
