"""SQLite database layer for app usage sessions."""

from __future__ import annotations

import sqlite3
import time
from contextlib import contextmanager
from datetime import datetime, timedelta
from pathlib import Path
from typing import Iterator, Optional

from .filters import AppFilter
from .models import FinalizedSession


DATETIME_FMT = "%Y-%m-%d %H:%M:%S.%f"
DEFAULT_CATEGORY = "not_registered"
CHECKPOINT_KEY = "last_check_time"


def open_database(path: Path, *, check_same_thread: bool = True) -> sqlite3.Connection:
    """Open (and initialize) the SQLite database."""
    conn = sqlite3.connect(
        path,
        isolation_level=None,
        check_same_thread=check_same_thread,
    )
    conn.row_factory = sqlite3.Row
    initialize_schema(conn)
    return conn


@contextmanager
def database_connection(
    path: Path, *, check_same_thread: bool = True
) -> Iterator[sqlite3.Connection]:
    conn = open_database(path, check_same_thread=check_same_thread)
    try:
        yield conn
    finally:
        conn.close()


def initialize_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS app_usage (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            timestamp REAL NOT NULL DEFAULT 0,
            device_id TEXT NOT NULL DEFAULT '',
            package_name TEXT NOT NULL DEFAULT '',
            category TEXT NOT NULL DEFAULT '',
            application_name TEXT NOT NULL DEFAULT '',
            is_system_app INTEGER NOT NULL DEFAULT 0,
            app_on TEXT NOT NULL DEFAULT '',
            app_off TEXT NOT NULL DEFAULT '',
            app_usage REAL NOT NULL DEFAULT 0
        );

        CREATE INDEX IF NOT EXISTS idx_app_usage_app_on
            ON app_usage(app_on);

        CREATE TABLE IF NOT EXISTS app_filter_settings (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            timestamp REAL NOT NULL DEFAULT 0,
            device_id TEXT NOT NULL DEFAULT '',
            filter_mode TEXT NOT NULL DEFAULT 'blacklist',
            app_list TEXT NOT NULL DEFAULT '',
            app_count INTEGER NOT NULL DEFAULT 0,
            last_modified INTEGER NOT NULL DEFAULT 0
        );

        CREATE TABLE IF NOT EXISTS tracker_state (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        );
        """
    )


def insert_session(
    conn: sqlite3.Connection,
    session: FinalizedSession,
    *,
    device_id: str = "",
    category: str = DEFAULT_CATEGORY,
) -> int:
    cur = conn.execute(
        """
        INSERT INTO app_usage (
            timestamp,
            device_id,
            package_name,
            category,
            application_name,
            is_system_app,
            app_on,
            app_off,
            app_usage
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            _now_ms(),
            device_id,
            session.package_name,
            category,
            session.application_label or session.package_name,
            1 if session.is_system_app else 0,
            session.app_on.strftime(DATETIME_FMT),
            session.app_off.strftime(DATETIME_FMT),
            session.duration_ms // 1000,
        ),
    )
    return int(cur.lastrowid)


def fetch_sessions_for_day(
    conn: sqlite3.Connection, day: datetime
) -> list[sqlite3.Row]:
    """Fetch individual sessions that started on the provided day."""
    start_iso, end_iso = _day_bounds(day)
    return list(
        conn.execute(
            """
            SELECT
                id,
                device_id,
                package_name,
                category,
                application_name,
                is_system_app,
                app_on,
                app_off,
                app_usage
            FROM app_usage
            WHERE app_on >= ? AND app_on < ?
            ORDER BY app_on, id;
            """,
            (start_iso, end_iso),
        )
    )


def fetch_summary_by_day(
    conn: sqlite3.Connection, day: datetime
) -> list[sqlite3.Row]:
    """Return total seconds and session count per application for a given day."""
    start_iso, end_iso = _day_bounds(day)
    return list(
        conn.execute(
            """
            SELECT
                package_name,
                application_name,
                COUNT(*) AS sessions,
                SUM(app_usage) AS seconds
            FROM app_usage
            WHERE app_on >= ? AND app_on < ?
            GROUP BY package_name, application_name
            ORDER BY seconds DESC, package_name;
            """,
            (start_iso, end_iso),
        )
    )


def load_filter_settings(conn: sqlite3.Connection) -> AppFilter:
    """Return the most recently saved filter, or an empty blacklist."""
    row = conn.execute(
        """
        SELECT filter_mode, app_list
        FROM app_filter_settings
        ORDER BY id DESC
        LIMIT 1;
        """
    ).fetchone()
    if row is None:
        return AppFilter()
    return AppFilter.from_string(row["filter_mode"], row["app_list"])


def save_filter_settings(
    conn: sqlite3.Connection, app_filter: AppFilter, *, device_id: str = ""
) -> bool:
    """Append a settings row when mode or list changed; return whether one was written."""
    row = conn.execute(
        "SELECT filter_mode, app_list FROM app_filter_settings ORDER BY id DESC LIMIT 1;"
    ).fetchone()
    app_list = app_filter.as_string()
    if row is not None and row["filter_mode"] == app_filter.mode.value and row["app_list"] == app_list:
        return False
    now = _now_ms()
    conn.execute(
        """
        INSERT INTO app_filter_settings (
            timestamp,
            device_id,
            filter_mode,
            app_list,
            app_count,
            last_modified
        ) VALUES (?, ?, ?, ?, ?, ?)
        """,
        (now, device_id, app_filter.mode.value, app_list, app_filter.app_count, now),
    )
    return True


def get_checkpoint(conn: sqlite3.Connection) -> Optional[int]:
    row = conn.execute(
        "SELECT value FROM tracker_state WHERE key = ?", (CHECKPOINT_KEY,)
    ).fetchone()
    if row is None:
        return None
    return int(row["value"])


def set_checkpoint(conn: sqlite3.Connection, value: int) -> None:
    conn.execute(
        """
        INSERT INTO tracker_state (key, value) VALUES (?, ?)
        ON CONFLICT(key) DO UPDATE SET value = excluded.value
        """,
        (CHECKPOINT_KEY, str(int(value))),
    )


def _day_bounds(day: datetime) -> tuple[str, str]:
    start = day.replace(hour=0, minute=0, second=0, microsecond=0)
    end = start + timedelta(days=1)
    return start.strftime(DATETIME_FMT), end.strftime(DATETIME_FMT)


def _now_ms() -> int:
    return int(time.time() * 1000)

