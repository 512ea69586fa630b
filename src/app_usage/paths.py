"""Helpers for locating application directories."""

from __future__ import annotations

from pathlib import Path

from platformdirs import PlatformDirs


APP_NAME = "AppUsage"
APP_AUTHOR = "AppUsage"


def get_data_dir() -> Path:
    """Return the base directory for persistent data."""
    dirs = PlatformDirs(appname=APP_NAME, appauthor=APP_AUTHOR, roaming=True)
    path = Path(dirs.user_data_path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_db_path() -> Path:
    return get_data_dir() / "app_usage.sqlite3"


def get_log_path() -> Path:
    return get_data_dir() / "tracker.log"


def get_events_path() -> Path:
    """Default location of the exported OS usage events (JSON lines)."""
    return get_data_dir() / "usage_events.jsonl"
