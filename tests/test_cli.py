from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path

from typer.testing import CliRunner

from app_usage.cli import app
from app_usage.db import database_connection, load_filter_settings
from app_usage.filters import FilterMode

runner = CliRunner()


def _ms(value: datetime) -> int:
    return int(value.timestamp() * 1000)


def _write_events(path: Path, day: datetime, *, screen_back_on: bool = True) -> Path:
    rows = [
        {"package_name": "com.mail", "application_label": "Mail", "kind": "MOVE_TO_FOREGROUND", "timestamp": _ms(day.replace(hour=9))},
        {"package_name": "com.mail", "application_label": "Mail", "kind": "MOVE_TO_BACKGROUND", "timestamp": _ms(day.replace(hour=9, minute=30))},
        {"package_name": "com.maps", "application_label": "Maps", "kind": 1, "timestamp": _ms(day.replace(hour=10))},
        {"package_name": "com.game", "application_label": "Game", "kind": 1, "timestamp": _ms(day.replace(hour=10))},
        {"package_name": "android", "kind": 16, "timestamp": _ms(day.replace(hour=10, minute=15))},
        {"package_name": "android", "kind": 15, "timestamp": _ms(day.replace(hour=10, minute=45))},
        {"package_name": "com.notes", "application_label": "Notes", "kind": 1, "timestamp": _ms(day.replace(hour=11))},
        {"package_name": "com.notes", "kind": 7, "timestamp": _ms(day.replace(hour=11, minute=5))},
    ]
    if not screen_back_on:
        rows = [row for row in rows if row["kind"] != 15]
    path.write_text("\n".join(json.dumps(row) for row in rows) + "\n", encoding="utf-8")
    return path


def test_filter_commands(tmp_path: Path) -> None:
    db_path = tmp_path / "usage.sqlite3"
    result = runner.invoke(app, ["filter", "add", "com.game", "com.ads", "--db", str(db_path)])
    assert result.exit_code == 0, result.output
    assert "Saved blacklist with 2 apps." in result.output

    result = runner.invoke(app, ["filter", "add", "com.game", "--db", str(db_path)])
    assert "unchanged" in result.output

    result = runner.invoke(app, ["filter", "remove", "com.ads", "--db", str(db_path)])
    assert result.exit_code == 0, result.output

    result = runner.invoke(app, ["filter", "show", "--db", str(db_path)])
    assert "Mode: blacklist" in result.output
    assert "com.game" in result.output
    assert "com.ads" not in result.output

    result = runner.invoke(app, ["filter", "mode", "whitelist", "--db", str(db_path)])
    assert result.exit_code == 0, result.output
    result = runner.invoke(app, ["filter", "set", "com.mail, com.maps", "--db", str(db_path)])
    assert result.exit_code == 0, result.output

    with database_connection(db_path) as conn:
        app_filter = load_filter_settings(conn)
    assert app_filter.mode is FilterMode.WHITELIST
    assert app_filter.packages == {"com.mail", "com.maps"}


def test_ingest_then_summary(tmp_path: Path) -> None:
    day = datetime(2026, 4, 7)
    db_path = tmp_path / "usage.sqlite3"
    events_path = _write_events(tmp_path / "events.jsonl", day)

    result = runner.invoke(app, ["filter", "add", "com.game", "--db", str(db_path)])
    assert result.exit_code == 0, result.output

    result = runner.invoke(app, ["ingest", str(events_path), "--db", str(db_path)])
    assert result.exit_code == 0, result.output
    assert "Processed 8 events; stored 3 sessions (0 still open)." in result.output

    result = runner.invoke(app, ["summary", "--date", "2026-04-07", "--db", str(db_path)])
    assert result.exit_code == 0, result.output
    assert "Screen time: 00:50:00" in result.output
    assert "Sessions:    3" in result.output
    assert "Mail" in result.output
    assert "Game" not in result.output


def test_ingest_without_finalize_leaves_sessions_open(tmp_path: Path) -> None:
    day = datetime(2026, 4, 7)
    db_path = tmp_path / "usage.sqlite3"
    events_path = _write_events(tmp_path / "events.jsonl", day)
    result = runner.invoke(app, ["ingest", str(events_path), "--no-finalize", "--db", str(db_path)])
    assert result.exit_code == 0, result.output
    assert "stored 3 sessions (1 still open)" in result.output


def test_ingest_ignores_apps_opened_while_screen_is_off(tmp_path: Path) -> None:
    day = datetime(2026, 4, 7)
    db_path = tmp_path / "usage.sqlite3"
    events_path = _write_events(tmp_path / "events.jsonl", day, screen_back_on=False)
    result = runner.invoke(app, ["ingest", str(events_path), "--db", str(db_path)])
    assert result.exit_code == 0, result.output
    assert "Processed 7 events; stored 3 sessions (0 still open)." in result.output

    result = runner.invoke(app, ["summary", "--date", "2026-04-07", "--db", str(db_path)])
    assert "Notes" not in result.output
    assert "Sessions:    3" in result.output


def test_summary_for_empty_day(tmp_path: Path) -> None:
    result = runner.invoke(app, ["summary", "--date", "2020-01-01", "--db", str(tmp_path / "usage.sqlite3")])
    assert result.exit_code == 0, result.output
    assert "No app usage recorded" in result.output


def test_summary_rejects_bad_date(tmp_path: Path) -> None:
    result = runner.invoke(app, ["summary", "--date", "07/04/2026", "--db", str(tmp_path / "usage.sqlite3")])
    assert result.exit_code != 0
