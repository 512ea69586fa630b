from __future__ import annotations

import time
from datetime import datetime
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from app_usage.config import TrackerSettings
from app_usage.models import EventKind, RawEvent
from app_usage.webapp import create_app


@pytest.fixture
def client(tmp_path: Path) -> TestClient:
    app = create_app(db_path=tmp_path / "usage.sqlite3", settings=TrackerSettings())
    return TestClient(app)


def _open_session(client: TestClient, package: str, started: int) -> None:
    tracker = client.app.state.tracker_runner.tracker
    tracker.reconciler.process_batch(
        [RawEvent(package, package.title(), False, EventKind.MOVE_TO_FOREGROUND, started)]
    )


def test_status_reports_live_sessions(client: TestClient) -> None:
    _open_session(client, "com.mail", 1_000)
    payload = client.get("/api/status").json()
    assert payload["tracker_running"] is False
    assert payload["screen_on"] is True
    assert payload["live_count"] == 1
    assert payload["live_sessions"][0]["package_name"] == "com.mail"
    assert payload["check_seconds"] == 10.0


def test_screen_off_notification_finalizes_sessions(client: TestClient) -> None:
    started = int(time.time() * 1000) - 120_000
    _open_session(client, "com.mail", started)

    response = client.post("/api/screen/off")
    assert response.status_code == 200
    assert response.json() == {"screen_on": False, "sessions_emitted": 1, "live_count": 0}

    again = client.post("/api/screen/off").json()
    assert again["sessions_emitted"] == 0

    assert client.post("/api/screen/on").json()["screen_on"] is True
    assert client.post("/api/screen/sideways").status_code == 400

    today = datetime.fromtimestamp(started / 1000).strftime("%Y-%m-%d")
    sessions = client.get("/api/sessions", params={"date": today}).json()["sessions"]
    assert [s["package_name"] for s in sessions] == ["com.mail"]
    assert sessions[0]["duration_seconds"] >= 119

    summary = client.get("/api/summary", params={"date": today}).json()
    assert summary["totals"]["sessions"] == 1
    assert summary["entries"][0]["application_name"] == "Com.Mail"


def test_filter_round_trip(client: TestClient) -> None:
    assert client.get("/api/filter").json() == {"mode": "blacklist", "apps": [], "app_count": 0}

    response = client.put("/api/filter", json={"mode": "whitelist", "apps": ["com.b", " com.a "]})
    assert response.status_code == 200
    assert response.json() == {
        "mode": "whitelist",
        "apps": ["com.a", "com.b"],
        "app_count": 2,
        "changed": True,
    }
    assert client.put("/api/filter", json={"mode": "whitelist", "apps": ["com.a", "com.b"]}).json()["changed"] is False
    assert client.put("/api/filter", json={"mode": "greylist"}).status_code == 422


def test_invalid_date_is_rejected(client: TestClient) -> None:
    assert client.get("/api/sessions", params={"date": "yesterday"}).status_code == 400
