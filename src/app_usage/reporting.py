"""Simple reporting utilities for CLI output."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Iterable

from .db import database_connection, fetch_summary_by_day


class SummaryPrinter:
    """Render human-readable summaries in the console."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)

    def print_daily_summary(self, day: datetime, limit: int = 10) -> None:
        with database_connection(self.db_path) as conn:
            rows = fetch_summary_by_day(conn, day)
        if not rows:
            print("No app usage recorded for the selected day.")
            return

        total_seconds = sum(row["seconds"] or 0 for row in rows)
        total_sessions = sum(row["sessions"] for row in rows)

        print(f"Summary for {day.strftime('%Y-%m-%d')}")
        print("-" * 40)
        print(f"Screen time: {format_duration(total_seconds)}")
        print(f"Sessions:    {total_sessions}")
        print()

        print("Top apps:")
        for label, sessions, seconds in top_apps(rows)[:limit]:
            print(f"  {label[:30]:<30} {sessions:>4}x {format_duration(seconds)}")


def top_apps(rows: Iterable[dict]) -> list[tuple[str, int, float]]:
    entries = [
        (
            row["application_name"] or row["package_name"] or "Unknown",
            int(row["sessions"]),
            float(row["seconds"] or 0),
        )
        for row in rows
    ]
    return sorted(entries, key=lambda item: item[2], reverse=True)


def format_duration(seconds: float) -> str:
    total_seconds = int(round(seconds))
    hours, remainder = divmod(total_seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"
