"""Command-line interface for the app usage tracker."""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import typer

from .config import TrackerSettings
from .db import database_connection, load_filter_settings, save_filter_settings
from .filters import AppFilter, FilterMode, parse_app_list
from .paths import get_db_path, get_events_path, get_log_path

app = typer.Typer(help="Reconstructs app usage sessions from OS usage events.")
filter_app = typer.Typer(help="Manage the tracked-app blacklist/whitelist.")
app.add_typer(filter_app, name="filter")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


@app.callback(no_args_is_help=True)
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logs.")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
    )


@app.command()
def track(
    events_path: Optional[Path] = typer.Option(
        None,
        "--events",
        path_type=Path,
        help="JSON-lines file the OS usage events are exported to.",
    ),
    db_path: Optional[Path] = typer.Option(
        None,
        "--db",
        path_type=Path,
        help="Location of the app usage SQLite database.",
    ),
    check_seconds: float = typer.Option(
        10.0,
        "--interval",
        min=10.0,
        help="Polling interval in seconds.",
    ),
    min_session_seconds: float = typer.Option(
        1.0,
        "--min-session",
        min=0.0,
        help="Sessions shorter than this many seconds are not stored.",
    ),
    device_id: str = typer.Option("", "--device-id", help="Device identifier stored with sessions."),
) -> None:
    """Poll the event export until interrupted."""
    from .sources import JsonLinesEventSource
    from .tracker import UsageTracker

    _add_file_log_handler(get_log_path())
    settings = TrackerSettings.from_intervals(
        check_seconds=check_seconds,
        min_session_seconds=min_session_seconds,
        device_id=device_id,
    )
    tracker = UsageTracker(
        db_path=db_path or get_db_path(),
        settings=settings,
        source=JsonLinesEventSource(events_path or get_events_path()),
    )
    tracker.run_forever()


@app.command()
def ingest(
    events_path: Path = typer.Argument(..., path_type=Path, exists=True, dir_okay=False),
    db_path: Optional[Path] = typer.Option(
        None,
        "--db",
        path_type=Path,
        help="Location of the app usage SQLite database.",
    ),
    min_session_seconds: float = typer.Option(
        1.0,
        "--min-session",
        min=0.0,
        help="Sessions shorter than this many seconds are not stored.",
    ),
    finalize: bool = typer.Option(
        True,
        "--finalize/--no-finalize",
        help="Close sessions still open at the last event.",
    ),
    device_id: str = typer.Option("", "--device-id", help="Device identifier stored with sessions."),
) -> None:
    """Reconcile a complete event export once and store the sessions."""
    from .sources import JsonLinesEventSource
    from .tracker import UsageTracker

    settings = TrackerSettings.from_intervals(
        check_seconds=10.0,
        min_session_seconds=min_session_seconds,
        device_id=device_id,
    )
    events = JsonLinesEventSource(events_path).read_all()
    tracker = UsageTracker(db_path=db_path or get_db_path(), settings=settings, source=None)
    try:
        stored = tracker.ingest(events, finalize=finalize)
        live = tracker.reconciler.live_count()
    finally:
        tracker.close()
    typer.echo(f"Processed {len(events)} events; stored {stored} sessions ({live} still open).")


@app.command()
def summary(
    date: Optional[str] = typer.Option(
        None,
        "--date",
        help="Date (YYYY-MM-DD) to summarize. Defaults to today.",
    ),
    db_path: Optional[Path] = typer.Option(
        None,
        "--db",
        path_type=Path,
        help="Location of the app usage SQLite database.",
    ),
) -> None:
    """Print a high-level summary for a specific day."""
    from .reporting import SummaryPrinter

    try:
        target = datetime.strptime(date, "%Y-%m-%d") if date else datetime.now()
    except ValueError as exc:
        raise typer.BadParameter("Use the YYYY-MM-DD format.", param_hint="--date") from exc
    summary_printer = SummaryPrinter(db_path=db_path or get_db_path())
    summary_printer.print_daily_summary(target)


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind the service."),
    port: int = typer.Option(
        8765, "--port", min=1, max=65535, help="TCP port for the service."
    ),
    db_path: Optional[Path] = typer.Option(
        None, "--db", path_type=Path, help="Location of the app usage SQLite database."
    ),
    events_path: Optional[Path] = typer.Option(
        None,
        "--events",
        path_type=Path,
        help="JSON-lines event export to poll in the background.",
    ),
    check_seconds: float = typer.Option(
        10.0,
        "--interval",
        min=10.0,
        help="Polling interval in seconds.",
    ),
    min_session_seconds: float = typer.Option(
        1.0,
        "--min-session",
        min=0.0,
        help="Sessions shorter than this many seconds are not stored.",
    ),
) -> None:
    """Start the local API with the background tracker."""
    from .server_runner import run_service

    settings = TrackerSettings.from_intervals(
        check_seconds=check_seconds,
        min_session_seconds=min_session_seconds,
    )
    run_service(
        host=host,
        port=port,
        db_path=db_path or get_db_path(),
        settings=settings,
        events_path=events_path,
    )


@filter_app.command("show")
def filter_show(
    db_path: Optional[Path] = typer.Option(None, "--db", path_type=Path),
) -> None:
    """Print the current filter mode and app list."""
    with database_connection(db_path or get_db_path()) as conn:
        app_filter = load_filter_settings(conn)
    typer.echo(f"Mode: {app_filter.mode.value}")
    typer.echo(f"Apps ({app_filter.app_count}):")
    for package_name in sorted(app_filter.packages):
        typer.echo(f"  {package_name}")


@filter_app.command("mode")
def filter_mode(
    mode: FilterMode = typer.Argument(..., case_sensitive=False),
    db_path: Optional[Path] = typer.Option(None, "--db", path_type=Path),
) -> None:
    """Switch between blacklist and whitelist mode."""
    with database_connection(db_path or get_db_path()) as conn:
        app_filter = load_filter_settings(conn)
        app_filter.mode = mode
        _save_and_report(conn, app_filter)


@filter_app.command("add")
def filter_add(
    packages: List[str] = typer.Argument(...),
    db_path: Optional[Path] = typer.Option(None, "--db", path_type=Path),
) -> None:
    """Add packages to the app list."""
    with database_connection(db_path or get_db_path()) as conn:
        app_filter = load_filter_settings(conn)
        for package_name in packages:
            app_filter.add(package_name)
        _save_and_report(conn, app_filter)


@filter_app.command("remove")
def filter_remove(
    packages: List[str] = typer.Argument(...),
    db_path: Optional[Path] = typer.Option(None, "--db", path_type=Path),
) -> None:
    """Remove packages from the app list."""
    with database_connection(db_path or get_db_path()) as conn:
        app_filter = load_filter_settings(conn)
        for package_name in packages:
            app_filter.remove(package_name)
        _save_and_report(conn, app_filter)


@filter_app.command("set")
def filter_set(
    app_list: str = typer.Argument(..., help="Comma separated package names."),
    db_path: Optional[Path] = typer.Option(None, "--db", path_type=Path),
) -> None:
    """Replace the app list with a comma separated set of packages."""
    with database_connection(db_path or get_db_path()) as conn:
        app_filter = load_filter_settings(conn)
        app_filter.packages = parse_app_list(app_list)
        _save_and_report(conn, app_filter)


def _save_and_report(conn: sqlite3.Connection, app_filter: AppFilter) -> None:
    if save_filter_settings(conn, app_filter):
        typer.echo(f"Saved {app_filter.mode.value} with {app_filter.app_count} apps.")
    else:
        typer.echo("Filter settings unchanged.")


def _add_file_log_handler(path: Path) -> None:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logging.getLogger().addHandler(handler)
