"""Configuration models and helpers for the usage tracker."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

MIN_CHECK_INTERVAL = timedelta(seconds=10)


@dataclass(slots=True)
class TrackerSettings:
    """Runtime configuration for the usage tracker."""

    check_interval: timedelta = timedelta(seconds=10)
    min_session_duration: timedelta = timedelta(seconds=1)
    first_run_lookback: timedelta = timedelta(minutes=5)
    max_lookback: timedelta = timedelta(hours=1)
    min_window: timedelta = timedelta(seconds=1)
    device_id: str = ""

    @property
    def min_session_duration_ms(self) -> int:
        return to_ms(self.min_session_duration)

    @classmethod
    def from_intervals(
        cls,
        check_seconds: float,
        min_session_seconds: float = 1.0,
        max_lookback_minutes: float | None = None,
        device_id: str = "",
    ) -> "TrackerSettings":
        check = max(timedelta(seconds=check_seconds), MIN_CHECK_INTERVAL)
        lookback = (
            timedelta(minutes=max_lookback_minutes)
            if max_lookback_minutes is not None
            else timedelta(hours=1)
        )
        return cls(
            check_interval=check,
            min_session_duration=timedelta(seconds=min_session_seconds),
            max_lookback=lookback,
            device_id=device_id,
        )


def to_ms(value: timedelta) -> int:
    return int(value.total_seconds() * 1000)
