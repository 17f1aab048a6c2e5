"""Configuration models and helpers for the activity monitor."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

APP_NAME = "produchive"


@dataclass(slots=True)
class MonitorSettings:
    """Runtime configuration for the monitoring loop."""

    poll_interval: timedelta = timedelta(seconds=1)
    flush_window: timedelta = timedelta(seconds=10)
    flush_grace: timedelta = timedelta(milliseconds=1500)
    self_names: tuple[str, ...] = (APP_NAME,)

    @property
    def interval_ms(self) -> int:
        return int(self.poll_interval.total_seconds() * 1000)

    @property
    def flush_window_ms(self) -> int:
        return int(self.flush_window.total_seconds() * 1000)

    @property
    def flush_grace_ms(self) -> int:
        return int(self.flush_grace.total_seconds() * 1000)

    @classmethod
    def from_intervals(
        cls,
        poll_seconds: float,
        flush_window_seconds: float | None = None,
        extra_self_names: tuple[str, ...] = (),
    ) -> "MonitorSettings":
        flush_window = flush_window_seconds if flush_window_seconds is not None else 10.0
        return cls(
            poll_interval=timedelta(seconds=poll_seconds),
            flush_window=timedelta(seconds=flush_window),
            self_names=(APP_NAME, *extra_self_names),
        )
