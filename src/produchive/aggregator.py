"""Per-tick sampling, de-duplication and duration accumulation."""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from .config import MonitorSettings
from .errors import ProbeTransientFailure, classify_probe_failure
from .events import ACTIVITY_UPDATE, SYSTEM_EVENT, NotificationHub
from .models import (
    Activity,
    Owner,
    SystemEvent,
    SystemEventType,
    coerce_duration,
    epoch_ms,
    format_timestamp,
)
from .normalization import classify_title, is_self
from .probe import WindowProbe
from .store import ActivityStore

logger = logging.getLogger(__name__)


class TickOutcome(str, Enum):
    ACCEPTED = "accepted"
    SKIPPED = "skipped"
    EXCLUDED = "excluded"
    STALE = "stale"
    SURFACE_GONE = "surface_gone"


class ActivityAggregator:
    """Turns probe samples into per-day activity records and notifications."""

    def __init__(
        self,
        probe: WindowProbe,
        store: ActivityStore,
        hub: NotificationHub,
        settings: MonitorSettings,
        *,
        clock: Callable[[], datetime] = datetime.now,
        surface_alive: Callable[[], bool] = lambda: True,
    ) -> None:
        self.probe = probe
        self.store = store
        self.hub = hub
        self.settings = settings
        self._clock = clock
        self._surface_alive = surface_alive
        self.last_activity: Optional[Activity] = None

    def reset(self) -> None:
        self.last_activity = None

    def tick(self, token: Optional[threading.Event] = None) -> TickOutcome:
        """Run one polling iteration.

        Raises :class:`ProbeTransientFailure` when the probe call fails; the
        caller is expected to stop the loop.
        """
        if not self._surface_alive():
            return TickOutcome.SURFACE_GONE

        try:
            sample = self.probe.probe()
        except Exception as exc:
            info = classify_probe_failure(exc)
            raise ProbeTransientFailure(info.summary, info) from exc

        if token is not None and token.is_set():
            return TickOutcome.STALE
        if sample is None:
            return TickOutcome.SKIPPED
        if is_self(sample.owner_name, self.settings.self_names):
            return TickOutcome.EXCLUDED

        now_ms = epoch_ms(self._clock())
        candidate = Activity(
            title=classify_title(sample.owner_name, sample.title),
            owner=Owner(name=sample.owner_name, path=sample.owner_path),
            timestamp=now_ms,
        )
        interval_ms = self.settings.interval_ms
        with self.store.lock:
            day_store = self.store.resolve()
            existing = day_store.find(candidate.title, candidate.owner.name)
            if existing is not None:
                existing.duration = coerce_duration(existing.duration) + interval_ms
                if not existing.timestamp_readable:
                    existing.timestamp_readable = format_timestamp(existing.timestamp)
                candidate.timestamp = existing.timestamp
                candidate.timestamp_readable = existing.timestamp_readable
                candidate.duration = existing.duration
                if self._in_flush_window(now_ms):
                    self.store.flush(day_store)
            else:
                candidate.duration = interval_ms
                candidate.timestamp_readable = format_timestamp(now_ms)
                day_store.append(
                    Activity(
                        title=candidate.title,
                        owner=Owner(name=candidate.owner.name, path=candidate.owner.path),
                        timestamp=candidate.timestamp,
                        duration=candidate.duration,
                        timestamp_readable=candidate.timestamp_readable,
                    )
                )
                logger.debug("New activity %s / %s", candidate.owner.name, candidate.title)
                self.store.flush(day_store)

        # Cancelled while the store work ran: leave last_activity and observers alone.
        if token is not None and token.is_set():
            return TickOutcome.STALE

        self._detect_changes(candidate, {"pid": sample.process_id, "path": sample.owner_path})
        self.last_activity = candidate
        self.hub.publish(ACTIVITY_UPDATE, candidate)
        return TickOutcome.ACCEPTED

    def _in_flush_window(self, now_ms: int) -> bool:
        return now_ms % self.settings.flush_window_ms < self.settings.flush_grace_ms

    def _detect_changes(self, candidate: Activity, details: dict) -> None:
        previous = self.last_activity
        previous_owner = previous.owner.name if previous else None
        previous_title = previous.title if previous else None
        if candidate.owner.name != previous_owner:
            self.hub.publish(
                SYSTEM_EVENT,
                SystemEvent(
                    type=SystemEventType.PROCESS_SWITCH,
                    content=f"Context switch: {previous_owner or '(none)'} -> {candidate.owner.name}",
                    timestamp=candidate.timestamp,
                    details=dict(details),
                ),
            )
        if candidate.title != previous_title:
            self.hub.publish(
                SYSTEM_EVENT,
                SystemEvent(
                    type=SystemEventType.WINDOW_FOCUS,
                    content=f"Focus changed: {candidate.title or '(untitled)'}",
                    timestamp=candidate.timestamp,
                    details=dict(details),
                ),
            )
