"""Start/stop state machine around the activity aggregator."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional

from .aggregator import ActivityAggregator, TickOutcome
from .config import MonitorSettings
from .errors import (
    MonitorError,
    PermissionDenied,
    ProbeTransientFailure,
    ProbeUnavailable,
    classify_probe_failure,
)
from .events import MONITOR_ERROR, MONITOR_STATE, NotificationHub
from .models import Activity, epoch_ms
from .permissions import PermissionChecker, PermissionStatus
from .probe import WindowProbe, default_probe
from .scheduler import RepeatingTask, TaskFactory, threaded_task_factory
from .store import ActivityStore

logger = logging.getLogger(__name__)


class MonitorState(str, Enum):
    IDLE = "idle"
    STARTING = "starting"
    RUNNING = "running"
    STOPPED_ON_ERROR = "stopped_on_error"


@dataclass(slots=True)
class StartResult:
    """Outcome of :meth:`MonitorController.start`; truthy when monitoring runs."""

    started: bool
    reason: Optional[str] = None
    message: Optional[str] = None
    remediation: Optional[str] = None
    likely_permission: bool = False

    def __bool__(self) -> bool:
        return self.started

    @classmethod
    def from_error(cls, error: MonitorError) -> "StartResult":
        info = error.info
        return cls(
            started=False,
            reason=error.reason,
            message=error.message,
            remediation=info.remediation if info else None,
            likely_permission=info.likely_permission if info else False,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "started": self.started,
            "reason": self.reason,
            "message": self.message,
            "remediation": self.remediation,
            "likely_permission": self.likely_permission,
        }


@dataclass(slots=True)
class MonitorFailure:
    """Published once when a running monitor stops because of an error."""

    reason: str
    message: str
    remediation: Optional[str] = None
    likely_permission: bool = False
    timestamp: int = field(default_factory=lambda: epoch_ms(datetime.now()))

    def to_dict(self) -> dict[str, Any]:
        return {
            "reason": self.reason,
            "message": self.message,
            "remediation": self.remediation,
            "likely_permission": self.likely_permission,
            "timestamp": self.timestamp,
        }


class MonitorController:
    """The only component callers drive directly: start, stop, dispose."""

    def __init__(
        self,
        aggregator: ActivityAggregator,
        hub: NotificationHub,
        *,
        permissions: Optional[PermissionChecker] = None,
        task_factory: TaskFactory = threaded_task_factory,
    ) -> None:
        self.aggregator = aggregator
        self.hub = hub
        self.permissions = permissions or PermissionChecker()
        self._task_factory = task_factory
        self._task: Optional[RepeatingTask] = None
        self._state = MonitorState.IDLE
        self._last_failure: Optional[MonitorFailure] = None
        self._lock = threading.RLock()

    @property
    def state(self) -> MonitorState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is MonitorState.RUNNING

    @property
    def last_activity(self) -> Optional[Activity]:
        return self.aggregator.last_activity

    @property
    def last_failure(self) -> Optional[MonitorFailure]:
        return self._last_failure

    @property
    def store(self) -> ActivityStore:
        return self.aggregator.store

    def start(self) -> StartResult:
        with self._lock:
            if self._state is MonitorState.RUNNING:
                return StartResult(started=True)
            self._set_state(MonitorState.STARTING)

            status = self.permissions.check()
            if status is PermissionStatus.DENIED:
                self.permissions.request_once()
                error = PermissionDenied(
                    "Window access has not been granted to this application."
                )
                logger.warning("Monitoring not started: %s", error.message)
                self._set_state(MonitorState.IDLE)
                return StartResult.from_error(error)

            try:
                self.aggregator.probe.probe()
            except Exception as exc:
                info = classify_probe_failure(exc)
                error = ProbeUnavailable(info.summary, info)
                logger.warning("Canary probe failed: %s", exc)
                self._set_state(MonitorState.IDLE)
                return StartResult.from_error(error)

            self._last_failure = None
            task = self._task_factory(self.aggregator.settings.poll_interval, self._run_tick)
            self._task = task
            self._set_state(MonitorState.RUNNING)
            task.start()
            logger.info(
                "Monitoring started (interval %d ms).", self.aggregator.settings.interval_ms
            )
            return StartResult(started=True)

    def stop(self) -> None:
        with self._lock:
            task = self._task
            self._task = None
            if task is not None:
                task.token.set()
            if self._state in (MonitorState.IDLE, MonitorState.STOPPED_ON_ERROR):
                return
            self._set_state(MonitorState.IDLE)
        if task is not None:
            task.cancel()
        logger.info("Monitoring stopped.")

    def dispose(self) -> None:
        self.stop()
        self.hub.clear()

    def _run_tick(self, token: threading.Event) -> None:
        if token.is_set():
            return
        try:
            outcome = self.aggregator.tick(token)
        except ProbeTransientFailure as exc:
            self._fail(token, exc)
            return
        except Exception as exc:
            logger.exception("Unexpected error during monitoring tick.")
            self._fail(token, MonitorError(f"Unexpected error: {exc}"))
            return

        if outcome is TickOutcome.SURFACE_GONE:
            logger.info("Reporting surface is gone; stopping monitor.")
            with self._lock:
                if self._task is None or self._task.token is not token:
                    return
            self.stop()

    def _fail(self, token: threading.Event, error: MonitorError) -> None:
        with self._lock:
            task = self._task
            if task is None or task.token is not token or token.is_set():
                return
            self._task = None
            task.cancel()
            info = error.info
            failure = MonitorFailure(
                reason=error.reason,
                message=error.message,
                remediation=info.remediation if info else None,
                likely_permission=info.likely_permission if info else False,
            )
            self._last_failure = failure
            self._set_state(MonitorState.STOPPED_ON_ERROR)
        logger.error("Monitoring stopped after a probe failure: %s", error.message)
        self.hub.publish(MONITOR_ERROR, failure)

    def _set_state(self, state: MonitorState) -> None:
        if state is self._state:
            return
        self._state = state
        self.hub.publish(MONITOR_STATE, state)


def build_controller(
    data_dir: Path,
    settings: Optional[MonitorSettings] = None,
    *,
    probe: Optional[WindowProbe] = None,
    hub: Optional[NotificationHub] = None,
    surface_alive: Callable[[], bool] = lambda: True,
) -> MonitorController:
    """Wire the default probe, store and scheduler into a controller."""
    settings = settings or MonitorSettings()
    hub = hub or NotificationHub()
    aggregator = ActivityAggregator(
        probe or default_probe(),
        ActivityStore(data_dir),
        hub,
        settings,
        surface_alive=surface_alive,
    )
    return MonitorController(aggregator, hub)
