from __future__ import annotations

import threading
from datetime import datetime, timedelta

import pytest

from produchive.aggregator import ActivityAggregator
from produchive.config import MonitorSettings
from produchive.events import ACTIVITY_UPDATE, MONITOR_ERROR, SYSTEM_EVENT, NotificationHub
from produchive.models import WindowSample
from produchive.monitor import MonitorController
from produchive.permissions import PermissionChecker
from produchive.store import ActivityStore


def sample(title: str, owner: str, pid: int = 100, path: str = "") -> WindowSample:
    return WindowSample(title=title, owner_name=owner, owner_path=path or f"/usr/bin/{owner}", process_id=pid)


class FakeClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeProbe:
    """Returns queued results in order, then ``default`` forever."""

    def __init__(self, *results, default=None) -> None:
        self.results = list(results)
        self.default = default
        self.calls = 0

    def push(self, *results) -> None:
        self.results.extend(results)

    def probe(self):
        self.calls += 1
        result = self.results.pop(0) if self.results else self.default
        if isinstance(result, BaseException):
            raise result
        return result


class ManualTask:
    def __init__(self, interval: timedelta, callback) -> None:
        self.interval = interval
        self.callback = callback
        self.token = threading.Event()
        self.started = False

    def start(self) -> None:
        self.started = True

    def cancel(self, timeout: float = 0) -> None:
        self.token.set()

    def run_once(self) -> None:
        if not self.token.is_set():
            self.callback(self.token)


class FixedPermissions(PermissionChecker):
    def __init__(self, status) -> None:
        super().__init__(platform="darwin")
        self.status = status
        self.requests = 0
        self.opened = 0

    def check(self):
        return self.status

    def request_once(self) -> bool:
        self.requests += 1
        if self._requested:
            return False
        self._requested = True
        self.opened += 1
        return True


class Recorder:
    def __init__(self, hub: NotificationHub) -> None:
        self.activities = []
        self.events = []
        self.failures = []
        hub.subscribe(ACTIVITY_UPDATE, self.activities.append)
        hub.subscribe(SYSTEM_EVENT, self.events.append)
        hub.subscribe(MONITOR_ERROR, self.failures.append)


@pytest.fixture
def clock() -> FakeClock:
    # 09:00:03 local: the epoch-ms value sits outside the flush window.
    return FakeClock(datetime(2026, 3, 10, 9, 0, 3))


@pytest.fixture
def hub() -> NotificationHub:
    return NotificationHub()


@pytest.fixture
def recorder(hub: NotificationHub) -> Recorder:
    return Recorder(hub)


@pytest.fixture
def settings() -> MonitorSettings:
    return MonitorSettings()


@pytest.fixture
def store(tmp_path, clock) -> ActivityStore:
    return ActivityStore(tmp_path / "data", clock=clock)


@pytest.fixture
def probe() -> FakeProbe:
    return FakeProbe()


@pytest.fixture
def aggregator(probe, store, hub, settings, clock) -> ActivityAggregator:
    return ActivityAggregator(probe, store, hub, settings, clock=clock)


@pytest.fixture
def tasks() -> list:
    return []


@pytest.fixture
def controller(aggregator, hub, tasks) -> MonitorController:
    def factory(interval, callback):
        task = ManualTask(interval, callback)
        tasks.append(task)
        return task

    return MonitorController(
        aggregator,
        hub,
        permissions=PermissionChecker(platform="linux"),
        task_factory=factory,
    )
