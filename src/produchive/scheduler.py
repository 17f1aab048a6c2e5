"""Repeating-task scheduling independent of any particular timer API."""

from __future__ import annotations

import threading
from datetime import timedelta
from typing import Callable, Optional, Protocol

TickCallback = Callable[[threading.Event], None]


class RepeatingTask(Protocol):
    def start(self) -> None: ...

    def cancel(self) -> None: ...

    @property
    def token(self) -> threading.Event:
        """Set once the task has been cancelled."""


class ThreadedRepeatingTask:
    """Runs ``callback`` on a daemon thread, waiting ``interval`` between runs.

    Runs never overlap: a slow callback delays the next one.
    """

    def __init__(
        self,
        interval: timedelta,
        callback: TickCallback,
        *,
        name: str = "produchive-monitor",
    ) -> None:
        self._interval = interval.total_seconds()
        self._callback = callback
        self._name = name
        self._token = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def token(self) -> threading.Event:
        return self._token

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
        self._thread.start()

    def cancel(self, timeout: float = 10.0) -> None:
        self._token.set()
        thread = self._thread
        if thread and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=timeout)

    def _run(self) -> None:
        while not self._token.is_set():
            self._callback(self._token)
            # Sleep in an interruptible manner.
            self._token.wait(self._interval)


TaskFactory = Callable[[timedelta, TickCallback], RepeatingTask]


def threaded_task_factory(interval: timedelta, callback: TickCallback) -> RepeatingTask:
    return ThreadedRepeatingTask(interval, callback)
