"""In-process publish/subscribe for monitor notifications."""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from typing import Any, Callable

logger = logging.getLogger(__name__)

ACTIVITY_UPDATE = "activity-update"
SYSTEM_EVENT = "system-event"
MONITOR_ERROR = "monitor-error"
MONITOR_STATE = "monitor-state"

Listener = Callable[[Any], None]


class NotificationHub:
    """Fan out notifications to observers; a failing observer never breaks the loop."""

    def __init__(self) -> None:
        self._listeners: defaultdict[str, list[Listener]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, topic: str, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners[topic].append(listener)

        def unsubscribe() -> None:
            with self._lock:
                try:
                    self._listeners[topic].remove(listener)
                except ValueError:
                    pass

        return unsubscribe

    def publish(self, topic: str, payload: Any) -> None:
        with self._lock:
            listeners = list(self._listeners.get(topic, ()))
        for listener in listeners:
            try:
                listener(payload)
            except Exception:
                logger.exception("Listener for %s raised; continuing.", topic)

    def clear(self) -> None:
        with self._lock:
            self._listeners.clear()
