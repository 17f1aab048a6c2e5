"""Domain models for recorded activity."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


def epoch_ms(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


def format_timestamp(timestamp_ms: int) -> str:
    """Render an epoch-ms timestamp in the current locale's date/time format."""
    try:
        moment = datetime.fromtimestamp(timestamp_ms / 1000)
    except (OverflowError, OSError, ValueError):
        return ""
    return moment.strftime("%x, %X")


def coerce_int(value: Any) -> int:
    """Return ``value`` as an int, or 0 when it is not a finite number."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    if isinstance(value, float) and not math.isfinite(value):
        return 0
    return int(value)


def coerce_duration(value: Any) -> int:
    """Return ``value`` as a millisecond count, or 0 when it is not numeric."""
    return coerce_int(value)


@dataclass(slots=True)
class Owner:
    """The application that owns a window."""

    name: str
    path: str = ""


@dataclass(slots=True)
class WindowSample:
    """A single probe result: the focused window and its process."""

    title: str
    owner_name: str
    owner_path: str = ""
    process_id: Optional[int] = None


@dataclass(slots=True)
class Activity:
    """Cumulative time spent on one (title, application) pair during a day."""

    title: str
    owner: Owner
    timestamp: int
    duration: int = 0
    timestamp_readable: Optional[str] = None

    @property
    def key(self) -> tuple[str, str]:
        return self.title, self.owner.name

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "title": self.title,
            "owner": {"name": self.owner.name, "path": self.owner.path},
            "timestamp": self.timestamp,
            "duration": self.duration,
        }
        if self.timestamp_readable is not None:
            payload["timestampReadable"] = self.timestamp_readable
        return payload

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "Activity":
        owner = payload.get("owner")
        if isinstance(owner, str):
            owner = {"name": owner}
        elif not isinstance(owner, dict):
            owner = {}
        readable = payload.get("timestampReadable")
        return cls(
            title=str(payload.get("title", "")),
            owner=Owner(name=str(owner.get("name", "")), path=str(owner.get("path", ""))),
            timestamp=coerce_int(payload.get("timestamp")),
            duration=coerce_duration(payload.get("duration")),
            timestamp_readable=readable if isinstance(readable, str) else None,
        )


class SystemEventType(str, Enum):
    PROCESS_SWITCH = "SYS_PROCESS_SWITCH"
    WINDOW_FOCUS = "SYS_WINDOW_FOCUS"


@dataclass(slots=True)
class SystemEvent:
    """A context switch or focus change detected between two ticks."""

    type: SystemEventType
    content: str
    timestamp: int
    details: Optional[dict[str, Any]] = field(default=None)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "type": self.type.value,
            "content": self.content,
            "timestamp": self.timestamp,
        }
        if self.details is not None:
            payload["details"] = dict(self.details)
        return payload
