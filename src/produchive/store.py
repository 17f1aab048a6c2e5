"""JSON document store holding one activity log per calendar day."""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Iterable, Optional

from .errors import PersistenceFailure
from .models import Activity
from .paths import activity_file_name

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1
DAY_KEY_FMT = "%Y-%m-%d"


def day_key(moment: datetime) -> str:
    return moment.strftime(DAY_KEY_FMT)


def parse_day_key(value: str) -> str:
    """Validate a ``YYYY-MM-DD`` string and return it in canonical form."""
    try:
        parsed = datetime.strptime(value, DAY_KEY_FMT)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid date {value!r}; expected YYYY-MM-DD") from exc
    return day_key(parsed)


def default_document() -> dict[str, Any]:
    return {"version": SCHEMA_VERSION, "activities": [], "goals": []}


def migrate_document(raw: Any) -> tuple[dict[str, Any], bool]:
    """Backfill missing fields. Returns the document and whether it changed."""
    if not isinstance(raw, dict):
        return default_document(), True
    document = dict(raw)
    changed = False
    if not isinstance(document.get("activities"), list):
        document["activities"] = []
        changed = True
    if not isinstance(document.get("goals"), list):
        document["goals"] = []
        changed = True
    if document.get("version") != SCHEMA_VERSION:
        document["version"] = SCHEMA_VERSION
        changed = True
    return document, changed


def _load_json(path: Path) -> Optional[Any]:
    if not path.exists():
        return None
    try:
        with path.open("r", encoding="utf-8") as handle:
            return json.load(handle)
    except (json.JSONDecodeError, UnicodeDecodeError):
        logger.warning("Ignoring unreadable activity file %s", path)
        return {}
    except OSError as exc:
        logger.warning("Could not read activity file %s: %s", path, exc)
        return {}


class DailyStore:
    """Activities and goals for a single day, backed by one JSON file."""

    def __init__(self, key: str, path: Path) -> None:
        self.key = key
        self.path = Path(path)
        self.activities: list[Activity] = []
        self.goals: list[str] = []
        self._saved_goals: list[str] = []
        self._extra: dict[str, Any] = {}

    def read(self) -> bool:
        """Load the file, migrating it in memory. Returns True if a write is due."""
        raw = _load_json(self.path)
        document, changed = migrate_document(raw if raw is not None else {})
        self.activities = [
            Activity.from_dict(item) for item in document["activities"] if isinstance(item, dict)
        ]
        self.goals = [str(goal) for goal in document["goals"]]
        self._saved_goals = list(self.goals)
        self._extra = {
            name: value
            for name, value in document.items()
            if name not in ("version", "activities", "goals")
        }
        return raw is None or changed

    def find(self, title: str, owner_name: str) -> Optional[Activity]:
        for activity in self.activities:
            if activity.title == title and activity.owner.name == owner_name:
                return activity
        return None

    def append(self, activity: Activity) -> None:
        self.activities.append(activity)

    def to_document(self) -> dict[str, Any]:
        document = dict(self._extra)
        document.update(
            {
                "version": SCHEMA_VERSION,
                "activities": [activity.to_dict() for activity in self.activities],
                "goals": list(self.goals),
            }
        )
        return document

    def _adopt_external_goals(self) -> None:
        # Goals written by another process win unless this store changed them too.
        if self.goals != self._saved_goals:
            return
        raw = _load_json(self.path)
        if not isinstance(raw, dict) or not isinstance(raw.get("goals"), list):
            return
        disk_goals = [str(goal) for goal in raw["goals"]]
        if disk_goals != self.goals:
            logger.info("Picked up goals saved elsewhere for %s", self.key)
            self.goals = disk_goals

    def write(self) -> None:
        """Atomically replace the file with the in-memory state."""
        self._adopt_external_goals()
        payload = json.dumps(self.to_document(), indent=2, ensure_ascii=False)
        try:
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(payload)
                os.replace(tmp_name, self.path)
                self._saved_goals = list(self.goals)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise PersistenceFailure(f"Failed to write {self.path}: {exc}") from exc


@dataclass(slots=True)
class PersistenceStats:
    """Counts flush outcomes so swallowed failures stay inspectable."""

    flushes: int = 0
    failures: int = 0
    last_error: Optional[str] = None
    last_failure_at: Optional[datetime] = None
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def record_success(self) -> None:
        with self._lock:
            self.flushes += 1

    def record_failure(self, exc: BaseException) -> None:
        with self._lock:
            self.failures += 1
            self.last_error = str(exc)
            self.last_failure_at = datetime.now()

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            return {
                "flushes": self.flushes,
                "failures": self.failures,
                "last_error": self.last_error,
                "last_failure_at": (
                    self.last_failure_at.isoformat() if self.last_failure_at else None
                ),
            }


class ActivityStore:
    """Owns the live daily store and rotates it when the local date changes."""

    def __init__(
        self,
        data_dir: Path,
        *,
        clock: Callable[[], datetime] = datetime.now,
        stats: Optional[PersistenceStats] = None,
    ) -> None:
        self.data_dir = Path(data_dir)
        self.stats = stats or PersistenceStats()
        self._clock = clock
        self._current: Optional[DailyStore] = None
        self.lock = threading.RLock()

    def path_for(self, key: str) -> Path:
        return self.data_dir / activity_file_name(key)

    @property
    def current(self) -> Optional[DailyStore]:
        return self._current

    def resolve(self) -> DailyStore:
        """Return today's store, opening a new one if the date has changed."""
        today = day_key(self._clock())
        with self.lock:
            current = self._current
            if current is not None and current.key == today:
                return current

            self.data_dir.mkdir(parents=True, exist_ok=True)
            store = DailyStore(today, self.path_for(today))
            if store.read():
                self.flush(store)
            if current is not None:
                logger.info("Rotated activity store from %s to %s", current.key, today)
            else:
                logger.info("Opened activity store %s", store.path)
            self._current = store
            return store

    def flush(self, store: Optional[DailyStore] = None) -> bool:
        """Write ``store`` (default: the live one). Failures are logged, not raised."""
        target = store or self._current
        if target is None:
            return False
        try:
            target.write()
        except PersistenceFailure as exc:
            self.stats.record_failure(exc)
            logger.warning("Flush of %s failed: %s", target.path, exc)
            return False
        self.stats.record_success()
        return True

    def save_goals(self, goals: Iterable[str]) -> list[str]:
        with self.lock:
            store = self.resolve()
            store.goals = [str(goal) for goal in goals]
            self.flush(store)
            return list(store.goals)

    def read_day(self, date_str: str) -> dict[str, Any]:
        """Read a day's file from disk, bypassing the live store."""
        key = parse_day_key(date_str)
        raw = _load_json(self.path_for(key))
        if raw is None:
            return {"goals": [], "activities": [], "exists": False}
        document, _ = migrate_document(raw)
        return {
            "goals": [str(goal) for goal in document["goals"]],
            "activities": [
                Activity.from_dict(item).to_dict()
                for item in document["activities"]
                if isinstance(item, dict)
            ],
            "exists": True,
        }
