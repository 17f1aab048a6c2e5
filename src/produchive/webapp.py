"""FastAPI application exposing the monitor's control surface to a local UI."""

from __future__ import annotations

import logging
import platform
import sys
import threading
from collections import deque
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import fastapi
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict

from .config import MonitorSettings
from .events import ACTIVITY_UPDATE, SYSTEM_EVENT
from .models import Activity, SystemEvent
from .monitor import MonitorController, build_controller
from .paths import get_data_dir, get_log_path
from .reporting import summarize_day
from .store import day_key, parse_day_key

logger = logging.getLogger(__name__)

SYSTEM_EVENT_BUFFER = 100


class GoalsPayload(BaseModel):
    goals: List[str]

    model_config = ConfigDict(extra="forbid")


class LiveFeed:
    """Keeps the latest activity and a bounded buffer of recent system events."""

    def __init__(self, maxlen: int = SYSTEM_EVENT_BUFFER) -> None:
        self._lock = threading.Lock()
        self._events: deque[SystemEvent] = deque(maxlen=maxlen)
        self.latest: Optional[Activity] = None

    def on_activity(self, activity: Activity) -> None:
        with self._lock:
            self.latest = activity

    def on_system_event(self, event: SystemEvent) -> None:
        with self._lock:
            self._events.append(event)

    def recent_events(self, limit: int) -> list[SystemEvent]:
        with self._lock:
            events = list(self._events)
        return events[-limit:] if limit else []


def _parse_date(value: str) -> str:
    try:
        return parse_day_key(value)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def create_app(
    *,
    data_dir: Optional[Path] = None,
    settings: Optional[MonitorSettings] = None,
    controller: Optional[MonitorController] = None,
    autostart: bool = False,
) -> FastAPI:
    """Instantiate the FastAPI application."""
    resolved_settings = settings or MonitorSettings()
    if controller is None:
        controller = build_controller(
            Path(data_dir or get_data_dir()), resolved_settings
        )
    feed = LiveFeed()
    subscriptions = [
        controller.hub.subscribe(ACTIVITY_UPDATE, feed.on_activity),
        controller.hub.subscribe(SYSTEM_EVENT, feed.on_system_event),
    ]

    app = FastAPI(title="Produchive", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.controller = controller
    app.state.feed = feed

    @app.on_event("startup")
    async def _startup() -> None:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )
        if autostart:
            result = controller.start()
            if not result:
                logger.warning("Autostart failed: %s", result.message)

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        for unsubscribe in subscriptions:
            unsubscribe()
        controller.stop()

    @app.get("/api/status")
    def status(request: Request) -> Dict[str, Any]:
        ctl: MonitorController = request.app.state.controller
        failure = ctl.last_failure
        return {
            "state": ctl.state.value,
            "running": ctl.is_running,
            "data_dir": str(ctl.store.data_dir),
            "interval_ms": ctl.aggregator.settings.interval_ms,
            "persistence": ctl.store.stats.snapshot(),
            "last_failure": failure.to_dict() if failure else None,
        }

    @app.post("/api/monitoring/start")
    def start_monitoring(request: Request) -> Dict[str, Any]:
        return request.app.state.controller.start().to_dict()

    @app.post("/api/monitoring/stop")
    def stop_monitoring(request: Request) -> Dict[str, Any]:
        request.app.state.controller.stop()
        return {"stopped": True}

    @app.get("/api/activity/current")
    def current_activity(request: Request) -> Dict[str, Any]:
        latest = request.app.state.feed.latest
        return {"activity": latest.to_dict() if latest else None}

    @app.get("/api/activity/{date}")
    def activity_by_date(date: str, request: Request) -> Dict[str, Any]:
        return request.app.state.controller.store.read_day(_parse_date(date))

    @app.put("/api/goals")
    def save_goals(payload: GoalsPayload, request: Request) -> Dict[str, Any]:
        goals = [goal.strip() for goal in payload.goals if goal.strip()]
        saved = request.app.state.controller.store.save_goals(goals)
        return {"goals": saved}

    @app.get("/api/system-events")
    def system_events(
        request: Request,
        limit: int = Query(default=SYSTEM_EVENT_BUFFER, ge=0, le=SYSTEM_EVENT_BUFFER),
    ) -> Dict[str, Any]:
        events = request.app.state.feed.recent_events(limit)
        return {"events": [event.to_dict() for event in events]}

    @app.get("/api/summary")
    def summary(
        request: Request,
        date: Optional[str] = Query(
            default=None,
            description="Target date in YYYY-MM-DD format.",
        ),
    ) -> Dict[str, Any]:
        target = _parse_date(date) if date else day_key(datetime.now())
        return summarize_day(request.app.state.controller.store, target)

    @app.get("/api/system-info")
    def system_info(request: Request) -> Dict[str, Any]:
        ctl: MonitorController = request.app.state.controller
        return {
            "data_dir": str(ctl.store.data_dir),
            "log_path": str(get_log_path()),
            "platform": sys.platform,
            "machine": platform.machine(),
            "release": platform.release(),
            "versions": {
                "python": platform.python_version(),
                "fastapi": fastapi.__version__,
            },
        }

    return app
