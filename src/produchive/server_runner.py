"""Helpers to launch the local control API."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import uvicorn

from .config import MonitorSettings
from .paths import get_data_dir
from .webapp import create_app


def run_dashboard(
    *,
    host: str = "127.0.0.1",
    port: int = 8765,
    data_dir: Optional[Path] = None,
    settings: Optional[MonitorSettings] = None,
    autostart: bool = False,
    log_level: str = "info",
) -> None:
    """Start the FastAPI control surface, optionally with monitoring running."""
    app = create_app(
        data_dir=data_dir or get_data_dir(),
        settings=settings or MonitorSettings(),
        autostart=autostart,
    )

    logging.getLogger("uvicorn.error").setLevel(log_level.upper())
    uvicorn.run(app, host=host, port=port, log_level=log_level)
