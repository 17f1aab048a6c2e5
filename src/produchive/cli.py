"""Command-line interface for the activity monitor."""

from __future__ import annotations

import logging
import signal
import threading
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import typer

from .config import MonitorSettings
from .paths import get_data_dir, get_log_dir, get_log_path
from .server_runner import run_dashboard

app = typer.Typer(help="Local-first focused-window activity tracker.")

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


@app.callback(no_args_is_help=True)
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logs.")) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)
    try:
        get_log_dir()
        file_handler = logging.FileHandler(get_log_path(), encoding="utf-8")
    except OSError:
        logger.warning("Log file unavailable; logging to the console only.")
        return
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    file_handler.setLevel(level)
    logging.getLogger().addHandler(file_handler)


DataDirOption = typer.Option(
    None,
    "--data-dir",
    path_type=Path,
    help="Directory holding the daily activity files.",
)


@app.command()
def monitor(
    data_dir: Optional[Path] = DataDirOption,
    poll_seconds: float = typer.Option(
        1.0,
        "--interval",
        min=0.2,
        help="Polling interval in seconds.",
    ),
) -> None:
    """Track the focused window in the foreground until interrupted."""
    from .events import ACTIVITY_UPDATE, MONITOR_ERROR, SYSTEM_EVENT
    from .monitor import build_controller

    settings = MonitorSettings.from_intervals(poll_seconds=poll_seconds)
    controller = build_controller(data_dir or get_data_dir(), settings)
    finished = threading.Event()

    controller.hub.subscribe(
        ACTIVITY_UPDATE,
        lambda activity: logger.debug(
            "%s | %s | %d ms", activity.owner.name, activity.title, activity.duration
        ),
    )
    controller.hub.subscribe(
        SYSTEM_EVENT, lambda event: logger.info("%s %s", event.type.value, event.content)
    )

    def _on_failure(failure) -> None:
        typer.echo(f"Monitoring stopped: {failure.message}", err=True)
        if failure.remediation:
            typer.echo(failure.remediation, err=True)
        finished.set()

    controller.hub.subscribe(MONITOR_ERROR, _on_failure)

    result = controller.start()
    if not result:
        typer.echo(f"Could not start monitoring: {result.message}", err=True)
        if result.remediation:
            typer.echo(result.remediation, err=True)
        raise typer.Exit(code=1)

    signal.signal(signal.SIGTERM, lambda *_: finished.set())
    try:
        while not finished.wait(0.5):
            pass
    except KeyboardInterrupt:
        logger.info("Monitor interrupted; flushing today's activity.")
    finally:
        controller.stop()
        controller.store.flush()
        controller.dispose()


@app.command()
def summary(
    date: Optional[str] = typer.Option(
        None,
        "--date",
        help="Date (YYYY-MM-DD) to summarize. Defaults to today.",
    ),
    data_dir: Optional[Path] = DataDirOption,
) -> None:
    """Print a high-level summary for a specific day."""
    from .reporting import SummaryPrinter
    from .store import ActivityStore, day_key, parse_day_key

    try:
        target = parse_day_key(date) if date else day_key(datetime.now())
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--date") from exc
    SummaryPrinter(ActivityStore(data_dir or get_data_dir())).print_daily_summary(target)


@app.command()
def goals(
    items: List[str] = typer.Argument(..., help="Goals for today."),
    data_dir: Optional[Path] = DataDirOption,
) -> None:
    """Replace today's goals."""
    from .store import ActivityStore

    saved = ActivityStore(data_dir or get_data_dir()).save_goals(items)
    for goal in saved:
        typer.echo(f"- {goal}")


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind the API."),
    port: int = typer.Option(
        8765, "--port", min=1, max=65535, help="TCP port for the API."
    ),
    data_dir: Optional[Path] = DataDirOption,
    poll_seconds: float = typer.Option(
        1.0,
        "--interval",
        min=0.2,
        help="Polling interval in seconds.",
    ),
    autostart: bool = typer.Option(
        False,
        "--autostart/--no-autostart",
        help="Start monitoring as soon as the server is up.",
    ),
) -> None:
    """Serve the local control API used by the dashboard."""
    run_dashboard(
        host=host,
        port=port,
        data_dir=data_dir or get_data_dir(),
        settings=MonitorSettings.from_intervals(poll_seconds=poll_seconds),
        autostart=autostart,
    )
