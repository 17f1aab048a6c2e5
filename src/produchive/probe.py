"""Platform probes returning the currently focused window."""

from __future__ import annotations

import ctypes
import logging
import os
import re
import subprocess
import sys
from typing import Optional, Protocol

import psutil

from .errors import ProbeError
from .models import WindowSample

logger = logging.getLogger(__name__)

_PROBE_TIMEOUT_SECONDS = 2.0


class WindowProbe(Protocol):
    def probe(self) -> Optional[WindowSample]:
        """Return the focused window, ``None`` when nothing has focus.

        Raises :class:`ProbeError` when the OS query itself fails.
        """


def _process_details(pid: Optional[int]) -> tuple[Optional[str], str]:
    """Return (process name, executable path) for ``pid``, tolerating races."""
    if not pid:
        return None, ""
    try:
        process = psutil.Process(pid)
        name = process.name()
        try:
            path = process.exe()
        except (psutil.AccessDenied, psutil.ZombieProcess):
            path = ""
        return name, path
    except (psutil.Error, ProcessLookupError):
        return None, ""


def _run(args: list[str]) -> subprocess.CompletedProcess[str]:
    try:
        result = subprocess.run(
            args,
            capture_output=True,
            text=True,
            timeout=_PROBE_TIMEOUT_SECONDS,
        )
    except FileNotFoundError as exc:
        raise ProbeError(f"{args[0]} not found", stderr=str(exc), code=127) from exc
    except subprocess.TimeoutExpired as exc:
        raise ProbeError(f"{args[0]} timed out") from exc
    if result.returncode != 0:
        raise ProbeError(
            f"Command failed: {' '.join(args)}",
            stderr=result.stderr,
            stdout=result.stdout,
            code=result.returncode,
        )
    return result


class WindowsWindowProbe:
    """Retrieves the foreground window title and process via Win32."""

    def __init__(self) -> None:
        from ctypes import wintypes

        self._wintypes = wintypes
        self._user32 = ctypes.windll.user32  # type: ignore[attr-defined]

    def probe(self) -> Optional[WindowSample]:
        hwnd = self._user32.GetForegroundWindow()
        if not hwnd:
            return None

        length = self._user32.GetWindowTextLengthW(hwnd)
        buffer = ctypes.create_unicode_buffer(length + 1)
        self._user32.GetWindowTextW(hwnd, buffer, length + 1)
        window_title = buffer.value.strip()

        pid = self._wintypes.DWORD()
        self._user32.GetWindowThreadProcessId(hwnd, ctypes.byref(pid))
        process_name, process_path = _process_details(pid.value)
        if process_name is None:
            return None

        return WindowSample(
            title=window_title,
            owner_name=process_name,
            owner_path=process_path,
            process_id=pid.value or None,
        )


class X11WindowProbe:
    """Reads the active window on X11 through ``xprop``."""

    _WINDOW_ID = re.compile(r"0x[0-9a-fA-F]+")
    _QUOTED = re.compile(r'"((?:[^"\\]|\\.)*)"')

    def probe(self) -> Optional[WindowSample]:
        if not os.environ.get("DISPLAY"):
            if os.environ.get("WAYLAND_DISPLAY"):
                raise ProbeError("Wayland sessions are not supported (no X11 DISPLAY)")
            raise ProbeError("No X11 DISPLAY is available")

        root = _run(["xprop", "-root", "_NET_ACTIVE_WINDOW"])
        match = self._WINDOW_ID.search(root.stdout.split("#", 1)[-1])
        if not match or int(match.group(0), 16) == 0:
            return None
        window_id = match.group(0)

        props = _run(["xprop", "-id", window_id, "WM_CLASS", "_NET_WM_NAME", "WM_NAME", "_NET_WM_PID"])
        wm_class = ""
        title = ""
        pid: Optional[int] = None
        for line in props.stdout.splitlines():
            if line.startswith("WM_CLASS"):
                values = self._QUOTED.findall(line)
                if values:
                    wm_class = values[-1]
            elif line.startswith("_NET_WM_NAME") or (line.startswith("WM_NAME") and not title):
                values = self._QUOTED.findall(line)
                if values:
                    title = values[0]
            elif line.startswith("_NET_WM_PID"):
                _, _, value = line.partition("=")
                value = value.strip()
                if value.isdigit():
                    pid = int(value)

        process_name, process_path = _process_details(pid)
        # WM_CLASS carries the user-facing application name ("Firefox", "Code").
        owner_name = wm_class or process_name
        if not owner_name:
            return None
        return WindowSample(
            title=title,
            owner_name=owner_name,
            owner_path=process_path,
            process_id=pid,
        )


class MacWindowProbe:
    """Asks System Events for the frontmost application and window."""

    _SCRIPT = """
tell application "System Events"
    set frontApp to first application process whose frontmost is true
    set appName to name of frontApp
    set appPid to unix id of frontApp
    set windowTitle to ""
    try
        set windowTitle to name of front window of frontApp
    end try
end tell
return appName & "\n" & appPid & "\n" & windowTitle
"""

    def probe(self) -> Optional[WindowSample]:
        result = _run(["osascript", "-e", self._SCRIPT])
        lines = result.stdout.rstrip("\n").split("\n", 2)
        if not lines or not lines[0]:
            return None
        app_name = lines[0]
        pid = int(lines[1]) if len(lines) > 1 and lines[1].isdigit() else None
        title = lines[2] if len(lines) > 2 else ""
        _, process_path = _process_details(pid)
        return WindowSample(
            title=title,
            owner_name=app_name,
            owner_path=process_path,
            process_id=pid,
        )


def default_probe(platform: Optional[str] = None) -> WindowProbe:
    """Return the probe implementation for the running platform."""
    platform = platform or sys.platform
    if platform == "win32":
        return WindowsWindowProbe()
    if platform == "darwin":
        return MacWindowProbe()
    if platform.startswith("linux") or "bsd" in platform:
        return X11WindowProbe()
    raise ProbeError(f"Unsupported platform: {platform}")
