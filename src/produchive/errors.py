"""Error taxonomy for the monitor and the probe failure heuristic."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import Optional

PERMISSION_MARKERS: tuple[str, ...] = (
    "not authorized",
    "not allowed",
    "assistive access",
    "permission denied",
    "access is denied",
    "operation not permitted",
    "screen recording",
    "-1743",
    "-25211",
)

_REMEDIATION = {
    "darwin": (
        "Open System Settings > Privacy & Security and allow this app under "
        "Accessibility and Screen Recording, then restart it."
    ),
    "linux": (
        "Window tracking needs an X11 session with the 'xprop' utility installed. "
        "Wayland sessions are not supported; log in with an X11 session or "
        "install xprop (x11-utils) and try again."
    ),
    "win32": (
        "Make sure the tracker runs as the logged-in desktop user and restart it. "
        "Windows with elevated privileges cannot be inspected from a normal process."
    ),
}
_GENERIC_REMEDIATION = "Restart monitoring; if the problem persists, check the log file."


class ProbeError(Exception):
    """Raised by a window probe when the OS query fails."""

    def __init__(
        self,
        message: str,
        *,
        stderr: Optional[str] = None,
        stdout: Optional[str] = None,
        code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.stderr = stderr
        self.stdout = stdout
        self.code = code


@dataclass(slots=True)
class ProbeFailureInfo:
    likely_permission: bool
    summary: str
    remediation: str


class MonitorError(Exception):
    """Base class for failures surfaced by the monitor."""

    reason = "unknown"

    def __init__(self, message: str, info: Optional[ProbeFailureInfo] = None) -> None:
        super().__init__(message)
        self.message = message
        self.info = info


class PermissionDenied(MonitorError):
    reason = "permission_denied"


class ProbeUnavailable(MonitorError):
    reason = "probe_unavailable"


class ProbeTransientFailure(MonitorError):
    reason = "probe_failure"


class PersistenceFailure(MonitorError):
    reason = "persistence_failure"


def classify_probe_failure(
    exc: BaseException, platform: Optional[str] = None
) -> ProbeFailureInfo:
    """Guess whether a probe failure is an OS permission problem."""
    platform = platform or sys.platform
    message = str(getattr(exc, "message", None) or exc or "")
    stderr = getattr(exc, "stderr", None) or ""
    stdout = getattr(exc, "stdout", None) or ""

    haystack = f"{stderr}\n{message}".lower()
    likely_permission = any(marker in haystack for marker in PERMISSION_MARKERS)
    if not likely_permission and platform == "darwin":
        likely_permission = "command failed" in message.lower() and not stdout.strip()

    if likely_permission:
        summary = "The operating system refused access to the focused window."
    else:
        summary = f"Unknown error while reading the focused window: {message or type(exc).__name__}"
    remediation = _REMEDIATION.get(platform, _GENERIC_REMEDIATION)
    return ProbeFailureInfo(
        likely_permission=likely_permission, summary=summary, remediation=remediation
    )
