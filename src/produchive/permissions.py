"""Platform permission preflight for reading other applications' windows."""

from __future__ import annotations

import logging
import subprocess
import sys
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)

_ACCESSIBILITY_PANE = (
    "x-apple.systempreferences:com.apple.preference.security?Privacy_Accessibility"
)


class PermissionStatus(str, Enum):
    GRANTED = "granted"
    DENIED = "denied"
    UNKNOWN = "unknown"
    NOT_REQUIRED = "not_required"


class PermissionChecker:
    """Non-blocking permission check plus a one-shot remediation request."""

    def __init__(self, platform: Optional[str] = None) -> None:
        self.platform = platform or sys.platform
        self._requested = False

    @property
    def requested(self) -> bool:
        return self._requested

    def check(self) -> PermissionStatus:
        if self.platform != "darwin":
            return PermissionStatus.NOT_REQUIRED
        try:
            from ApplicationServices import AXIsProcessTrusted
        except ImportError:
            logger.warning("Could not import ApplicationServices; permission state unknown")
            return PermissionStatus.UNKNOWN
        try:
            trusted = AXIsProcessTrusted()
        except Exception as e:
            logger.error("Error checking accessibility permission: %s", e)
            return PermissionStatus.UNKNOWN
        return PermissionStatus.GRANTED if trusted else PermissionStatus.DENIED

    def request_once(self) -> bool:
        """Open the OS settings pane the first time only. Returns True if opened now."""
        if self._requested:
            return False
        self._requested = True
        if self.platform != "darwin":
            return False
        logger.info("Opening Accessibility settings so the user can grant access.")
        try:
            subprocess.run(["open", _ACCESSIBILITY_PANE], check=False, timeout=5)
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.error("Could not open System Settings: %s", e)
        return True
