from __future__ import annotations

import logging

from produchive import permissions
from produchive.permissions import PermissionChecker, PermissionStatus


def test_permission_not_required_off_macos():
    checker = PermissionChecker(platform="linux")

    assert checker.check() is PermissionStatus.NOT_REQUIRED
    assert checker.request_once() is False
    assert checker.requested is True


def test_settings_pane_failure_is_logged_with_arguments(monkeypatch, caplog):
    def broken_run(*args, **kwargs):
        raise OSError("open: not found")

    monkeypatch.setattr(permissions.subprocess, "run", broken_run)
    checker = PermissionChecker(platform="darwin")

    with caplog.at_level(logging.ERROR, logger="produchive.permissions"):
        assert checker.request_once() is True
        assert checker.request_once() is False

    [record] = caplog.records
    assert record.msg == "Could not open System Settings: %s"
    assert str(record.args[0]) == "open: not found"
