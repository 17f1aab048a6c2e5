"""Utilities to classify and filter window samples."""

from __future__ import annotations

from typing import Iterable

_BROWSER_NAMES: frozenset[str] = frozenset(
    {
        "google chrome",
        "chrome",
        "chromium",
        "chromium-browser",
        "firefox",
        "mozilla firefox",
        "safari",
        "microsoft edge",
        "msedge",
        "brave browser",
        "brave",
        "opera",
        "arc",
        "vivaldi",
    }
)

# (keyword, canonical label); first match wins.
_TITLE_RULES: tuple[tuple[str, str], ...] = (
    ("leetcode", "LeetCode"),
    ("hackerrank", "HackerRank"),
    ("codeforces", "Codeforces"),
)


def is_browser(owner_name: str) -> bool:
    normalized = owner_name.strip().lower()
    if normalized.endswith(".exe"):
        normalized = normalized[: -len(".exe")]
    return normalized in _BROWSER_NAMES


def classify_title(owner_name: str, title: str) -> str:
    """Rewrite browser tab titles for well-known sites to a canonical label."""
    if not is_browser(owner_name):
        return title
    lowered = title.lower()
    for keyword, label in _TITLE_RULES:
        if keyword in lowered:
            return label
    return title


def is_self(owner_name: str, self_names: Iterable[str]) -> bool:
    """True when the owning process is the tracker itself."""
    lowered = owner_name.lower()
    return any(name and name.lower() in lowered for name in self_names)
