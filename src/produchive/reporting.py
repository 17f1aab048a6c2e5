"""Simple reporting utilities for CLI and API output."""

from __future__ import annotations

from collections import defaultdict
from typing import Any, Iterable

from .models import coerce_duration
from .store import ActivityStore


def aggregate_by_application(activities: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    """Total milliseconds and distinct windows per application, largest first."""
    totals: defaultdict[str, int] = defaultdict(int)
    counts: defaultdict[str, int] = defaultdict(int)
    for activity in activities:
        owner = activity.get("owner") or {}
        name = owner.get("name") or "Unknown"
        totals[name] += coerce_duration(activity.get("duration"))
        counts[name] += 1
    return [
        {"name": name, "duration_ms": total, "windows": counts[name]}
        for name, total in sorted(totals.items(), key=lambda item: item[1], reverse=True)
    ]


def aggregate_top_windows(activities: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    entries = [
        {
            "name": (activity.get("owner") or {}).get("name") or "Unknown",
            "title": activity.get("title") or "",
            "duration_ms": coerce_duration(activity.get("duration")),
        }
        for activity in activities
    ]
    entries.sort(key=lambda item: item["duration_ms"], reverse=True)
    return entries


def summarize_day(store: ActivityStore, date_str: str) -> dict[str, Any]:
    day = store.read_day(date_str)
    applications = aggregate_by_application(day["activities"])
    return {
        "date": date_str,
        "exists": day["exists"],
        "goals": day["goals"],
        "total_ms": sum(entry["duration_ms"] for entry in applications),
        "applications": applications,
        "windows": aggregate_top_windows(day["activities"]),
    }


class SummaryPrinter:
    """Render human-readable summaries in the console."""

    def __init__(self, store: ActivityStore) -> None:
        self.store = store

    def print_daily_summary(self, date_str: str) -> None:
        summary = summarize_day(self.store, date_str)
        if not summary["applications"]:
            print("No activity recorded for the selected day.")
            return

        print(f"Summary for {date_str}")
        print("-" * 40)
        print(f"Tracked time: {format_duration(summary['total_ms'] / 1000)}")
        if summary["goals"]:
            print("Goals:")
            for goal in summary["goals"]:
                print(f"  - {goal}")
        print()

        print("Top applications:")
        for entry in summary["applications"][:5]:
            print(f"  {entry['name']:<30} {format_duration(entry['duration_ms'] / 1000)}")

        print()
        print("Top windows / tabs:")
        for entry in summary["windows"][:5]:
            label = entry["title"] or "(untitled)"
            print(
                f"  {entry['name']:<12} {label[:45]:<45} "
                f"{format_duration(entry['duration_ms'] / 1000)}"
            )


def format_duration(seconds: float) -> str:
    total_seconds = int(round(seconds))
    hours, remainder = divmod(total_seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"
