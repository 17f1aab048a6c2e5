from __future__ import annotations

import json
from datetime import datetime

import pytest

from conftest import FakeClock
from produchive.errors import PersistenceFailure
from produchive.models import Activity, Owner
from produchive.store import SCHEMA_VERSION, ActivityStore, DailyStore, migrate_document


def _activity(title: str, owner: str, duration: int = 1000) -> Activity:
    return Activity(title=title, owner=Owner(name=owner), timestamp=1_700_000_000_000, duration=duration)


def test_resolve_creates_file_with_default_shape(tmp_path, clock):
    store = ActivityStore(tmp_path / "nested" / "dir", clock=clock)

    day = store.resolve()

    assert day.path.name == "activity-2026-03-10.json"
    document = json.loads(day.path.read_text(encoding="utf-8"))
    assert document == {"version": SCHEMA_VERSION, "activities": [], "goals": []}


def test_resolve_reuses_cached_store_for_same_day(store, clock):
    first = store.resolve()
    clock.advance(3600)
    assert store.resolve() is first


def test_rotation_across_midnight(tmp_path):
    clock = FakeClock(datetime(2026, 3, 10, 23, 59, 59))
    store = ActivityStore(tmp_path, clock=clock)
    day_one = store.resolve()
    day_one.append(_activity("report.docx", "Word"))
    store.flush()
    before = day_one.path.read_text(encoding="utf-8")

    clock.advance(2)
    day_two = store.resolve()

    assert day_two is not day_one
    assert day_two.key == "2026-03-11"
    assert day_two.path != day_one.path
    assert day_two.activities == []
    assert day_one.path.read_text(encoding="utf-8") == before
    history = store.read_day("2026-03-10")
    assert history["exists"] is True
    assert history["activities"][0]["title"] == "report.docx"


def test_existing_file_is_migrated_and_written_back(tmp_path, clock):
    path = tmp_path / "activity-2026-03-10.json"
    path.write_text(json.dumps({"activities": [{"title": "x", "owner": {"name": "A"}, "timestamp": 5}]}))

    ActivityStore(tmp_path, clock=clock).resolve()

    document = json.loads(path.read_text(encoding="utf-8"))
    assert document["goals"] == []
    assert document["version"] == SCHEMA_VERSION
    assert document["activities"][0]["title"] == "x"


def test_current_file_is_not_rewritten_on_open(tmp_path, clock):
    path = tmp_path / "activity-2026-03-10.json"
    original = json.dumps({"version": SCHEMA_VERSION, "activities": [], "goals": ["ship it"], "extra": 1})
    path.write_text(original)
    store = ActivityStore(tmp_path, clock=clock)

    day = store.resolve()

    assert path.read_text() == original
    assert store.stats.flushes == 0
    assert day.goals == ["ship it"]
    assert day.to_document()["extra"] == 1


def test_migrate_document_reports_changes():
    assert migrate_document(None) == ({"version": SCHEMA_VERSION, "activities": [], "goals": []}, True)
    document, changed = migrate_document({"version": SCHEMA_VERSION, "activities": [], "goals": []})
    assert changed is False


def test_read_day_missing_file(store):
    assert store.read_day("2020-01-01") == {"goals": [], "activities": [], "exists": False}


def test_read_day_rejects_bad_dates(store):
    with pytest.raises(ValueError):
        store.read_day("yesterday")


def test_read_day_bypasses_live_cache(store):
    day = store.resolve()
    day.append(_activity("unsaved", "Editor"))

    assert store.read_day("2026-03-10")["activities"] == []


def test_save_goals_targets_today(store, clock):
    assert store.save_goals(["write tests", "ship"]) == ["write tests", "ship"]

    history = store.read_day("2026-03-10")
    assert history["goals"] == ["write tests", "ship"]


def test_find_matches_title_and_owner_exactly(tmp_path):
    day = DailyStore("2026-03-10", tmp_path / "activity-2026-03-10.json")
    day.append(_activity("Inbox", "Mail"))

    assert day.find("Inbox", "Mail") is not None
    assert day.find("Inbox", "Browser") is None
    assert day.find("inbox", "Mail") is None


def test_write_failure_raises_persistence_failure(tmp_path):
    day = DailyStore("2026-03-10", tmp_path / "missing" / "activity-2026-03-10.json")
    with pytest.raises(PersistenceFailure):
        day.write()


def test_flush_failure_is_recorded_not_raised(tmp_path, clock):
    store = ActivityStore(tmp_path, clock=clock)
    day = store.resolve()
    day.path = tmp_path / "gone" / day.path.name

    assert store.flush() is False
    assert store.stats.failures == 1
    assert "gone" in store.stats.snapshot()["last_error"]


def test_unreadable_file_is_treated_as_empty(tmp_path, clock):
    path = tmp_path / "activity-2026-03-10.json"
    path.write_text("{not json")

    day = ActivityStore(tmp_path, clock=clock).resolve()

    assert day.activities == []
    assert json.loads(path.read_text())["activities"] == []


def test_non_utf8_file_is_treated_as_empty(tmp_path, clock):
    path = tmp_path / "activity-2026-03-10.json"
    path.write_bytes(b"\xff\xfe{\x00}")

    day = ActivityStore(tmp_path, clock=clock).resolve()

    assert day.activities == []
    assert json.loads(path.read_text(encoding="utf-8"))["activities"] == []


def test_malformed_records_are_coerced(tmp_path, clock):
    path = tmp_path / "activity-2026-03-10.json"
    path.write_text(
        '{"activities": ['
        '{"title": "x", "owner": "Editor", "timestamp": 1e400, "duration": NaN, "timestampReadable": 5},'
        ' {"title": "y", "owner": ["bad"], "timestamp": "soon"}'
        "]}"
    )

    first, second = ActivityStore(tmp_path, clock=clock).resolve().activities

    assert (first.owner.name, first.timestamp, first.duration) == ("Editor", 0, 0)
    assert first.timestamp_readable is None
    assert (second.owner.name, second.timestamp) == ("", 0)
    assert json.loads(path.read_text(encoding="utf-8"))["activities"][0]["owner"] == {
        "name": "Editor",
        "path": "",
    }


def test_goals_saved_by_another_store_are_kept(tmp_path, clock):
    live = ActivityStore(tmp_path, clock=clock)
    day = live.resolve()
    day.append(_activity("main.py", "Editor"))
    live.flush()

    ActivityStore(tmp_path, clock=clock).save_goals(["ship"])
    day.append(_activity("notes", "Editor"))
    live.flush()

    history = live.read_day("2026-03-10")
    assert history["goals"] == ["ship"]
    assert [a["title"] for a in history["activities"]] == ["main.py", "notes"]
    assert day.goals == ["ship"]


def test_local_goal_changes_win_over_the_file(tmp_path, clock):
    live = ActivityStore(tmp_path, clock=clock)
    live.resolve()

    ActivityStore(tmp_path, clock=clock).save_goals(["theirs"])
    live.save_goals(["mine"])

    assert live.read_day("2026-03-10")["goals"] == ["mine"]
