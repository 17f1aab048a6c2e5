from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from conftest import sample
from produchive.errors import ProbeError
from produchive.webapp import create_app


@pytest.fixture
def client(controller):
    app = create_app(controller=controller)
    with TestClient(app) as test_client:
        yield test_client


def test_status_reports_idle(client):
    payload = client.get("/api/status").json()
    assert payload["state"] == "idle"
    assert payload["running"] is False
    assert payload["interval_ms"] == 1000
    assert payload["persistence"]["failures"] == 0


def test_start_and_stop(client, probe, tasks):
    probe.default = sample("a", "Editor")

    started = client.post("/api/monitoring/start").json()
    assert started["started"] is True
    assert client.get("/api/status").json()["state"] == "running"

    assert client.post("/api/monitoring/stop").json() == {"stopped": True}
    assert client.get("/api/status").json()["state"] == "idle"


def test_start_failure_is_structured(client, probe):
    probe.push(ProbeError("xprop not found", code=127))

    payload = client.post("/api/monitoring/start").json()

    assert payload["started"] is False
    assert payload["reason"] == "probe_unavailable"
    assert payload["remediation"]


def test_live_feed_after_ticks(client, probe, tasks):
    probe.default = sample("main.py", "Editor")
    client.post("/api/monitoring/start")
    tasks[0].run_once()

    current = client.get("/api/activity/current").json()["activity"]
    assert current["title"] == "main.py"
    assert current["duration"] == 1000

    events = client.get("/api/system-events", params={"limit": 1}).json()["events"]
    assert len(events) == 1
    assert events[0]["type"] == "SYS_WINDOW_FOCUS"


def test_failure_is_visible_in_status(client, probe, tasks):
    probe.default = sample("main.py", "Editor")
    client.post("/api/monitoring/start")
    probe.push(ProbeError("boom"))
    tasks[0].run_once()

    payload = client.get("/api/status").json()
    assert payload["state"] == "stopped_on_error"
    assert payload["last_failure"]["reason"] == "probe_failure"


def test_goals_and_history(client):
    saved = client.put("/api/goals", json={"goals": ["ship", "  ", "review"]}).json()
    assert saved == {"goals": ["ship", "review"]}

    history = client.get("/api/activity/2026-03-10").json()
    assert history == {"goals": ["ship", "review"], "activities": [], "exists": True}


def test_history_rejects_bad_date(client):
    assert client.get("/api/activity/not-a-date").status_code == 400
    assert client.get("/api/summary", params={"date": "2026-13-01"}).status_code == 400


def test_history_for_missing_day(client):
    assert client.get("/api/activity/2001-01-01").json()["exists"] is False


def test_system_info(client, controller):
    payload = client.get("/api/system-info").json()
    assert payload["data_dir"] == str(controller.store.data_dir)
    assert "python" in payload["versions"]


def test_unreadable_day_file_is_served_as_empty(client, controller):
    path = controller.store.path_for("2026-03-09")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"\xff\xfe\x00garbage")

    response = client.get("/api/activity/2026-03-09")
    assert response.status_code == 200
    assert response.json() == {"goals": [], "activities": [], "exists": True}

    summary = client.get("/api/summary", params={"date": "2026-03-09"})
    assert summary.status_code == 200
    assert summary.json()["total_ms"] == 0


def test_malformed_records_are_served(client, controller):
    path = controller.store.path_for("2026-03-08")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text('{"activities": [{"title": "x", "owner": "Editor", "timestamp": "soon"}]}')

    response = client.get("/api/activity/2026-03-08")

    assert response.status_code == 200
    record = response.json()["activities"][0]
    assert record["owner"] == {"name": "Editor", "path": ""}
    assert record["timestamp"] == 0
