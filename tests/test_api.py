"""End-to-end tests for the HTTP surface and the domain-event wiring."""

from __future__ import annotations

import logging

import pytest
from fastapi.testclient import TestClient

from app.domain.events import EventIssuesChecked
from app.main import (
    app,
    event_bus,
    event_repo,
    expression_repo,
    host_repo,
    issue_repo,
    timeslot_repo,
    venue_repo,
)


def _clear() -> None:
    venue_repo._store.clear()
    host_repo._store.clear()
    expression_repo._store.clear()
    timeslot_repo._by_expression.clear()
    event_repo._store.clear()
    issue_repo._issues.clear()


@pytest.fixture(autouse=True)
def _clear_repos():
    """Reset in-memory repos before each test."""
    _clear()
    yield
    _clear()


@pytest.fixture()
def client():
    return TestClient(app)


@pytest.fixture()
def coach(client):
    client.post("/venues", json={"id": 10, "name": "North Studio"})
    client.post("/venues", json={"id": 20, "name": "South Studio"})
    resp = client.post(
        "/hosts",
        json={
            "id": "coach-1",
            "name": "Alex",
            "profile": {"eligible_type_ids": [1], "eligible_venue_ids": [10, 20]},
        },
    )
    assert resp.status_code == 200
    return resp.json()


_EXPRESSION = {
    "host_user_id": "coach-1",
    "timezone": "UTC",
    "date_of_opening": "2024-01-01T00:00:00Z",
    "date_of_closure": "2024-01-31T00:00:00Z",
    "minutes_of_duration": 60,
    "cron_expressions_of_available_time_points": ["0 9 * * MON"],
    "venue_ids": [10],
}

_EVENT = {
    "host_user_id": "coach-1",
    "venue_id": 10,
    "type_id": 1,
    "datetime_of_start": "2024-01-08T09:00:00Z",
    "datetime_of_end": "2024-01-08T10:00:00Z",
}


# ---------------------------------------------------------------------------
# Availability expressions
# ---------------------------------------------------------------------------


def test_create_expression_generates_timeslots(client, coach):
    resp = client.post("/availability-expressions", json=_EXPRESSION)
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "PUBLISHED"

    slots = client.get(f"/availability-expressions/{body['id']}/timeslots").json()
    assert len(slots) == 10
    assert slots[0]["datetime_of_start"].startswith("2024-01-01T09:00:00")
    assert slots[0]["day_of_week"] == 1


def test_update_expression_regenerates_from_scratch(client, coach):
    expression_id = client.post("/availability-expressions", json=_EXPRESSION).json()["id"]

    resp = client.patch(
        f"/availability-expressions/{expression_id}",
        json={"cron_expressions_of_available_time_points": ["0 9 * * TUE"]},
    )
    assert resp.status_code == 200
    assert resp.json()["cron_expressions_of_available_time_points"] == ["0 9 * * TUE"]

    slots = client.get(f"/availability-expressions/{expression_id}/timeslots").json()
    # Tuesdays in the window: 2, 9, 16, 23, 30
    assert len(slots) == 10
    assert {s["day_of_week"] for s in slots} == {2}


def test_invalid_expression_is_rejected_without_writes(client, coach):
    expression_id = client.post("/availability-expressions", json=_EXPRESSION).json()["id"]

    resp = client.patch(
        f"/availability-expressions/{expression_id}",
        json={"cron_expressions_of_available_time_points": ["every monday at nine"]},
    )
    assert resp.status_code == 422

    stored = client.get(f"/availability-expressions/{expression_id}").json()
    assert stored["cron_expressions_of_available_time_points"] == ["0 9 * * MON"]
    slots = client.get(f"/availability-expressions/{expression_id}/timeslots").json()
    assert len(slots) == 10


def test_invalid_expression_on_create_stores_nothing(client, coach):
    payload = {**_EXPRESSION, "cron_expressions_of_unavailable_time_points": ["0 25 * * *"]}
    resp = client.post("/availability-expressions", json=payload)
    assert resp.status_code == 422
    assert expression_repo._store == {}
    assert timeslot_repo.list_all() == []


def test_regenerate_reports_count(client, coach):
    expression_id = client.post("/availability-expressions", json=_EXPRESSION).json()["id"]
    resp = client.post(f"/availability-expressions/{expression_id}/regenerate")
    assert resp.json() == {"expression_id": expression_id, "timeslot_count": 10}


def test_list_expressions_for_host(client, coach):
    expression_id = client.post("/availability-expressions", json=_EXPRESSION).json()["id"]
    listed = client.get("/hosts/coach-1/availability-expressions").json()
    assert [e["id"] for e in listed] == [expression_id]
    assert client.get("/hosts/someone-else/availability-expressions").json() == []


def test_unknown_expression_is_404(client):
    assert client.get("/availability-expressions/nope").status_code == 404
    assert client.get("/availability-expressions/nope/timeslots").status_code == 404
    resp = client.patch("/availability-expressions/nope", json={})
    assert resp.status_code == 404


# ---------------------------------------------------------------------------
# Events and issues
# ---------------------------------------------------------------------------


def test_event_without_availability_gets_time_issue(client, coach):
    event = client.post("/events", json=_EVENT).json()
    assert event["minutes_of_duration"] == 60

    issues = client.get(f"/events/{event['id']}/issues").json()
    assert [i["type"] for i in issues] == ["UNAVAILABLE_EVENT_TIME"]


def test_publishing_availability_rechecks_hosted_events(client, coach):
    event_id = client.post("/events", json=_EVENT).json()["id"]
    assert len(client.get(f"/events/{event_id}/issues").json()) == 1

    client.post("/availability-expressions", json=_EXPRESSION)

    assert client.get(f"/events/{event_id}/issues").json() == []


def test_check_endpoint_is_idempotent(client, coach):
    event_id = client.post("/events", json={**_EVENT, "type_id": 7}).json()["id"]
    first = client.post(f"/events/{event_id}/check").json()
    second = client.post(f"/events/{event_id}/check").json()
    assert len(first) == len(second) == 2
    assert {i["type"] for i in second} == {"UNAVAILABLE_EVENT_TYPE", "UNAVAILABLE_EVENT_TIME"}


def test_checked_events_are_announced(client, coach):
    seen: list[EventIssuesChecked] = []
    event_bus.subscribe(EventIssuesChecked, seen.append)
    try:
        event_id = client.post("/events", json={**_EVENT, "is_locked": True}).json()["id"]
        assert seen == []
        client.patch(f"/events/{event_id}", json={"is_locked": False})
        assert [s.event_id for s in seen] == [event_id]
        assert seen[0].issue_types == ["UNAVAILABLE_EVENT_TIME"]
    finally:
        event_bus._subscribers[EventIssuesChecked].remove(seen.append)


def test_unresolved_issues_are_logged(client, coach, caplog):
    with caplog.at_level(logging.WARNING, logger="app.domain.handlers"):
        event_id = client.post("/events", json=_EVENT).json()["id"]

    assert any(
        event_id in r.getMessage() and "UNAVAILABLE_EVENT_TIME" in r.getMessage()
        for r in caplog.records
    )


def test_cross_venue_conflict_and_soft_delete(client, coach):
    client.post("/availability-expressions", json=_EXPRESSION)
    first_id = client.post("/events", json=_EVENT).json()["id"]
    second = {
        **_EVENT,
        "venue_id": 20,
        "datetime_of_start": "2024-01-08T10:15:00Z",
        "datetime_of_end": "2024-01-08T11:15:00Z",
    }
    second_id = client.post("/events", json=second).json()["id"]

    first_issues = client.post(f"/events/{first_id}/check").json()
    assert [i["type"] for i in first_issues] == ["CONFLICTING_EVENT_TIME"]
    assert "South Studio" in first_issues[0]["description"]

    assert client.delete(f"/events/{second_id}").json()["deleted_at"] is not None
    assert client.post(f"/events/{first_id}/check").json() == []


def test_update_event_recomputes_duration(client, coach):
    client.post("/availability-expressions", json=_EXPRESSION)
    event_id = client.post("/events", json=_EVENT).json()["id"]

    resp = client.patch(
        f"/events/{event_id}", json={"datetime_of_end": "2024-01-08T11:00:00Z"}
    )
    assert resp.json()["minutes_of_duration"] == 120
    issues = client.get(f"/events/{event_id}/issues").json()
    assert [i["type"] for i in issues] == ["UNAVAILABLE_EVENT_TIME"]


def test_repair_issue(client, coach):
    event_id = client.post("/events", json=_EVENT).json()["id"]
    [issue] = client.get(f"/events/{event_id}/issues").json()

    resp = client.post(f"/event-issues/{issue['id']}/repair")
    assert resp.json()["status"] == "REPAIRED"

    unrepaired = client.get(f"/events/{event_id}/issues?status=UNREPAIRED").json()
    assert unrepaired == []
    assert client.post("/event-issues/nope/repair").status_code == 404


def test_invalid_event_window_is_rejected(client, coach):
    payload = {**_EVENT, "datetime_of_end": "2024-01-08T08:00:00Z"}
    assert client.post("/events", json=payload).status_code == 422


# ---------------------------------------------------------------------------
# Heatmap
# ---------------------------------------------------------------------------


def test_heatmap_counts_available_coach(client, coach):
    client.post("/availability-expressions", json=_EXPRESSION)
    resp = client.get("/heatmap", params={"venue_id": 10, "year": 2024, "month": 1})
    assert resp.status_code == 200
    body = resp.json()

    assert body["calendar"][0][0] == "2023-12-31"
    cells = {
        (c["day_of_month"], c["hour"], c["minute"]): c["info"][0]["count"]
        for c in body["heatmap"]
    }
    assert cells[(8, 9, 0)] == 1
    assert cells[(8, 9, 30)] == 1
    assert cells[(8, 10, 0)] == 0
    assert cells[(9, 9, 0)] == 0


def test_heatmap_rejects_bad_month(client):
    resp = client.get("/heatmap", params={"venue_id": 10, "year": 2024, "month": 13})
    assert resp.status_code == 422
