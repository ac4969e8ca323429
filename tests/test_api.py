"""REST API over the in-memory store: status codes, error bodies, partial updates."""

from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

import task_service


def _create(client, **overrides):
    body = {"title": "Write report", "code": "ab123", "description": "Quarterly"}
    body.update(overrides)
    return client.post("/api/tasks", json=body)


def test_create_returns_201_and_defaults(api_client):
    r = _create(api_client)
    assert r.status_code == 201
    data = r.json()
    assert data["id"] >= 1
    assert data["code"] == "AB123"
    assert data["status"] == "Pending"
    assert data["due_date"] is None
    assert data["created_at"] == data["updated_at"]


def test_round_trip_get_after_create(api_client):
    created = _create(api_client, due_date="2025-11-30T15:00").json()
    fetched = api_client.get(f"/api/tasks/{created['id']}")
    assert fetched.status_code == 200
    assert fetched.json() == created


def test_due_date_comes_back_with_offset(api_client):
    data = _create(api_client, due_date="2025-11-30T15:00:00").json()
    # Melbourne daylight time in November.
    assert data["due_date"] == "2025-11-30T15:00:00+11:00"


def test_list_is_newest_first(api_client):
    first = _create(api_client, code="AAAA1").json()
    second = _create(api_client, code="AAAA2").json()
    ids = [t["id"] for t in api_client.get("/api/tasks").json()]
    assert ids == [second["id"], first["id"]]


def test_list_empty(api_client):
    r = api_client.get("/api/tasks")
    assert r.status_code == 200
    assert r.json() == []


def test_malformed_id_is_400_and_missing_id_is_404(api_client):
    r = api_client.get("/api/tasks/abc")
    assert r.status_code == 400
    assert r.json() == {"error": "Invalid task id"}

    r = api_client.get("/api/tasks/99999")
    assert r.status_code == 404
    assert r.json() == {"error": "Task not found"}


def test_delete(api_client):
    task_id = _create(api_client).json()["id"]
    r = api_client.delete(f"/api/tasks/{task_id}")
    assert r.status_code == 200
    assert r.json() == {"message": "Task deleted successfully"}
    assert api_client.get(f"/api/tasks/{task_id}").status_code == 404
    assert api_client.delete(f"/api/tasks/{task_id}").status_code == 404
    assert api_client.delete("/api/tasks/x1").status_code == 400


def test_create_validation_messages(api_client):
    cases = [
        ({"title": "", "code": "AB123"}, "Title is required"),
        ({"title": "x" * 101, "code": "AB123"}, "Title must be 100 characters or fewer"),
        ({"code": "AB123"}, "Title is required"),
        ({"title": "t"}, "Task code is required"),
        (
            {"title": "t", "code": "AB12"},
            "Task code must be exactly 5 alphanumeric characters (letters and numbers only)",
        ),
        (
            {"title": "t", "code": "AB-12"},
            "Task code must be exactly 5 alphanumeric characters (letters and numbers only)",
        ),
        ({"title": "t", "code": "AB123", "due_date": "next week"}, "Invalid due date"),
        ({"title": "t", "code": "AB123", "status": "Done"}, "Invalid status"),
    ]
    for body, message in cases:
        r = api_client.post("/api/tasks", json=body)
        assert r.status_code == 400, body
        assert r.json() == {"error": message}, body
    assert task_service.list_tasks() == []


def test_invalid_json_body_is_400(api_client):
    r = api_client.post("/api/tasks", content="{not json", headers={"Content-Type": "application/json"})
    assert r.status_code == 400
    assert "error" in r.json()


def test_duplicate_code_on_create_and_update(api_client):
    _create(api_client, code="AB123")
    r = _create(api_client, title="Other", code="ab123")
    assert r.status_code == 400
    assert r.json() == {"error": "Task code already exists"}

    other = _create(api_client, title="Other", code="CD456").json()
    r = api_client.put(f"/api/tasks/{other['id']}", json={"code": "AB123"})
    assert r.status_code == 400
    assert r.json() == {"error": "Task code already exists"}


def test_update_keeping_own_code_is_fine(api_client):
    task = _create(api_client, code="AB123").json()
    r = api_client.put(f"/api/tasks/{task['id']}", json={"code": "ab123", "title": "Renamed"})
    assert r.status_code == 200
    assert r.json()["title"] == "Renamed"


def test_partial_update_touches_only_sent_fields(api_client):
    task = _create(api_client, due_date="2030-01-01T09:00").json()
    r = api_client.put(f"/api/tasks/{task['id']}", json={"status": "In Progress"})
    assert r.status_code == 200
    data = r.json()
    assert data["status"] == "In Progress"
    assert data["title"] == task["title"]
    assert data["description"] == task["description"]
    assert data["due_date"] == task["due_date"]
    assert data["updated_at"] >= data["created_at"]


def test_null_clears_description_and_due_date(api_client):
    task = _create(api_client, due_date="2030-01-01T09:00").json()
    r = api_client.put(f"/api/tasks/{task['id']}", json={"description": None, "due_date": None})
    assert r.status_code == 200
    assert r.json()["description"] is None
    assert r.json()["due_date"] is None


def test_null_title_is_rejected(api_client):
    task = _create(api_client).json()
    r = api_client.put(f"/api/tasks/{task['id']}", json={"title": None})
    assert r.status_code == 400
    assert r.json() == {"error": "Title cannot be empty"}


def test_empty_update_returns_task_unchanged(api_client):
    task = _create(api_client).json()
    r = api_client.put(f"/api/tasks/{task['id']}", json={})
    assert r.status_code == 200
    assert r.json() == task


def test_update_missing_and_malformed_ids(api_client):
    assert api_client.put("/api/tasks/424242", json={"title": "x"}).status_code == 404
    assert api_client.put("/api/tasks/0", json={"title": "x"}).status_code == 400


def test_unhandled_error_is_generic_500(in_memory_engine, monkeypatch):
    from api import app

    def boom():
        raise RuntimeError("database on fire")

    monkeypatch.setattr(task_service, "list_tasks", boom)
    with TestClient(app, raise_server_exceptions=False) as client:
        r = client.get("/api/tasks")
    assert r.status_code == 500
    assert r.json() == {"error": "Sorry, something went wrong on our end."}


def test_health(api_client):
    assert api_client.get("/health").json() == {"status": "ok"}


def test_dashboard_reconciles_and_renders(api_client):
    task = _create(api_client, title="Old chore", due_date="2020-01-01T00:00").json()
    r = api_client.get("/")
    assert r.status_code == 200
    assert "text/html" in r.headers["content-type"]
    assert "Old chore" in r.text
    assert api_client.get(f"/api/tasks/{task['id']}").json()["status"] == "Overdue"


def test_dashboard_rejects_unknown_sort(api_client):
    r = api_client.get("/", params={"sort": "priority"})
    assert r.status_code == 400
    assert "error" in r.json()


def test_dashboard_sorted_and_paginated(api_client):
    for i in range(7):
        _create(api_client, title=f"Task {i}", code=f"CODE{i}")
    r = api_client.get("/", params={"sort": "title", "direction": "desc", "page": 2, "per_page": 5})
    assert r.status_code == 200
    assert "Showing 6 to 7 of 7 tasks" in r.text


def test_id_beyond_column_range_is_not_found(api_client):
    huge = "99999999999999999999999"
    assert api_client.get(f"/api/tasks/{huge}").json() == {"error": "Task not found"}
    assert api_client.get(f"/api/tasks/{huge}").status_code == 404
    assert api_client.put(f"/api/tasks/{huge}", json={"title": "x"}).status_code == 404
    assert api_client.delete(f"/api/tasks/{huge}").status_code == 404
    assert api_client.delete(f"/api/tasks/{2**31}").status_code == 404


def test_dashboard_survives_store_write_failure(api_client, monkeypatch):
    _create(api_client, title="Old chore", due_date="2020-01-01T00:00")

    def broken_update(task_id, changes):
        raise OperationalError("UPDATE tasks", {}, Exception("database is locked"))

    monkeypatch.setattr(task_service, "update_task", broken_update)
    r = api_client.get("/")
    assert r.status_code == 200
    assert "Old chore" in r.text
    assert "Overdue <small>(1)" in r.text
