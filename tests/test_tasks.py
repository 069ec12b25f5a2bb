from datetime import timedelta

import pytest
from django.utils import timezone

from datastore.errors import BackendFailure
from datastore.records import Task, TaskStatus
from tasks.filters import filter_tasks


def _future(days=30):
    return (timezone.localdate() + timedelta(days=days)).isoformat()


# -------------------- filter_tasks (unit-level) --------------------

@pytest.fixture
def sample_tasks():
    return [
        Task(id=1, name="Call agent", description="Ask about HOA", status=TaskStatus.NOT_STARTED, property_id=1),
        Task(id=2, name="Inspection", description="Roof and plumbing", status=TaskStatus.COMPLETED, property_id=2),
        Task(id=3, name="Mortgage docs", description="", status=TaskStatus.NOT_STARTED, property_id=None),
    ]


def test_filter_tasks_by_status_and_property(sample_tasks):
    assert [t.id for t in filter_tasks(sample_tasks, status=TaskStatus.NOT_STARTED)] == [1, 3]
    assert [t.id for t in filter_tasks(sample_tasks, property_id=2)] == [2]
    assert [t.id for t in filter_tasks(sample_tasks, status=TaskStatus.COMPLETED, property_id=1)] == []


def test_filter_tasks_search_is_case_insensitive(sample_tasks):
    assert [t.id for t in filter_tasks(sample_tasks, search="hoa")] == [1]
    assert [t.id for t in filter_tasks(sample_tasks, search="  MORTGAGE ")] == [3]
    assert len(filter_tasks(sample_tasks, search="")) == 3


# -------------------- API --------------------

def test_list_tasks_ordered_by_due_date(api_client):
    resp = api_client.get("/api/tasks/")
    assert resp.status_code == 200
    data = resp.json()
    assert [t["id"] for t in data] == [2, 1]
    assert data[0]["status"] == "In Progress"
    assert data[0]["property_id"] == 5


def test_list_tasks_filters(api_client):
    assert [t["id"] for t in api_client.get("/api/tasks/", {"status": "Not Started"}).json()] == [1]
    assert [t["id"] for t in api_client.get("/api/tasks/", {"property": "5"}).json()] == [2]
    assert [t["id"] for t in api_client.get("/api/tasks/", {"search": "viewing"}).json()] == [1]


@pytest.mark.parametrize("params", [{"status": "Done"}, {"property": "abc"}])
def test_list_tasks_rejects_bad_filters(api_client, params):
    assert api_client.get("/api/tasks/", params).status_code == 400


def test_create_task(api_client, store):
    due = _future()
    resp = api_client.post(
        "/api/tasks/",
        {"name": "Book inspector", "due_date": due, "property_id": 3},
        format="json",
    )
    assert resp.status_code == 201
    data = resp.json()
    assert data["name"] == "Book inspector"
    assert data["status"] == TaskStatus.NOT_STARTED
    assert data["due_date"] == due
    assert data["property_id"] == 3
    assert data["description"] == ""
    assert data["created_on"]

    assert api_client.get(f"/api/tasks/{data['id']}/").json()["name"] == "Book inspector"


@pytest.mark.parametrize("payload, field, message", [
    ({"name": "   "}, "name", None),
    ({}, "name", None),
    ({"name": "Late", "due_date": "2000-01-01"}, "due_date", "Due date cannot be in the past"),
    ({"name": "Odd", "status": "Finished"}, "status", None),
])
def test_create_task_validation(api_client, payload, field, message):
    resp = api_client.post("/api/tasks/", payload, format="json")
    assert resp.status_code == 400
    errors = resp.json()
    assert field in errors
    if message:
        assert errors[field] == [message]


def test_update_task(api_client):
    resp = api_client.put(
        "/api/tasks/1/",
        {"name": "Schedule second viewing", "status": "In Progress", "due_date": _future(5), "property_id": 2},
        format="json",
    )
    assert resp.status_code == 200
    assert resp.json()["name"] == "Schedule second viewing"
    assert resp.json()["status"] == "In Progress"


def test_partial_update_task(api_client):
    resp = api_client.patch("/api/tasks/2/", {"status": "Completed"}, format="json")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "Completed"
    assert data["name"] == "Request HOA documents"
    assert data["property_id"] == 5


def test_task_not_found(api_client):
    assert api_client.get("/api/tasks/99/").status_code == 404
    assert api_client.patch("/api/tasks/99/", {"status": "Completed"}, format="json").status_code == 404
    assert api_client.delete("/api/tasks/99/").status_code == 404


def test_delete_task(api_client):
    assert api_client.delete("/api/tasks/1/").status_code == 204
    assert [t["id"] for t in api_client.get("/api/tasks/").json()] == [2]


def test_tasks_backend_failure(api_client, store, monkeypatch):
    async def down(*args, **kwargs):
        raise BackendFailure("record service unreachable")

    monkeypatch.setattr(store, "list_tasks", down)
    assert api_client.get("/api/tasks/").status_code == 502
