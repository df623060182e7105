"""Tests for API endpoints (no Notion or LLM credentials required)."""

from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from src.api.dependencies import get_context
from src.api.main import app
from src.automation.context import AutomationContext
from src.classification.models import CategorizedBundle
from src.errors import RemoteError
from tests.conftest import (
    MEETINGS_DB,
    PROJECTS_DB,
    TASKS_DB,
    FakeClassifier,
    FakeStore,
    bullet,
    heading,
    meeting_page,
    project_page,
    project_page_nodes,
    task_page,
    todo,
)


@pytest.fixture
def context(store, settings) -> AutomationContext:
    return AutomationContext(
        settings=settings,
        store=store,
        classifier=FakeClassifier(bundle=CategorizedBundle(credentials=["HubSpot API Key: abc"])),
    )


@pytest.fixture
def client(context) -> Iterator[TestClient]:
    app.dependency_overrides[get_context] = lambda: context
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_poll_returns_summary(client, store):
    store.add_page(MEETINGS_DB, meeting_page("m1", "ClickUp Sync"), [todo("t1", "Email Karen")])
    response = client.post("/api/poll")
    assert response.status_code == 200
    body = response.json()
    assert body["meetings_processed"] == 1
    assert body["tasks_created"] == 1
    assert body["errors"] == []


def test_process_meeting(client, store):
    store.add_page(
        MEETINGS_DB,
        meeting_page("m1", "ClickUp Sync", processed=True, last_processed="2025-01-11T08:00:00.000Z"),
        [todo("t1", "Email Karen"), todo("t2", "Draft proposal due Friday")],
    )
    response = client.post("/api/meetings/m1/process")
    assert response.status_code == 200
    body = response.json()
    assert body["title"] == "ClickUp Sync"
    assert body["created"] == 2
    assert body["project"] == "ClickUp"
    assert body["needs_review"] is False

    # Second run skips what already exists
    again = client.post("/api/meetings/m1/process").json()
    assert (again["created"], again["skipped"]) == (0, 2)


def test_process_meeting_unknown_page(client):
    """Notion's 404 for unshared or missing pages becomes a 404 here."""
    response = client.post("/api/meetings/nope/process")
    assert response.status_code == 404


def test_process_quick_entry(client, store):
    store.add_page(PROJECTS_DB, project_page("hs", "HubSpot"), project_page_nodes())
    store.add_page(
        TASKS_DB,
        task_page("q1"),
        [heading("qi", "Project Info"), bullet("b", "hubspot api key is abc")],
    )
    response = client.post("/api/quick-entries/q1/process")
    assert response.status_code == 200
    assert response.json() == {
        "page_id": "q1",
        "processed": True,
        "task_created": False,
        "project_info_routed": True,
        "page_deleted": True,
        "extra_tasks_created": 0,
    }


def test_process_quick_entry_with_empty_sections(client, store):
    store.add_page(TASKS_DB, task_page("q1"), [heading("t", "Task")])
    response = client.post("/api/quick-entries/q1/process")
    assert response.status_code == 200
    assert response.json()["processed"] is False


def test_filled_in_task_is_rejected(client, store):
    store.add_page(TASKS_DB, task_page("t1", "Prepare board deck", status="Doing"))
    response = client.post("/api/quick-entries/t1/process")
    assert response.status_code == 409


def test_route_project_info(client, store):
    store.add_page(PROJECTS_DB, project_page("hs", "HubSpot"), project_page_nodes())
    response = client.post(
        "/api/projects/HubSpot/route",
        json={"links": ["https://developers.hubspot.com"], "decisions": ["Use private apps"]},
    )
    assert response.status_code == 200
    assert response.json() == {"project": "HubSpot", "routed": True}
    assert len(store.appended) == 2


def test_route_unknown_project(client):
    response = client.post("/api/projects/Nowhere/route", json={"links": ["https://x.io"]})
    assert response.status_code == 404


def test_route_empty_bundle(client, store):
    store.add_page(PROJECTS_DB, project_page("hs", "HubSpot"), project_page_nodes())
    response = client.post("/api/projects/HubSpot/route", json={})
    assert response.status_code == 400


@pytest.mark.parametrize(
    "error,status_code",
    [
        (RemoteError("rate limited", transient=True, code="rate_limited", status=429), 503),
        (RemoteError("timed out", transient=True, code="timeout"), 504),
        (RemoteError("connection reset", transient=True, code="network"), 503),
        (RemoteError("unauthorized", transient=False, code="unauthorized", status=401), 502),
        (RemoteError("Could not find page", transient=False, code="object_not_found", status=404), 404),
    ],
)
def test_remote_errors_mapped(client, store, monkeypatch, error, status_code):
    def get_page(page_id):
        raise error

    monkeypatch.setattr(store, "get_page", get_page)
    response = client.post("/api/meetings/m1/process")
    assert response.status_code == status_code


def test_rate_limited_sets_retry_after(client, store, monkeypatch):
    def get_page(page_id):
        raise RemoteError("rate limited", transient=True, code="rate_limited", status=429)

    monkeypatch.setattr(store, "get_page", get_page)
    response = client.post("/api/meetings/m1/process")
    assert response.status_code == 503
    assert int(response.headers["retry-after"]) > 0


def test_other_transient_errors_have_no_retry_after(client, store, monkeypatch):
    def get_page(page_id):
        raise RemoteError("timed out", transient=True, code="timeout")

    monkeypatch.setattr(store, "get_page", get_page)
    assert "retry-after" not in client.post("/api/meetings/m1/process").headers
