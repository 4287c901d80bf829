"""Tests for the REST API."""

import asyncio
import threading

import pytest
from fastapi.testclient import TestClient

from automation.api.endpoints import _watch_disconnect
from automation.config import get_testing_config
from automation.core.exceptions import ExecutionCancelled
from automation.factory import create_app, get_app_state

from .conftest import FailingHandler

WORKFLOW = {
    "name": "Escalate negative feedback",
    "description": "Notify the team when a review scores below zero",
    "triggers": [{"type": "webhook"}],
    "conditions": [{"field": "score", "operator": "less_than", "value": 0}],
    "actions": [{"type": "record", "message": "Review from {{user.name}}"}],
    "workspace_id": 1,
    "created_by": "api-tester",
}


@pytest.fixture
def client(registry):
    """Test client with the lifespan running against an in-memory database."""
    registry.register("explode", FailingHandler("upstream unavailable"))
    app = create_app(get_testing_config(), registry=registry)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def workflow(client):
    response = client.post("/api/v1/workflows", json=WORKFLOW)
    assert response.status_code == 201
    return response.json()


class TestWorkflowEndpoints:
    """Test cases for workflow CRUD endpoints."""

    def test_create(self, workflow):
        assert workflow["id"] is not None
        assert workflow["name"] == WORKFLOW["name"]
        assert workflow["execution_count"] == 0
        assert workflow["is_active"] is True
        assert workflow["actions"] == WORKFLOW["actions"]

    def test_create_unknown_action_kind(self, client):
        response = client.post("/api/v1/workflows", json={**WORKFLOW, "actions": [{"type": "teleport"}]})

        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["error"] == "WorkflowValidationError"
        assert "teleport" in detail["message"]

    def test_create_unknown_operator(self, client):
        bad = {**WORKFLOW, "conditions": [{"field": "score", "operator": "between", "value": 0}]}
        assert client.post("/api/v1/workflows", json=bad).status_code == 422

    def test_create_missing_name(self, client):
        bad = {key: value for key, value in WORKFLOW.items() if key != "name"}
        assert client.post("/api/v1/workflows", json=bad).status_code == 422

    def test_get(self, client, workflow):
        response = client.get(f"/api/v1/workflows/{workflow['id']}")
        assert response.status_code == 200
        assert response.json() == workflow

    def test_get_missing(self, client):
        response = client.get("/api/v1/workflows/999")
        assert response.status_code == 404
        assert response.json()["detail"]["error"] == "WorkflowNotFound"

    def test_list_by_workspace(self, client, workflow):
        client.post("/api/v1/workflows", json={**WORKFLOW, "workspace_id": 2})

        response = client.get("/api/v1/workflows", params={"workspace_id": 1})
        assert response.status_code == 200
        assert [w["id"] for w in response.json()] == [workflow["id"]]

    def test_list_requires_workspace(self, client):
        assert client.get("/api/v1/workflows").status_code == 422

    def test_update(self, client, workflow):
        response = client.put(f"/api/v1/workflows/{workflow['id']}", json={"is_active": False})

        assert response.status_code == 200
        assert response.json()["is_active"] is False
        assert response.json()["conditions"] == workflow["conditions"]

    def test_update_rejects_unknown_kind(self, client, workflow):
        response = client.put(f"/api/v1/workflows/{workflow['id']}", json={"actions": [{"type": "teleport"}]})
        assert response.status_code == 400

    def test_update_missing(self, client):
        assert client.put("/api/v1/workflows/999", json={"name": "x"}).status_code == 404

    def test_delete(self, client, workflow):
        response = client.delete(f"/api/v1/workflows/{workflow['id']}")
        assert response.status_code == 204
        assert client.get(f"/api/v1/workflows/{workflow['id']}").status_code == 404
        assert client.delete(f"/api/v1/workflows/{workflow['id']}").status_code == 404

    def test_templates(self, client):
        response = client.get("/api/v1/workflows/templates")

        assert response.status_code == 200
        ids = {template["id"] for template in response.json()}
        assert {"content_generation", "code_review", "sentiment_monitoring"} <= ids


class TestExecutionEndpoints:
    """Test cases for execution and event endpoints."""

    def test_execute(self, client, workflow, recorder):
        response = client.post(
            f"/api/v1/workflows/{workflow['id']}/execute",
            json={"context": {"score": -2, "user": {"name": "Ada"}}}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["results"] == [{"type": "record", "result": {"echo": True}}]
        assert recorder.calls == [{"message": "Review from Ada"}]

        refreshed = client.get(f"/api/v1/workflows/{workflow['id']}").json()
        assert refreshed["execution_count"] == 1
        assert refreshed["last_executed"] is not None

    def test_execute_conditions_not_met(self, client, workflow, recorder):
        response = client.post(f"/api/v1/workflows/{workflow['id']}/execute", json={"context": {"score": 3}})

        assert response.status_code == 200
        assert response.json()["success"] is False
        assert response.json()["message"] == "Conditions not met"
        assert recorder.calls == []

    def test_execute_without_body(self, client):
        created = client.post("/api/v1/workflows", json={**WORKFLOW, "conditions": []}).json()

        response = client.post(f"/api/v1/workflows/{created['id']}/execute")

        assert response.status_code == 200
        assert response.json()["success"] is True

    def test_execute_passes_cancel_event(self, client, workflow, monkeypatch):
        engine = get_app_state(client.app).workflow_engine
        real_execute = engine.execute
        seen = {}

        def spy(workflow_id, context, cancel_event=None):
            seen["cancel_event"] = cancel_event
            seen["thread"] = threading.current_thread()
            return real_execute(workflow_id, context, cancel_event)

        monkeypatch.setattr(engine, "execute", spy)

        response = client.post(f"/api/v1/workflows/{workflow['id']}/execute", json={"context": {"score": -1}})

        assert response.status_code == 200
        assert isinstance(seen["cancel_event"], threading.Event)
        assert not seen["cancel_event"].is_set()
        assert seen["thread"] is not threading.main_thread()

    def test_execute_cancelled_maps_to_conflict(self, client, workflow, monkeypatch):
        def cancelled(workflow_id, context, cancel_event=None):
            raise ExecutionCancelled(workflow_id, action_type="record")

        monkeypatch.setattr(get_app_state(client.app).workflow_engine, "execute", cancelled)

        response = client.post(f"/api/v1/workflows/{workflow['id']}/execute", json={"context": {}})
        assert response.status_code == 409
        assert response.json()["detail"]["error"] == "ExecutionCancelled"

    def test_execute_missing(self, client):
        response = client.post("/api/v1/workflows/999/execute", json={"context": {}})
        assert response.status_code == 404
        assert response.json()["detail"]["error"] == "WorkflowUnavailable"

    def test_execute_inactive(self, client, workflow):
        client.put(f"/api/v1/workflows/{workflow['id']}", json={"is_active": False})
        response = client.post(f"/api/v1/workflows/{workflow['id']}/execute", json={"context": {"score": -1}})
        assert response.status_code == 404

    def test_execute_failing_action(self, client, recorder):
        created = client.post("/api/v1/workflows", json={
            **WORKFLOW,
            "conditions": [],
            "actions": [{"type": "explode"}, {"type": "record"}],
        }).json()

        response = client.post(f"/api/v1/workflows/{created['id']}/execute", json={"context": {}})

        assert response.status_code == 502
        detail = response.json()["detail"]
        assert detail["error"] == "ActionExecutionError"
        assert "upstream unavailable" in detail["message"]
        assert detail["context"]["action_type"] == "explode"
        assert recorder.calls == []

        events = client.get(
            f"/api/v1/workflows/{created['id']}/events",
            params={"event_type": "workflow_error"}
        ).json()
        assert len(events) == 1
        assert events[0]["event_data"]["workflow_id"] == created["id"]

    def test_execute_unregistered_kind(self, client, registry):
        registry.register("doomed", lambda params: None)
        created = client.post("/api/v1/workflows", json={
            **WORKFLOW, "conditions": [], "actions": [{"type": "doomed"}],
        }).json()
        registry.unregister("doomed")

        response = client.post(f"/api/v1/workflows/{created['id']}/execute", json={"context": {}})

        assert response.status_code == 422
        assert response.json()["detail"]["error"] == "UnknownActionType"

    def test_events(self, client, workflow):
        client.post(f"/api/v1/workflows/{workflow['id']}/execute", json={"context": {"score": -1}})

        response = client.get(f"/api/v1/workflows/{workflow['id']}/events")

        assert response.status_code == 200
        assert [e["event_type"] for e in response.json()] == ["workflow_created", "workflow_executed"]

    def test_events_rejects_unknown_type(self, client, workflow):
        response = client.get(f"/api/v1/workflows/{workflow['id']}/events", params={"event_type": "nope"})
        assert response.status_code == 422

    def test_actions(self, client):
        response = client.get("/api/v1/actions")

        assert response.status_code == 200
        assert [a["type"] for a in response.json()] == ["explode", "record"]


class TestApplication:
    """Test cases for application wiring and health endpoints."""

    def test_root_and_health(self, client):
        assert client.get("/").status_code == 200
        health = client.get("/health").json()
        assert health["status"] == "healthy"
        assert health["service"] == "workflow-automation-engine"
        assert client.get("/health/live").json()["alive"] is True

    def test_readiness(self, client):
        response = client.get("/health/ready")
        assert response.status_code == 200
        assert set(response.json()["checks"]) == {"database", "action_registry"}

    def test_detailed_health(self, client):
        response = client.get("/health/detailed")
        assert response.status_code == 200
        assert response.json()["overall_status"] == "healthy"

    def test_request_id_is_echoed(self, client):
        response = client.get("/health", headers={"X-Request-ID": "req-123"})
        assert response.headers.get("X-Request-ID") == "req-123"

    def test_components_are_per_application(self, registry):
        first = create_app(get_testing_config(), registry=registry)
        second = create_app(get_testing_config(), registry=registry)

        with TestClient(first), TestClient(second):
            assert get_app_state(first).workflow_engine is not get_app_state(second).workflow_engine
            assert get_app_state(first).db_engine is not get_app_state(second).db_engine

    def test_default_registry_has_builtin_actions(self):
        with TestClient(create_app(get_testing_config())) as client:
            types = {a["type"] for a in client.get("/api/v1/actions").json()}
        assert {"webhook", "ai_completion", "email", "slack", "github"} <= types


class FakeRequest:
    """Request stand-in reporting a disconnect after a number of polls."""

    def __init__(self, connected_polls=0):
        self.connected_polls = connected_polls
        self.polls = 0

    async def is_disconnected(self):
        self.polls += 1
        return self.polls > self.connected_polls


class TestDisconnectWatcher:
    """Test cases for cancelling executions when the client goes away."""

    def test_disconnect_sets_cancel_event(self):
        cancel_event = threading.Event()
        request = FakeRequest(connected_polls=2)

        asyncio.run(_watch_disconnect(request, cancel_event, poll_interval=0.001))

        assert cancel_event.is_set()
        assert request.polls == 3

    def test_already_cancelled_returns_without_polling(self):
        cancel_event = threading.Event()
        cancel_event.set()
        request = FakeRequest()

        asyncio.run(_watch_disconnect(request, cancel_event, poll_interval=0.001))

        assert request.polls == 0
