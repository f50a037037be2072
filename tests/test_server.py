"""Integration tests for the FastAPI server endpoints."""

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from claimai.core.builtin_tools import create_builtin_provider
from claimai.core.orchestrator import create_orchestrator
from claimai.core.registry import ToolRegistry
from claimai.server.app import create_app
from claimai.server.dependencies import reset_orchestrator, set_orchestrator


@pytest.fixture
def orchestrator(sample_config, local_provider, text_response, tool_call_response):
    registry = ToolRegistry.load([local_provider, create_builtin_provider()], timeout=5)
    orch = create_orchestrator(sample_config, registry=registry, llm_factory=lambda cfg: MagicMock())
    for name, worker in orch.workers.items():
        worker.llm.chat.side_effect = lambda messages, tools=None, name=name: text_response(f"Antwort von {name}")
    return orch


@pytest.fixture(autouse=True)
def _install(orchestrator):
    """Install the test orchestrator for every request."""
    set_orchestrator(orchestrator)
    yield
    reset_orchestrator()


@pytest.fixture
def client():
    return TestClient(create_app())


class TestHealth:
    def test_health_returns_ok(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ok"
        assert data["service"] == "claimai"
        assert data["backend"] == "supervisor"


class TestChat:
    def test_chat(self, client):
        resp = client.post("/api/chat", json={"prompt": "Was steht in der neuesten E-Mail?", "threadId": "t1"})
        assert resp.status_code == 200
        data = resp.json()
        assert data["response"] == "Antwort von general"
        assert data["threadId"] == "t1"
        assert "uiResource" not in data

    def test_default_thread_from_user_header(self, client, orchestrator):
        resp = client.post("/api/chat", json={"prompt": "Hallo"}, headers={"X-User-Id": "erin"})
        assert resp.json()["threadId"] == "session_erin"
        assert orchestrator.store.peek("session_erin") is not None

    def test_anonymous_default(self, client):
        assert client.post("/api/chat", json={"prompt": "Hallo"}).json()["threadId"] == "session_anonymous"

    def test_blank_prompt(self, client):
        resp = client.post("/api/chat", json={"prompt": "  "})
        assert resp.status_code == 400

    def test_missing_prompt(self, client):
        assert client.post("/api/chat", json={}).status_code == 422

    def test_ui_resource_returned(self, client, orchestrator, text_response, tool_call_response):
        orchestrator.workers["triage_worker"].llm.chat.side_effect = [
            tool_call_response(("c1", "draft.calendar.compose", {"subject": "Termin", "start": "a", "end": "b"})),
            text_response("Entwurf erstellt."),
        ]
        resp = client.post("/api/chat", json={"prompt": "Plane einen Termin im Kalender", "threadId": "t2"})
        data = resp.json()
        assert data["uiResource"]["uri"].startswith("ui://draft/calendar/")
        assert data["uiResource"]["mimeType"] == "text/html"


class TestWorkers:
    def test_list_workers(self, client):
        resp = client.get("/api/workers")
        assert resp.status_code == 200
        names = [w["name"] for w in resp.json()]
        assert names == ["triage_worker", "claims_data_worker", "general"]


class TestThreads:
    def test_get_thread(self, client):
        client.post("/api/chat", json={"prompt": "liste alle schadenfälle", "threadId": "t3"})
        resp = client.get("/api/threads/t3")
        assert resp.status_code == 200
        data = resp.json()
        assert data["message_count"] == 3
        assert [m["authored_by"] for m in data["messages"]] == [None, "claims_data_worker", "general"]

    def test_unknown_thread(self, client):
        assert client.get("/api/threads/nope").status_code == 404

    def test_list_and_delete(self, client):
        client.post("/api/chat", json={"prompt": "Hallo", "threadId": "t4"})
        assert "t4" in client.get("/api/threads").json()
        assert client.delete("/api/threads/t4").json() == {"ok": True}
        assert client.delete("/api/threads/t4").status_code == 404
