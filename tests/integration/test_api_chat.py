"""
Integration tests for the chat HTTP API.

Runs the FastAPI app in-process with a fresh orchestrator per test (local-only
mode, no remote model).
"""

import pytest
from fastapi.testclient import TestClient

from api.main import app
from api.routes.chat import get_orchestrator
from planner.chat_adapter import ChatOrchestrator
from planner.session_store import SessionStore


@pytest.fixture
def orchestrator(local_settings):
    return ChatOrchestrator(store=SessionStore(settings=local_settings), settings=local_settings)


@pytest.fixture
def client(orchestrator):
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


class TestHealth:
    def test_health_reports_local_mode(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "llm_available": False, "sessions": 0}

    def test_session_count(self, client):
        client.post("/chat", json={"session_id": "s1", "message": "你好"})
        assert client.get("/health").json()["sessions"] == 1


class TestChatEndpoint:
    def test_travel_turn(self, client):
        response = client.post("/chat", json={"session_id": "s1", "message": "我想去三亚玩，预算1万"})

        assert response.status_code == 200
        data = response.json()
        assert data["intent"] == "travel"
        assert data["source"] == "local"
        assert data["entities"] == {"destination": "三亚", "budget": 10000}
        assert data["widget"]["type"] == "text_input"
        assert data["workflow_domain"] == "travel"
        assert data["workflow_phase"] == "dates"
        assert data["workflow_widgets"] == [
            {"type": "date_range", "payload": {"slot": "dates", "label": "出行日期"}}
        ]
        assert data["needs_more_info"] is True

    def test_empty_message_rejected(self, client):
        response = client.post("/chat", json={"session_id": "s1", "message": ""})

        assert response.status_code == 400
        assert response.json()["error"] == "Validation error"

    def test_missing_session_id_rejected(self, client):
        response = client.post("/chat", json={"message": "你好"})
        assert response.status_code == 400


class TestSessionEndpoints:
    def test_entity_update_completes_plan(self, client):
        client.post("/chat", json={"session_id": "s1", "message": "我想去三亚玩，预算1万"})

        response = client.post(
            "/sessions/s1/entities",
            json={
                "entities": {
                    "dates": {"start": "2025-12-25", "end": "2025-12-28"},
                    "travelers": 2,
                    "transport_mode": "flight",
                }
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert data["is_complete"] is True
        assert data["workflow_phase"] == "complete"
        assert data["plan"]["title"] == "三亚 旅行计划"
        assert data["plan"]["widgets"][0]["type"] == "flight_search"

    def test_entity_update_requires_object(self, client):
        response = client.post("/sessions/s1/entities", json={"entities": "三亚"})
        assert response.status_code == 400

    def test_reset_is_idempotent(self, client, orchestrator):
        client.post("/chat", json={"session_id": "s1", "message": "我想去三亚玩"})

        first = client.delete("/sessions/s1")
        second = client.delete("/sessions/s1")
        unknown = client.delete("/sessions/never-seen")

        assert first.status_code == 204
        assert second.status_code == 204
        assert unknown.status_code == 204
        assert orchestrator.get_collected_entities("s1") == {}
