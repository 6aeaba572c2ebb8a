"""
HTTP and websocket surface, exercised through FastAPI's TestClient.
"""

import pytest
from fastapi.testclient import TestClient

from codelens.api import http as http_api
from codelens.app import create_app
from codelens.llm.key_manager import KeyManager


@pytest.fixture
def client(orchestrator):
    return TestClient(create_app(orchestrator))


@pytest.fixture
def key_store(tmp_path, monkeypatch):
    store = KeyManager(env_file=tmp_path / ".env")
    monkeypatch.setattr(http_api, "key_manager", store)

    async def accept_any(provider, api_key):
        return None

    monkeypatch.setattr(http_api, "validate_api_key", accept_any)
    return store


class TestHttp:

    def test_health(self, client):
        assert client.get("/api/health").json() == {"status": "healthy"}

    def test_status(self, client):
        body = client.get("/api/status").json()
        assert body["mode"] == "code"
        assert body["screenshot_count"] == 0
        assert body["resolved_provider"] == "openai"

    def test_providers(self, client):
        providers = {p["name"]: p for p in client.get("/api/providers").json()}
        assert set(providers) == {"openai", "openrouter", "anthropic", "gemini", "ollama"}
        assert providers["openai"]["is_configured"] is True
        assert providers["openai"]["is_current"] is True
        assert providers["anthropic"]["is_configured"] is False

    def test_models(self, client):
        body = client.get("/api/models").json()
        assert body["provider"] == "openai"
        assert "gpt-4o" in body["models"]
        assert body["current"] == "gpt-4o"

        body = client.get("/api/models", params={"provider": "gemini"}).json()
        assert body["provider"] == "gemini"

    def test_models_unknown_provider(self, client):
        assert client.get("/api/models", params={"provider": "acme"}).status_code == 400

    def test_analyze_without_screenshots(self, client):
        response = client.post("/api/analyze", json={})
        assert response.status_code == 409

    def test_analyze_rejects_unknown_mode(self, client):
        response = client.post("/api/analyze", json={"mode": "poetry"})
        assert response.status_code == 400


class TestKeys:

    def test_save_and_list(self, client, key_store):
        response = client.put("/api/keys/anthropic", json={"key": "sk-ant-abcdef123456"})
        assert response.status_code == 200
        assert response.json()["masked"] == "sk-...3456"

        status = client.get("/api/keys").json()
        assert status["anthropic"]["has_key"] is True

    def test_empty_key(self, client, key_store):
        response = client.put("/api/keys/openai", json={"key": "   "})
        assert response.status_code == 400

    def test_wrong_prefix(self, client, key_store):
        response = client.put("/api/keys/anthropic", json={"key": "sk-abcdef123456"})
        assert response.status_code == 400

    def test_unknown_provider(self, client, key_store):
        assert client.put("/api/keys/acme", json={"key": "sk-x"}).status_code == 400
        assert client.delete("/api/keys/acme").status_code == 400

    def test_failed_validation(self, client, key_store, monkeypatch):
        async def reject(provider, api_key):
            raise RuntimeError("401 Unauthorized")

        monkeypatch.setattr(http_api, "validate_api_key", reject)
        response = client.put("/api/keys/openai", json={"key": "sk-abcdef123456"})
        assert response.status_code == 401
        assert "401 Unauthorized" in response.json()["detail"]

    def test_delete(self, client, key_store):
        client.put("/api/keys/gemini", json={"key": "AIza-abcdef"})
        assert client.delete("/api/keys/gemini").json() == {"status": "deleted", "provider": "gemini"}
        assert client.get("/api/keys").json()["gemini"]["has_key"] is False


class TestWebSocket:

    def test_ws_route_is_registered(self, orchestrator):
        from fastapi.routing import APIWebSocketRoute

        app = create_app(orchestrator)
        routes = [r for r in app.routes if isinstance(r, APIWebSocketRoute)]
        assert [r.path for r in routes] == ["/ws"]

    def test_sends_status_on_connect(self, client):
        with client.websocket_connect("/ws") as ws:
            message = ws.receive_json()
            assert message["type"] == "status"
            assert message["content"]["mode"] == "code"

    def test_set_mode_then_get_status(self, client, recorder):
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.send_json({"type": "set_mode", "content": "general"})
            ws.send_json({"type": "get_status"})
            message = ws.receive_json()

        assert message["content"]["mode"] == "general"
        assert recorder.of("mode_changed") == ["general"]

    def test_invalid_request_returns_error(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.send_json({"type": "set_mode", "content": "poetry"})
            error = ws.receive_json()
            ws.send_json({"type": "open_screenshot", "content": 1})
            missing = ws.receive_json()

        assert error["type"] == "error"
        assert "poetry" in error["content"]
        assert missing == {"type": "error", "content": "No screenshot in slot 1"}

    def test_unknown_and_malformed_messages_are_ignored(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.send_text("not json")
            ws.send_json({"type": "does_not_exist"})
            ws.send_json({"type": "get_status"})
            assert ws.receive_json()["type"] == "status"
