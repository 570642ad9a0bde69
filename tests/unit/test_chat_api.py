"""Tests for the HTTP surface."""

import pytest
from unittest.mock import AsyncMock, patch

from fastapi.testclient import TestClient

from agendabot.api.routes.chat import get_conversation_handler
from agendabot.main import app


class TestChatEndpoint:
    """Test POST /chat and session routes."""

    @pytest.fixture
    def handler(self):
        handler = AsyncMock()
        handler.handle.return_value = "Olá Maria!"
        handler.engine.peek.return_value = None
        handler.engine.cancel.return_value = True
        return handler

    @pytest.fixture
    def client(self, handler):
        app.dependency_overrides[get_conversation_handler] = lambda: handler
        yield TestClient(app)
        app.dependency_overrides.clear()

    def test_chat(self, client, handler):
        response = client.post(
            "/chat",
            json={"sender": "5511999990000", "message": "oi", "display_name": "Maria"},
            headers={"X-Tenant-ID": "tenant-1"},
        )

        assert response.status_code == 200
        assert response.json()["message"] == "Olá Maria!"
        message = handler.handle.call_args.args[0]
        assert message.tenant_id == "tenant-1"
        assert message.display_name == "Maria"

    def test_chat_without_tenant_header(self, client, handler):
        response = client.post("/chat", json={"sender": "5511999990000", "message": "oi"})

        assert response.status_code == 200
        assert handler.handle.call_args.args[0].tenant_id is None

    def test_chat_requires_message(self, client):
        response = client.post("/chat", json={"sender": "5511999990000", "message": ""})

        assert response.status_code == 422

    def test_chat_handler_error(self, client, handler):
        handler.handle.side_effect = RuntimeError("boom")

        response = client.post("/chat", json={"sender": "5511999990000", "message": "oi"})

        assert response.status_code == 500

    def test_cancel_session_not_found(self, client, handler):
        handler.engine.cancel.return_value = False

        response = client.delete("/chat/session/5511999990000")

        assert response.status_code == 404

    def test_cancel_session(self, client):
        response = client.delete("/chat/session/5511999990000")

        assert response.status_code == 204


class TestHealthEndpoint:
    """Test health routes."""

    def test_health(self):
        response = TestClient(app).get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_ready_without_redis(self):
        with patch(
            "agendabot.api.routes.health.check_redis_health",
            new=AsyncMock(return_value=False),
        ), patch(
            "agendabot.core.scheduling.persistence.get_redis",
            new=AsyncMock(return_value=None),
        ):
            response = TestClient(app).get("/health/ready")

        body = response.json()
        assert response.status_code == 200
        assert body["status"] == "degraded"
        assert body["session_storage"] == "memory"
        assert body["outbox_pending"] == 0
