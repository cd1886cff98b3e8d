"""Tests for the FastAPI surface."""

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from kgchat.chat import ChatSession
from kgchat.common.llm_client import LLMClient, LLMError
from kgchat.common.memory_store import InMemoryEventStore
from kgchat.scribe.committer import CollectingViewSink
from kgchat.server import create_app


REPLY = (
    "Form below.\n"
    '<events>[{"base": "Person", "type": "Individual", "value": "ann", "actor": "llm"}]</events>\n'
    '<view>{"type": "form", "mode": "create", "concept": "Person", "model": "Model Person"}</view>\n'
    '<view>{"type": "form", "mode": "edit", "concept": "Person", "model": "Model Person", '
    '"stage": "review", "condition": "$.age >= 18"}</view>'
)


@pytest.fixture
def session():
    llm = LLMClient(provider="openrouter", model="openai/gpt-4o", openrouter_api_key="sk-test")
    llm.complete = AsyncMock(return_value=REPLY)
    return ChatSession(InMemoryEventStore(), llm, sink=CollectingViewSink())


@pytest.fixture
def client(session):
    return TestClient(create_app(session))


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["initialized"] is True
        assert body["provider"] == "openrouter"
        assert body["llm_available"] is True
        assert body["events"] == 0


class TestContext:
    def test_empty_store(self, client):
        response = client.post("/context", json={"query": "anything"})

        assert response.status_code == 200
        assert response.json() == {
            "query": "anything",
            "context": "=== DATA IN MEMORY ===\nNo individuals found in memory.",
        }


class TestChat:
    def test_turn(self, client):
        response = client.post("/chat", json={"message": "Register Ann"})

        assert response.status_code == 200
        body = response.json()
        assert body["text"] == "Form below."
        assert len(body["events"]) == 1
        assert body["events"][0]["actor"] == "gpt-4o"
        assert body["events"][0]["cause"] == ["Person"]
        assert [v["mode"] for v in body["views"]] == ["create", "edit"]

    def test_pending_views(self, client):
        client.post("/chat", json={"message": "Register Ann"})

        body = client.get("/views/pending").json()

        assert [v["mode"] for v in body["shown"]] == ["create"]
        assert body["stages"][0]["model"] == "Model Person"
        assert body["stages"][0]["stage"] == "review"
        assert body["stages"][0]["view"]["condition"] == "$.age >= 18"

    def test_gateway_error_is_502(self, client, session):
        session.llm.complete.side_effect = LLMError("OpenRouter error: 500", status_code=500)

        response = client.post("/chat", json={"message": "hi"})

        assert response.status_code == 502
        assert response.json()["detail"] == "OpenRouter error: 500"

    def test_message_required(self, client):
        assert client.post("/chat", json={}).status_code == 422


class TestStartup:
    def test_dormant_config_leaves_chat_disabled(self):
        from kgchat.common.config import KgChatConfig

        with TestClient(create_app(config=KgChatConfig(state="dormant"))) as dormant:
            assert dormant.get("/health").json()["initialized"] is False
            assert dormant.post("/chat", json={"message": "hi"}).status_code == 503
            assert dormant.post("/context", json={"query": "x"}).status_code == 503

    def test_active_config_builds_session(self):
        from unittest.mock import patch
        from kgchat.common.config import KgChatConfig

        with patch("kgchat.server.ensure_directories"), \
             TestClient(create_app(config=KgChatConfig(state="active"))) as active:
            body = active.get("/health").json()

        assert body["initialized"] is True
        assert body["provider"] == "openrouter"
        assert body["llm_available"] is False
