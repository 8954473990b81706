"""AI assistant endpoints with the LLM client faked out."""

import httpx
import pytest

from studystreak.services.ai_agents import BREAK_ACTIVITIES
from studystreak.services.llm_client import LLMClient


class FailingLLMClient:
    configured = True

    async def call_openai(self, messages, **kwargs):
        raise httpx.ConnectError("connection refused")


class TestChat:
    def test_anonymous_single_turn(self, client, fake_llm):
        resp = client.post("/api/v1/ai/chat", json={"message": "How do I revise for finals?"})
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["content"] == fake_llm.reply
        assert data["tokens"] == 42
        assert data["model"] == "gpt-4o-mini"
        assert data["conversation_id"] is None

        messages = fake_llm.calls[0]
        assert messages[0]["role"] == "system"
        assert '"user_id": "anonymous"' in messages[0]["content"]
        assert messages[1:] == [{"role": "user", "content": "How do I revise for finals?"}]

    def test_context_is_passed_to_the_prompt(self, client, fake_llm):
        client.post(
            "/api/v1/ai/chat",
            json={"message": "Plan my evening", "context": {"study_goal": "pass calculus", "time_available": 2}},
        )
        system = fake_llm.calls[0][0]["content"]
        assert "pass calculus" in system
        assert "current_task" not in system

    def test_authenticated_chat_keeps_history(self, client, auth, headers, fake_llm):
        first = client.post("/api/v1/ai/chat", json={"message": "Help me plan biology"}, headers=headers)
        conversation_id = first.json()["data"]["conversation_id"]
        assert conversation_id is not None

        client.post(
            "/api/v1/ai/chat",
            json={"message": "What about chemistry?", "conversation_id": conversation_id},
            headers=headers,
        )
        second_call = fake_llm.calls[1]
        assert [m["role"] for m in second_call] == ["system", "user", "assistant", "user"]
        assert second_call[-1]["content"] == "What about chemistry?"
        assert f'"user_id": {auth["user"]["id"]}' in second_call[0]["content"]

        detail = client.get(f"/api/v1/ai/conversations/{conversation_id}", headers=headers).json()["data"]
        assert detail["title"] == "Help me plan biology"
        assert [m["role"] for m in detail["messages"]] == ["USER", "ASSISTANT", "USER", "ASSISTANT"]
        assert detail["messages"][1]["tokens"] == 42

    def test_conversation_of_another_user(self, client, headers, make_user, fake_llm):
        first = client.post("/api/v1/ai/chat", json={"message": "Private notes"}, headers=headers)
        conversation_id = first.json()["data"]["conversation_id"]
        _, other = make_user("other@example.com")

        resp = client.post(
            "/api/v1/ai/chat",
            json={"message": "Let me in", "conversation_id": conversation_id},
            headers=other,
        )
        assert resp.status_code == 404
        assert client.get(f"/api/v1/ai/conversations/{conversation_id}", headers=other).status_code == 404

    def test_list_and_delete_conversations(self, client, headers, fake_llm):
        client.post("/api/v1/ai/chat", json={"message": "First topic"}, headers=headers)
        client.post("/api/v1/ai/chat", json={"message": "Second topic"}, headers=headers)
        items = client.get("/api/v1/ai/conversations", headers=headers).json()["data"]
        assert len(items) == 2

        resp = client.delete(f"/api/v1/ai/conversations/{items[0]['id']}", headers=headers)
        assert resp.status_code == 204
        assert len(client.get("/api/v1/ai/conversations", headers=headers).json()["data"]) == 1

    def test_long_message_title_is_truncated(self, client, headers, fake_llm):
        message = "word " * 40
        data = client.post("/api/v1/ai/chat", json={"message": message}, headers=headers).json()["data"]
        detail = client.get(f"/api/v1/ai/conversations/{data['conversation_id']}", headers=headers).json()["data"]
        assert len(detail["title"]) == 50
        assert detail["title"].endswith("...")

    def test_not_configured(self, client):
        resp = client.post("/api/v1/ai/chat", json={"message": "Hello"})
        assert resp.status_code == 503
        assert resp.json()["message"] == "AI assistant is not configured"

    def test_provider_failure_is_502_and_not_persisted(self, client, headers, monkeypatch):
        monkeypatch.setattr("studystreak.services.ai_agents.get_llm_client", lambda: FailingLLMClient())
        resp = client.post("/api/v1/ai/chat", json={"message": "Hello"}, headers=headers)
        assert resp.status_code == 502
        assert resp.json()["message"] == "Failed to process your request. Please try again."
        assert client.get("/api/v1/ai/conversations", headers=headers).json()["data"] == []

    def test_gateway_html_page_is_502(self, client, monkeypatch):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<html>gateway</html>"))
        llm = LLMClient(openai_key="sk-test", max_retries=1, transport=transport)
        monkeypatch.setattr("studystreak.services.ai_agents.get_llm_client", lambda: llm)

        resp = client.post("/api/v1/ai/chat", json={"message": "Hello"})
        assert resp.status_code == 502
        assert resp.json()["status"] == "error"

    def test_empty_message_rejected(self, client, fake_llm):
        assert client.post("/api/v1/ai/chat", json={"message": ""}).status_code == 422

    def test_chat_rate_limit(self, client, fake_llm):
        first = client.post("/api/v1/ai/chat", json={"message": "ping"})
        assert first.headers["X-RateLimit-Remaining"] == "19"
        for _ in range(19):
            assert client.post("/api/v1/ai/chat", json={"message": "ping"}).status_code == 200

        blocked = client.post("/api/v1/ai/chat", json={"message": "ping"})
        assert blocked.status_code == 429
        assert blocked.headers["X-RateLimit-Remaining"] == "0"
        assert int(blocked.headers["Retry-After"]) >= 1
        assert len(fake_llm.calls) == 20

    def test_chat_health(self, client):
        data = client.get("/api/v1/ai/chat").json()["data"]
        assert data["status"] == "healthy"
        assert data["service"] == "ai-chat"
        assert data["configured"] is False


class TestStudyHelpers:
    def test_study_plan(self, client, headers, fake_llm):
        resp = client.post(
            "/api/v1/ai/study-plan",
            json={"subject": "Organic chemistry", "hours_available": 10},
            headers=headers,
        )
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["subject"] == "Organic chemistry"
        assert data["plan"] == fake_llm.reply
        assert data["outline"] == {"sessions": 20, "session_minutes": 30, "daily_hours": 2}

    def test_study_plan_is_cached(self, client, headers, fake_llm):
        payload = {"subject": "Statistics", "hours_available": 4}
        client.post("/api/v1/ai/study-plan", json=payload, headers=headers)
        client.post("/api/v1/ai/study-plan", json=payload, headers=headers)
        assert len(fake_llm.calls) == 1

    def test_study_plan_requires_auth(self, client, fake_llm):
        resp = client.post("/api/v1/ai/study-plan", json={"subject": "Physics", "hours_available": 3})
        assert resp.status_code == 401

    @pytest.mark.parametrize("minutes,expected", [(0, 5), (49, 5), (50, 15), (120, 15)])
    def test_break_suggestion(self, client, minutes, expected):
        data = client.get("/api/v1/ai/break-suggestion", params={"study_minutes": minutes}).json()["data"]
        assert data["break_length"] == expected
        assert data["activity"] in BREAK_ACTIVITIES

    def test_recommendations(self, client, headers, fake_llm):
        data = client.get("/api/v1/ai/recommendations", headers=headers).json()["data"]
        assert data["recommendations"] == fake_llm.reply
        assert data["optimal_study_hour"] is None
        system = fake_llm.calls[0][0]["content"]
        assert system.startswith("You are a personalization AI")
