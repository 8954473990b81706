"""OpenAI client retries and response parsing."""

import json

import httpx
import pytest

from studystreak.services.llm_client import (
    OPENAI_API_URL,
    LLMClient,
    LLMNotConfiguredError,
    extract_openai_content,
    extract_total_tokens,
)

OK_BODY = {
    "model": "gpt-4o-mini",
    "choices": [{"message": {"role": "assistant", "content": "Hello!"}}],
    "usage": {"total_tokens": 12},
}


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    waits = []

    async def _backoff(self, provider, attempt):
        waits.append(attempt)

    monkeypatch.setattr(LLMClient, "_backoff", _backoff)
    return waits


def _client(statuses, seen=None):
    """Client whose transport answers with each status in turn, then 200."""
    queue = list(statuses)

    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        if queue:
            return httpx.Response(queue.pop(0), json={"error": "nope"})
        return httpx.Response(200, json=OK_BODY)

    return LLMClient(openai_key="sk-test", max_retries=3, transport=httpx.MockTransport(handler))


class TestCallOpenAI:
    async def test_success_payload_and_headers(self):
        seen = []
        client = _client([], seen)
        result = await client.call_openai(
            [{"role": "user", "content": "hi"}], model="gpt-4o-mini", temperature=0.2, max_tokens=50
        )

        assert result == OK_BODY
        request = seen[0]
        assert str(request.url) == OPENAI_API_URL
        assert request.headers["Authorization"] == "Bearer sk-test"
        body = json.loads(request.content)
        assert body == {
            "model": "gpt-4o-mini",
            "messages": [{"role": "user", "content": "hi"}],
            "temperature": 0.2,
            "max_tokens": 50,
        }

    async def test_retries_throttling_then_succeeds(self, no_sleep):
        seen = []
        result = await _client([429, 503], seen).call_openai([{"role": "user", "content": "hi"}])
        assert result == OK_BODY
        assert len(seen) == 3
        assert no_sleep == [0, 1]

    async def test_client_error_is_not_retried(self, no_sleep):
        seen = []
        with pytest.raises(httpx.HTTPStatusError) as exc:
            await _client([400], seen).call_openai([{"role": "user", "content": "hi"}])
        assert exc.value.response.status_code == 400
        assert len(seen) == 1
        assert no_sleep == []

    async def test_gives_up_after_max_retries(self):
        seen = []
        with pytest.raises(httpx.HTTPStatusError):
            await _client([500, 502, 503], seen).call_openai([{"role": "user", "content": "hi"}])
        assert len(seen) == 3

    async def test_transport_errors_are_retried(self, no_sleep):
        attempts = []

        def handler(request):
            attempts.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        client = LLMClient(openai_key="sk-test", max_retries=2, transport=httpx.MockTransport(handler))
        with pytest.raises(httpx.ConnectError):
            await client.call_openai([{"role": "user", "content": "hi"}])
        assert len(attempts) == 2
        assert no_sleep == [0]

    @pytest.mark.parametrize("response", [
        httpx.Response(200, text="<html>gateway</html>"),
        httpx.Response(200, json=["not", "an", "object"]),
    ])
    async def test_unreadable_success_body(self, response):
        client = LLMClient(
            openai_key="sk-test", max_retries=1, transport=httpx.MockTransport(lambda request: response)
        )
        with pytest.raises(httpx.DecodingError):
            await client.call_openai([{"role": "user", "content": "hi"}])

    async def test_not_configured(self):
        client = LLMClient(openai_key="")
        assert client.configured is False
        with pytest.raises(LLMNotConfiguredError):
            await client.call_openai([{"role": "user", "content": "hi"}])


class TestParsing:
    def test_string_content(self):
        assert extract_openai_content(OK_BODY) == "Hello!"

    def test_list_content(self):
        result = {"choices": [{"message": {"content": [{"text": "a"}, {"text": "b"}, "junk"]}}]}
        assert extract_openai_content(result) == "a\nb"

    @pytest.mark.parametrize("result", [{}, {"choices": []}, {"choices": [{"message": {"content": ""}}]}])
    def test_fallback(self, result):
        assert extract_openai_content(result, fallback="sorry") == "sorry"

    def test_total_tokens(self):
        assert extract_total_tokens(OK_BODY) == 12
        assert extract_total_tokens({"usage": {}}) is None
        assert extract_total_tokens({}) is None
