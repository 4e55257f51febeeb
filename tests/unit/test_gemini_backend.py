"""
Tests for GeminiClient request building, response classification and retries.

The HTTP layer is replaced with httpx.MockTransport and the backoff sleep
with a recorder, so no network access or real waiting happens.
"""

import json

import httpx
import pytest

from sheettrans.core.exceptions import ApiError, RateLimited, RetriesExhausted, TransportError
from sheettrans.translation.backends import GeminiClient
from sheettrans.translation.base import GenerationConfig

KEY = "AIzaSyTestKey_0123456789abcdef"


def ok_body(text):
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


class SleepRecorder:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


def make_client(responses, **kwargs):
    """Client whose transport replays `responses` (httpx.Response or exception) in order."""
    requests = []
    queue = list(responses)

    def handler(request):
        requests.append(request)
        item = queue.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    sleep = SleepRecorder()
    client = GeminiClient(
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        sleep=sleep,
        **kwargs
    )
    return client, requests, sleep


class TestRequest:
    """Outgoing request shape."""

    @pytest.mark.asyncio
    async def test_payload_and_key(self):
        client, requests, _ = make_client([httpx.Response(200, json=ok_body("namaste"))])

        text = await client.generate("system text", "user text", KEY)

        assert text == "namaste"
        request = requests[0]
        assert request.method == "POST"
        assert request.url.params["key"] == KEY
        assert request.url.path.endswith(f"/{GeminiClient.DEFAULT_MODEL}:generateContent")

        body = json.loads(request.content)
        assert body["contents"] == [{"parts": [{"text": "user text"}]}]
        assert body["systemInstruction"] == {"parts": [{"text": "system text"}]}
        assert body["generationConfig"] == {
            "temperature": 0.2,
            "topP": 1.0,
            "topK": 32,
            "maxOutputTokens": 8192,
        }
        assert len(body["safetySettings"]) == 4
        assert all(s["threshold"] == "BLOCK_NONE" for s in body["safetySettings"])

    def test_from_config(self):
        client = GeminiClient.from_config({
            "model": {
                "name": "gemini-test",
                "max_attempts": 3,
                "generation": {"temperature": 0.0, "top_k": 8},
            }
        })
        assert client.endpoint.endswith("/gemini-test:generateContent")
        assert client.max_attempts == 3
        assert client.generation.temperature == 0.0
        assert client.generation.top_k == 8
        assert client.generation.max_output_tokens == 8192

    def test_invalid_attempt_budget(self):
        with pytest.raises(ValueError):
            GeminiClient(max_attempts=0)

    def test_get_info(self):
        info = GeminiClient(generation=GenerationConfig(temperature=0.5)).get_info()
        assert info["name"] == "GeminiClient"
        assert info["temperature"] == 0.5


class TestRetry:
    """Backoff on 429/503 and transport failures."""

    @pytest.mark.asyncio
    async def test_overloaded_then_success(self):
        client, requests, sleep = make_client([
            httpx.Response(503),
            httpx.Response(503),
            httpx.Response(503),
            httpx.Response(200, json=ok_body("done")),
        ])

        assert await client.generate("s", "u", KEY) == "done"
        assert len(requests) == 4
        assert sleep.delays == [1.0, 2.0, 4.0]
        assert client.stats["retries"] == 3
        assert client.stats["rate_limited"] == 3

    @pytest.mark.asyncio
    async def test_rate_limited_until_budget_spent(self):
        client, requests, sleep = make_client([httpx.Response(429) for _ in range(5)])

        with pytest.raises(RetriesExhausted) as exc_info:
            await client.generate("s", "u", KEY)

        assert len(requests) == 5
        # no sleep after the final attempt
        assert sleep.delays == [1.0, 2.0, 4.0, 8.0]
        error = exc_info.value
        assert error.attempts == 5
        assert isinstance(error.last_error, RateLimited)
        assert error.last_error.status_code == 429

    @pytest.mark.asyncio
    async def test_transport_error_is_retried(self):
        client, requests, sleep = make_client([
            httpx.ConnectError("connection refused"),
            httpx.ReadTimeout("timed out"),
            httpx.Response(200, json=ok_body("ok")),
        ])

        assert await client.generate("s", "u", KEY) == "ok"
        assert len(requests) == 3
        assert sleep.delays == [1.0, 2.0]
        assert client.stats["transport_errors"] == 2

    @pytest.mark.asyncio
    async def test_transport_errors_exhaust_budget(self):
        client, _, _ = make_client(
            [httpx.ConnectError("down") for _ in range(2)],
            max_attempts=2
        )

        with pytest.raises(RetriesExhausted) as exc_info:
            await client.generate("s", "u", KEY)
        assert isinstance(exc_info.value.last_error, TransportError)


class TestApiErrors:
    """Non-retryable failures surface immediately."""

    @pytest.mark.asyncio
    async def test_bad_request_carries_provider_message(self):
        client, requests, sleep = make_client([
            httpx.Response(400, json={"error": {"message": "API key not valid"}})
        ])

        with pytest.raises(ApiError) as exc_info:
            await client.generate("s", "u", KEY)

        assert len(requests) == 1
        assert sleep.delays == []
        error = exc_info.value
        assert error.status_code == 400
        assert error.message == "API Error: 400 Bad Request - API key not valid"
        assert not error.recoverable

    @pytest.mark.asyncio
    async def test_error_without_json_body(self):
        client, _, _ = make_client([httpx.Response(500, text="<html>oops</html>")])

        with pytest.raises(ApiError) as exc_info:
            await client.generate("s", "u", KEY)
        assert "Unknown error" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_empty_candidates(self):
        client, requests, _ = make_client([
            httpx.Response(200, json={"candidates": [], "promptFeedback": {"blockReason": "SAFETY"}})
        ])

        with pytest.raises(ApiError) as exc_info:
            await client.generate("s", "u", KEY)

        assert len(requests) == 1
        assert exc_info.value.status_code is None
        assert "no content" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_missing_parts(self):
        client, _, _ = make_client([
            httpx.Response(200, json={"candidates": [{"content": {}, "finishReason": "SAFETY"}]})
        ])

        with pytest.raises(ApiError):
            await client.generate("s", "u", KEY)

    @pytest.mark.asyncio
    async def test_malformed_candidate_shape(self):
        client, _, _ = make_client([
            httpx.Response(200, json={"candidates": [["not", "an", "object"]]})
        ])

        with pytest.raises(ApiError):
            await client.generate("s", "u", KEY)


def test_extract_text():
    assert GeminiClient.extract_text(ok_body("x")) == "x"
    assert GeminiClient.extract_text({}) is None
    assert GeminiClient.extract_text("not a dict") is None
    assert GeminiClient.extract_text({"candidates": [{"content": {"parts": []}}]}) is None


@pytest.mark.parametrize("body", [
    {"candidates": [["text"]]},
    {"candidates": "text"},
    {"candidates": [{"content": ["text"]}]},
    {"candidates": [{"content": {"parts": [["text"]]}}]},
    {"candidates": [{"content": {"parts": [{"text": 5}]}}]},
])
def test_extract_text_wrong_shapes(body):
    assert GeminiClient.extract_text(body) is None


def test_generate_sync():
    client, _, _ = make_client([httpx.Response(200, json=ok_body("sync"))])
    assert client.generate_sync("s", "u", KEY) == "sync"
