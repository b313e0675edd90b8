"""Tests for LLM client module"""

import asyncio
import json
from unittest.mock import AsyncMock, Mock, call

import httpx
import openai
import pytest
from lib.config import ParserSettings, Provider
from lib.llm_client import (
    LLMClient,
    ProviderAuthMissing,
    ProviderMalformedResponse,
    ProviderRateLimited,
    ProviderRequestError,
    ProviderTimeout,
    call_ollama,
    call_openai,
    call_with_backoff,
    decode_json_object,
)

OLLAMA_SETTINGS = ParserSettings(provider=Provider.OLLAMA, model="llama3.2:3b", timeout=5.0)
OPENAI_SETTINGS = ParserSettings(provider=Provider.OPENAI, model="gpt-4o-mini", openai_api_key="sk-test")

ONION = {"ingredient": "onion", "quantity": 0.25, "unit": "cup", "modifiers": ["diced"]}


def ollama_reply(payload, status_code=200):
    return httpx.Response(status_code, json={"response": json.dumps(payload)})


def mock_http(handler):
    """AsyncClient whose requests go to handler instead of the network."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def openai_completion(content):
    return Mock(choices=[Mock(message=Mock(content=content))])


def mock_openai(**create_kwargs):
    client = Mock()
    client.chat.completions.create = AsyncMock(**create_kwargs)
    return client


OPENAI_REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


class TestDecodeJsonObject:
    """Tests for reply decoding"""

    def test_object(self):
        """Decodes a JSON object"""
        assert decode_json_object('{"ingredient": "salt"}') == {"ingredient": "salt"}

    def test_invalid_json(self):
        """Broken JSON is malformed"""
        with pytest.raises(ProviderMalformedResponse):
            decode_json_object("{ingredient: salt")

    def test_not_an_object(self):
        """A JSON array is malformed"""
        with pytest.raises(ProviderMalformedResponse):
            decode_json_object('["salt"]')

    def test_empty(self):
        """Empty and missing replies are malformed"""
        with pytest.raises(ProviderMalformedResponse):
            decode_json_object("")
        with pytest.raises(ProviderMalformedResponse):
            decode_json_object(None)


class TestCallOllama:
    """Tests for the Ollama backend"""

    def test_success(self):
        """Posts a JSON-mode, temperature 0 request"""
        seen = []

        def handler(request):
            seen.append(request)
            return ollama_reply(ONION)

        result = asyncio.run(call_ollama("1/4 cup diced onion", OLLAMA_SETTINGS, http_client=mock_http(handler)))

        assert result == ONION
        request = seen[0]
        body = json.loads(request.content)
        assert str(request.url) == "http://localhost:11434/api/generate"
        assert body["model"] == "llama3.2:3b"
        assert body["format"] == "json"
        assert body["stream"] is False
        assert body["options"]["temperature"] == 0
        assert 'Parse: "1/4 cup diced onion"' in body["prompt"]
        assert request.extensions["timeout"]["read"] == 5.0

    def test_rate_limited(self):
        """HTTP 429 is a rate limit"""
        client = mock_http(lambda request: httpx.Response(429))
        with pytest.raises(ProviderRateLimited, match="Too Many Requests"):
            asyncio.run(call_ollama("salt", OLLAMA_SETTINGS, http_client=client))

    def test_http_error(self):
        """Other HTTP errors are request errors carrying the status"""
        client = mock_http(lambda request: httpx.Response(500))
        with pytest.raises(ProviderRequestError) as excinfo:
            asyncio.run(call_ollama("salt", OLLAMA_SETTINGS, http_client=client))
        assert excinfo.value.status_code == 500

    def test_timeout(self):
        """Transport timeouts map to ProviderTimeout"""
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(ProviderTimeout):
            asyncio.run(call_ollama("salt", OLLAMA_SETTINGS, http_client=mock_http(handler)))

    def test_connection_error(self):
        """Unreachable server is a request error"""
        def handler(request):
            raise httpx.ConnectError("Connection refused", request=request)

        with pytest.raises(ProviderRequestError, match="Cannot connect to Ollama"):
            asyncio.run(call_ollama("salt", OLLAMA_SETTINGS, http_client=mock_http(handler)))

    def test_invalid_model_json(self):
        """A non-JSON model reply is malformed"""
        client = mock_http(lambda request: httpx.Response(200, json={"response": "not json"}))
        with pytest.raises(ProviderMalformedResponse):
            asyncio.run(call_ollama("salt", OLLAMA_SETTINGS, http_client=client))


class TestCallOpenAI:
    """Tests for the OpenAI backend"""

    def test_success(self):
        """Requests JSON mode at temperature 0"""
        client = mock_openai(return_value=openai_completion(json.dumps(ONION)))

        result = asyncio.run(call_openai("1/4 cup diced onion", OPENAI_SETTINGS, client=client))

        assert result == ONION
        kwargs = client.chat.completions.create.await_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["temperature"] == 0
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["messages"][0]["role"] == "system"
        assert kwargs["messages"][1]["content"] == 'Parse: "1/4 cup diced onion"'

    def test_missing_key_fails_before_request(self):
        """No API key raises without calling the API"""
        client = mock_openai()
        settings = ParserSettings(provider=Provider.OPENAI, openai_api_key=None)

        with pytest.raises(ProviderAuthMissing):
            asyncio.run(call_openai("salt", settings, client=client))
        client.chat.completions.create.assert_not_awaited()

    def test_rate_limited(self):
        """RateLimitError maps to ProviderRateLimited"""
        client = mock_openai(side_effect=openai.RateLimitError(
            "Rate limit reached", response=httpx.Response(429, request=OPENAI_REQUEST), body=None
        ))
        with pytest.raises(ProviderRateLimited):
            asyncio.run(call_openai("salt", OPENAI_SETTINGS, client=client))

    def test_timeout(self):
        """APITimeoutError maps to ProviderTimeout"""
        client = mock_openai(side_effect=openai.APITimeoutError(request=OPENAI_REQUEST))
        with pytest.raises(ProviderTimeout):
            asyncio.run(call_openai("salt", OPENAI_SETTINGS, client=client))

    def test_status_error(self):
        """Server errors keep their status code"""
        client = mock_openai(side_effect=openai.InternalServerError(
            "Server error", response=httpx.Response(503, request=OPENAI_REQUEST), body=None
        ))
        with pytest.raises(ProviderRequestError) as excinfo:
            asyncio.run(call_openai("salt", OPENAI_SETTINGS, client=client))
        assert excinfo.value.status_code == 503

    def test_empty_choices(self):
        """No choices is malformed"""
        client = mock_openai(return_value=Mock(choices=[]))
        with pytest.raises(ProviderMalformedResponse):
            asyncio.run(call_openai("salt", OPENAI_SETTINGS, client=client))


class TestCallWithBackoff:
    """Tests for rate limit retries"""

    def test_backoff_delays(self):
        """Three rate limits wait 2s, 4s, 8s then succeed"""
        sleep = AsyncMock()
        request = AsyncMock(side_effect=[ProviderRateLimited("429")] * 3 + [ONION])

        result = asyncio.run(call_with_backoff(request, sleep=sleep))

        assert result == ONION
        assert request.await_count == 4
        assert sleep.await_args_list == [call(2), call(4), call(8)]

    def test_gives_up_after_three_retries(self):
        """A fourth rate limit propagates"""
        sleep = AsyncMock()
        request = AsyncMock(side_effect=ProviderRateLimited("429"))

        with pytest.raises(ProviderRateLimited):
            asyncio.run(call_with_backoff(request, sleep=sleep))

        assert request.await_count == 4
        assert sleep.await_count == 3

    def test_stops_after_success(self):
        """Success on the first retry makes no further calls"""
        sleep = AsyncMock()
        request = AsyncMock(side_effect=[ProviderRateLimited("429"), ONION])

        assert asyncio.run(call_with_backoff(request, sleep=sleep)) == ONION
        assert request.await_count == 2
        assert sleep.await_args_list == [call(2)]

    def test_other_errors_not_retried(self):
        """Timeouts propagate immediately"""
        sleep = AsyncMock()
        request = AsyncMock(side_effect=ProviderTimeout("ollama", 30))

        with pytest.raises(ProviderTimeout):
            asyncio.run(call_with_backoff(request, sleep=sleep))

        assert request.await_count == 1
        sleep.assert_not_awaited()


class TestLLMClient:
    """Tests for the async client"""

    def test_complete_retries_ollama_rate_limit(self):
        """A 429 from Ollama is retried"""
        sleep = AsyncMock()
        replies = [httpx.Response(429), ollama_reply(ONION)]
        client = LLMClient(OLLAMA_SETTINGS, http_client=mock_http(lambda request: replies.pop(0)), sleep=sleep)

        result = asyncio.run(client.complete("1/4 cup diced onion"))

        assert result == ONION
        assert replies == []
        assert sleep.await_args_list == [call(2)]

    def test_complete_uses_openai_client(self):
        """The OpenAI provider uses the injected client"""
        openai_client = mock_openai(return_value=openai_completion('{"ingredient": "salt"}'))
        client = LLMClient(OPENAI_SETTINGS, openai_client=openai_client)

        assert asyncio.run(client.complete("salt")) == {"ingredient": "salt"}

    def test_timeout_aborts_request(self):
        """A call slower than the timeout is cancelled and raises ProviderTimeout"""
        events = []

        async def handler(request):
            events.append("started")
            try:
                await asyncio.sleep(5)
            except asyncio.CancelledError:
                events.append("cancelled")
                raise
            return ollama_reply(ONION)

        settings = ParserSettings(provider=Provider.OLLAMA, timeout=0.05)
        client = LLMClient(settings, http_client=mock_http(handler))

        with pytest.raises(ProviderTimeout):
            asyncio.run(client.request("salt"))
        assert events == ["started", "cancelled"]

    def test_cancel_during_call(self):
        """Cancelling complete() stops the in-flight request"""
        events = []

        async def handler(request):
            events.append("started")
            try:
                await asyncio.sleep(5)
            except asyncio.CancelledError:
                events.append("cancelled")
                raise
            events.append("finished")
            return ollama_reply(ONION)

        client = LLMClient(OLLAMA_SETTINGS, http_client=mock_http(handler))

        async def run():
            task = asyncio.create_task(client.complete("salt"))
            await asyncio.sleep(0.05)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(run())
        assert events == ["started", "cancelled"]

    def test_cancel_during_backoff(self):
        """Cancelling complete() while it waits to retry makes no further calls"""
        calls = []
        delays = []

        async def slow_sleep(delay):
            delays.append(delay)
            await asyncio.sleep(5)

        def handler(request):
            calls.append(request)
            return httpx.Response(429)

        client = LLMClient(OLLAMA_SETTINGS, http_client=mock_http(handler), sleep=slow_sleep)

        async def run():
            task = asyncio.create_task(client.complete("salt"))
            await asyncio.sleep(0.05)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(run())
        assert len(calls) == 1
        assert delays == [2]

    def test_missing_key_is_not_retried(self):
        """Auth errors surface on the first attempt"""
        sleep = AsyncMock()
        client = LLMClient(ParserSettings(provider=Provider.OPENAI), openai_client=mock_openai(), sleep=sleep)

        with pytest.raises(ProviderAuthMissing):
            asyncio.run(client.complete("salt"))
        sleep.assert_not_awaited()
