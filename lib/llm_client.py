"""LLM provider client for ingredient parsing.

Two backends sit behind one call: Ollama (/api/generate) and OpenAI (chat
completions). Both are asked for temperature 0, JSON-only output. Calls are
made on the event loop (httpx / AsyncOpenAI), so a timeout or a cancelled
task aborts the request itself. Rate limits are retried with exponential
backoff (2s, 4s, 8s).
"""

import asyncio
import json
import logging
from typing import Optional

import httpx
import openai

from lib.config import ParserSettings, Provider
from prompts.ingredient_parsing import build_messages, build_prompt

logger = logging.getLogger(__name__)

MAX_RETRIES = 3


class ProviderError(Exception):
    """Base exception for LLM provider calls"""
    pass


class ProviderTimeout(ProviderError):
    """Raised when a call exceeds the configured timeout"""
    def __init__(self, provider: str, timeout: float):
        self.provider = provider
        self.timeout = timeout
        super().__init__(f"{provider} request timed out after {timeout:g}s")


class ProviderRateLimited(ProviderError):
    """Raised when the provider signals a rate limit (retryable)"""
    pass


class ProviderMalformedResponse(ProviderError):
    """Raised when the reply does not decode to the expected JSON object"""
    pass


class ProviderAuthMissing(ProviderError):
    """Raised when the selected provider needs a credential that is not set"""
    pass


class ProviderRequestError(ProviderError):
    """Raised for any other network or HTTP failure"""
    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


def decode_json_object(raw) -> dict:
    """Decode a model reply that must be a JSON object."""
    if not isinstance(raw, str) or not raw.strip():
        raise ProviderMalformedResponse("Empty response from model")
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ProviderMalformedResponse(f"Failed to parse model response as JSON: {e}") from e
    if not isinstance(data, dict):
        raise ProviderMalformedResponse(f"Expected a JSON object, got {type(data).__name__}")
    return data


async def call_ollama(
    ingredient_text: str, settings: ParserSettings, http_client: Optional[httpx.AsyncClient] = None
) -> dict:
    """Send one ingredient line to Ollama and return the decoded JSON reply.

    Opens a short-lived httpx.AsyncClient unless one is passed in.
    """
    if http_client is None:
        async with httpx.AsyncClient(timeout=settings.timeout) as client:
            return await call_ollama(ingredient_text, settings, http_client=client)

    try:
        response = await http_client.post(
            f"{settings.ollama_url}/api/generate",
            json={
                "model": settings.model,
                "prompt": build_prompt(ingredient_text),
                "format": "json",
                "stream": False,
                "options": {"temperature": 0},
            },
            timeout=settings.timeout,
        )
    except httpx.TimeoutException:
        raise ProviderTimeout("ollama", settings.timeout) from None
    except httpx.ConnectError as e:
        raise ProviderRequestError(f"Cannot connect to Ollama at {settings.ollama_url}. Is it running?") from e
    except httpx.HTTPError as e:
        raise ProviderRequestError(f"Ollama error: {e}") from e

    if response.status_code == 429:
        raise ProviderRateLimited(f"Ollama rate limited: {response.reason_phrase}")
    try:
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise ProviderRequestError(
            f"Ollama API error: {response.status_code} {response.reason_phrase}",
            status_code=response.status_code,
        ) from e

    try:
        result = response.json()
    except ValueError as e:
        raise ProviderMalformedResponse(f"Ollama returned a non-JSON body: {e}") from e
    if not isinstance(result, dict):
        raise ProviderMalformedResponse("Ollama returned an unexpected body")

    return decode_json_object(result.get("response"))


async def call_openai(ingredient_text: str, settings: ParserSettings, client=None) -> dict:
    """Send one ingredient line to OpenAI and return the decoded JSON reply."""
    if not settings.openai_api_key:
        raise ProviderAuthMissing("OpenAI API key not configured. Set OPENAI_API_KEY environment variable.")

    if client is None:
        client = openai.AsyncOpenAI(
            api_key=settings.openai_api_key,
            base_url=settings.openai_url,
            timeout=settings.timeout,
            max_retries=0,
        )
        try:
            return await call_openai(ingredient_text, settings, client=client)
        finally:
            await client.close()

    try:
        completion = await client.chat.completions.create(
            model=settings.model,
            messages=build_messages(ingredient_text),
            temperature=0,
            response_format={"type": "json_object"},
        )
    except openai.APITimeoutError:
        raise ProviderTimeout("openai", settings.timeout) from None
    except openai.RateLimitError as e:
        raise ProviderRateLimited(f"OpenAI rate limited: {e}") from e
    except openai.APIConnectionError as e:
        raise ProviderRequestError(f"Cannot connect to OpenAI at {settings.openai_url}: {e}") from e
    except openai.APIStatusError as e:
        raise ProviderRequestError(f"OpenAI API error: {e}", status_code=e.status_code) from e
    except openai.APIError as e:
        raise ProviderRequestError(f"OpenAI API error: {e}") from e

    content = completion.choices[0].message.content if completion.choices else None
    return decode_json_object(content)


async def call_with_backoff(request, max_retries: int = MAX_RETRIES, sleep=asyncio.sleep):
    """Await request(), retrying only on ProviderRateLimited.

    Retry n (1-based) waits 2**n seconds: 2s, 4s, 8s. Any other error, or
    a rate limit after max_retries retries, propagates.

    Args:
        request: Zero-argument coroutine function making one attempt
        max_retries: Retries allowed after the first attempt
        sleep: Awaitable delay function (injected in tests)
    """
    attempt = 0
    while True:
        try:
            return await request()
        except ProviderRateLimited:
            if attempt >= max_retries:
                logger.warning("Rate limited, giving up after %d retries", max_retries)
                raise
            attempt += 1
            delay = 2 ** attempt
            logger.warning(
                "Rate limited, retrying in %ds (attempt %d/%d)", delay, attempt + 1, max_retries + 1
            )
            await sleep(delay)


class LLMClient:
    """Async front for the configured provider."""

    def __init__(self, settings: ParserSettings, openai_client=None, http_client=None, sleep=asyncio.sleep):
        self.settings = settings
        self._openai_client = openai_client
        self._http_client = http_client
        self._sleep = sleep
        if settings.provider is Provider.OPENAI and not settings.openai_api_key:
            logger.warning("OpenAI provider selected but OPENAI_API_KEY is not set")
        logger.info("Using %s provider with model %s", settings.provider.value, settings.model)

    async def _send(self, ingredient_text: str) -> dict:
        provider = self.settings.provider
        if provider is Provider.OLLAMA:
            return await call_ollama(ingredient_text, self.settings, http_client=self._http_client)
        if provider is Provider.OPENAI:
            return await call_openai(ingredient_text, self.settings, client=self._openai_client)
        raise ValueError(f"Unsupported provider: {provider}")

    async def request(self, ingredient_text: str) -> dict:
        """One attempt, cancelled once the configured timeout passes."""
        try:
            return await asyncio.wait_for(self._send(ingredient_text), timeout=self.settings.timeout)
        except asyncio.TimeoutError:
            raise ProviderTimeout(self.settings.provider.value, self.settings.timeout) from None

    async def complete(self, ingredient_text: str) -> dict:
        """Request a parse, retrying rate limits with backoff."""
        return await call_with_backoff(lambda: self.request(ingredient_text), sleep=self._sleep)
