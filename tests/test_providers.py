"""Tests for the provider adapters. No network: SDK clients are replaced with mocks."""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from app.llm.entity.llm import LLMRequest
from app.llm.service.errors import (
    MissingCredentials,
    UpstreamInvalidModel,
    UpstreamRateLimited,
    UpstreamUnknown,
    classify_upstream_error,
)
from app.llm.service.provider.anthropic import AnthropicProvider
from app.llm.service.provider.base_provider import DEFAULT_MAX_TOKENS, DEFAULT_TEMPERATURE
from app.llm.service.provider.gemini import GeminiProvider
from app.llm.service.provider.openai_provider import OpenAIProvider


def _request(**kwargs) -> LLMRequest:
    return LLMRequest.from_prompt("What is 2+2?", kwargs.pop("model", "gpt-3.5-turbo"), **kwargs)


class _FakeStream:
    """Stands in for the SDK AsyncStream: async iterable of chunks with an awaitable close()."""

    def __init__(self, deltas):
        self.deltas = deltas
        self.close = AsyncMock()

    async def __aiter__(self):
        for text in self.deltas:
            yield SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=text))])


class TestMissingCredentials:
    @pytest.mark.parametrize("provider_cls", [OpenAIProvider, AnthropicProvider, GeminiProvider])
    async def test_generate_without_key_fails_before_client_exists(self, provider_cls):
        provider = provider_cls(None)

        with pytest.raises(MissingCredentials):
            await provider.generate(_request())

        assert provider._client is None
        assert not provider.is_enabled()

    async def test_error_names_the_provider(self):
        with pytest.raises(MissingCredentials) as exc_info:
            await OpenAIProvider(None).generate(_request())

        assert exc_info.value.status_code == 500
        assert exc_info.value.public_message() == "openai API key not configured"


class TestOpenAIProvider:
    def _provider_with(self, create):
        provider = OpenAIProvider("sk-test")
        provider._client = MagicMock()
        provider._client.chat.completions.create = create
        return provider

    async def test_generate_applies_defaults_and_normalizes_usage(self):
        create = AsyncMock(return_value=SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content="4"))],
            usage=SimpleNamespace(prompt_tokens=9, completion_tokens=1, total_tokens=99),
        ))
        provider = self._provider_with(create)

        response = await provider.generate(_request(system="Answer tersely"))

        assert response.text == "4"
        assert response.usage.total_tokens == 10
        kwargs = create.await_args.kwargs
        assert kwargs["temperature"] == DEFAULT_TEMPERATURE
        assert kwargs["max_tokens"] == DEFAULT_MAX_TOKENS
        assert kwargs["messages"][0] == {"role": "system", "content": "Answer tersely"}
        assert kwargs["messages"][1] == {"role": "user", "content": "What is 2+2?"}

    async def test_stream_yields_delta_content(self):
        upstream = _FakeStream(["Hel", None, "lo"])
        provider = self._provider_with(AsyncMock(return_value=upstream))

        fragments = [f async for f in provider.stream(_request())]

        assert fragments == ["Hel", "lo"]
        upstream.close.assert_awaited_once()

    async def test_early_close_closes_upstream_response(self):
        upstream = _FakeStream(["Hel", "lo", " there"])
        provider = self._provider_with(AsyncMock(return_value=upstream))
        stream = provider.stream(_request())

        assert await stream.__anext__() == "Hel"
        await stream.aclose()

        upstream.close.assert_awaited_once()

    async def test_sdk_error_is_classified(self):
        error = Exception("Error code: 429 - You exceeded your current quota")
        error.status_code = 429
        provider = self._provider_with(AsyncMock(side_effect=error))

        with pytest.raises(UpstreamRateLimited) as exc_info:
            await provider.generate(_request())

        assert exc_info.value.provider == "openai"


class TestAnthropicProvider:
    def test_system_prompt_goes_to_dedicated_field(self):
        provider = AnthropicProvider("sk-ant")

        kwargs = provider._kwargs(_request(model="claude-3-opus-20240229", system="You are terse"))

        assert kwargs["system"] == "You are terse"
        assert kwargs["messages"] == [{"role": "user", "content": "What is 2+2?"}]

    def test_no_system_field_without_system_prompt(self):
        kwargs = AnthropicProvider("sk-ant")._kwargs(_request(model="claude-3-opus-20240229"))

        assert "system" not in kwargs

    async def test_generate_reads_text_blocks_and_usage(self):
        provider = AnthropicProvider("sk-ant")
        provider._client = MagicMock()
        provider._client.messages.create = AsyncMock(return_value=SimpleNamespace(
            content=[SimpleNamespace(type="text", text="Four")],
            usage=SimpleNamespace(input_tokens=11, output_tokens=2),
        ))

        response = await provider.generate(_request(model="claude-3-opus-20240229"))

        assert response.text == "Four"
        assert (response.usage.prompt_tokens, response.usage.completion_tokens, response.usage.total_tokens) == (11, 2, 13)


class TestGeminiProvider:
    def _provider(self, handler) -> GeminiProvider:
        provider = GeminiProvider("g-key", endpoint="https://gemini.test")
        provider._client = httpx.AsyncClient(base_url="https://gemini.test", transport=httpx.MockTransport(handler))
        return provider

    def test_system_prompt_prepended_with_blank_line(self):
        payload = GeminiProvider("g-key")._payload(_request(model="gemini-pro", system="Be exact"))

        assert payload["contents"] == [{"role": "user", "parts": [{"text": "Be exact\n\nWhat is 2+2?"}]}]
        assert payload["generationConfig"] == {"temperature": 0.2, "maxOutputTokens": 512}

    def test_assistant_turns_use_model_role(self):
        request = LLMRequest(
            model="gemini-pro",
            messages=[
                {"role": "user", "content": "hi"},
                {"role": "assistant", "content": "hello"},
                {"role": "user", "content": "bye"},
            ],
        )

        roles = [c["role"] for c in GeminiProvider("g-key")._payload(request)["contents"]]

        assert roles == ["user", "model", "user"]

    async def test_generate_parses_candidates_and_usage(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/v1beta/models/gemini-pro:generateContent"
            return httpx.Response(200, json={
                "candidates": [{"content": {"parts": [{"text": "Fo"}, {"text": "ur"}]}}],
                "usageMetadata": {"promptTokenCount": 6, "candidatesTokenCount": 2},
            })

        response = await self._provider(handler).generate(_request(model="gemini-pro"))

        assert response.text == "Four"
        assert response.usage.total_tokens == 8

    async def test_stream_reads_sse_data_lines(self):
        chunks = [{"candidates": [{"content": {"parts": [{"text": t}]}}]} for t in ["a", "b"]]
        body = "".join(f"data: {json.dumps(c)}\n\n" for c in chunks)

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["alt"] == "sse"
            return httpx.Response(200, text=body)

        fragments = [f async for f in self._provider(handler).stream(_request(model="gemini-pro"))]

        assert fragments == ["a", "b"]

    async def test_not_found_maps_to_invalid_model(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, text='{"error": "model not found"}')

        with pytest.raises(UpstreamInvalidModel):
            await self._provider(handler).generate(_request(model="gemini-pro"))


class TestClassifyUpstreamError:
    def test_retry_hint_is_surfaced(self):
        error = classify_upstream_error("google", Exception("Quota exceeded. Please retry in 12.5s"))

        assert isinstance(error, UpstreamRateLimited)
        assert "12.5 seconds" in error.message

    def test_bad_key(self):
        error = classify_upstream_error("openai", Exception("Incorrect API key provided"))

        assert isinstance(error, UpstreamUnknown)
        assert error.public_message() == "openai: Invalid API key"

    def test_unrecognized_error(self):
        error = classify_upstream_error("anthropic", RuntimeError("boom"))

        assert isinstance(error, UpstreamUnknown)
        assert error.status_code == 502
        assert error.details == "boom"
