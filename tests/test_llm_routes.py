"""HTTP tests for /llm/chat and /llm/providers."""

import pytest

from app.auth.api.dependencies import get_current_user
from app.core.config import settings
from app.llm.entity.llm import Provider
from app.llm.service.errors import UpstreamRateLimited, UpstreamUnknown
from app.llm.service.llm_service import LLMGateway
from app.llm.service.provider.anthropic import AnthropicProvider
from app.llm.service.provider.gemini import GeminiProvider
from app.llm.service.provider.openai_provider import OpenAIProvider
from app.llm.service.registry import ProviderRegistry

from conftest import ScriptedProvider


def _body(**overrides) -> dict:
    body = {"model": "gpt-3.5-turbo", "messages": [{"role": "user", "content": "hi"}], "stream": False}
    body.update(overrides)
    return body


class TestChatEndpoint:
    def test_requires_authentication(self, app, client, gateway):
        app.state.llm_gateway = gateway
        app.dependency_overrides.pop(get_current_user)

        response = client.post("/llm/chat", json=_body())

        assert response.status_code == 401
        assert response.json() == {"status": False, "message": "Unauthorized"}

    def test_non_streaming_returns_content_model_and_usage(self, app, client, gateway):
        app.state.llm_gateway = gateway

        response = client.post("/llm/chat", json=_body())

        assert response.status_code == 200
        assert response.json() == {
            "content": "Hello there",
            "model": "gpt-3.5-turbo",
            "usage": {"prompt_tokens": 5, "completion_tokens": 7, "total_tokens": 12},
        }

    def test_unknown_model_is_rejected(self, app, client, gateway):
        app.state.llm_gateway = gateway

        response = client.post("/llm/chat", json=_body(model="llama-70b"))

        assert response.status_code == 400
        assert response.json()["message"] == "Invalid input"

    def test_oversize_messages_rejected_before_upstream(self, app, client, gateway, scripted_openai):
        app.state.llm_gateway = gateway
        messages = [{"role": "user", "content": "x" * 10000}] * 5 + [{"role": "user", "content": "y"}]

        response = client.post("/llm/chat", json=_body(messages=messages))

        assert response.status_code == 400
        assert scripted_openai.calls == 0

    def test_out_of_range_temperature(self, app, client, gateway):
        app.state.llm_gateway = gateway

        response = client.post("/llm/chat", json=_body(temperature=2.5))

        assert response.status_code == 400
        assert response.json()["details"][0]["field"] == "temperature"

    def test_missing_api_key_is_server_fault(self, app, client):
        registry = ProviderRegistry({
            Provider.OPENAI: OpenAIProvider(None),
            Provider.ANTHROPIC: AnthropicProvider(None),
            Provider.GOOGLE: GeminiProvider(None),
        })
        app.state.llm_gateway = LLMGateway(registry)

        response = client.post("/llm/chat", json=_body())

        assert response.status_code == 500
        assert response.json()["message"] == "openai API key not configured"
        assert registry.get(Provider.OPENAI)._client is None

    def test_rate_limit_maps_to_429(self, app, client):
        failing = ScriptedProvider(Provider.OPENAI, error=UpstreamRateLimited(provider="openai"))
        app.state.llm_gateway = LLMGateway(ProviderRegistry({Provider.OPENAI: failing}))

        response = client.post("/llm/chat", json=_body())

        assert response.status_code == 429
        assert response.json()["message"].startswith("openai: Rate limit exceeded")

    def test_non_streaming_exchange_is_saved_to_chat(self, app, client, gateway, chat_service):
        app.state.llm_gateway = gateway
        app.state.chat_service = chat_service

        response = client.post("/llm/chat", json=_body(chat_id="chat-1"))

        assert response.status_code == 200
        chat_service.create_message_pair.assert_awaited_once()
        assert chat_service.create_message_pair.await_args.kwargs["assistant_text"] == "Hello there"

    def test_unknown_chat_is_404(self, app, client, gateway, chat_service):
        chat_service.get_chat.return_value = None
        app.state.llm_gateway = gateway
        app.state.chat_service = chat_service

        response = client.post("/llm/chat", json=_body(chat_id="missing"))

        assert response.status_code == 404
        assert response.json()["message"] == "Chat not found"

    def test_exchange_without_user_turn_is_not_saved(self, app, client, gateway, chat_service):
        app.state.llm_gateway = gateway
        app.state.chat_service = chat_service
        messages = [{"role": "system", "content": "be brief"}, {"role": "assistant", "content": "hello"}]

        response = client.post("/llm/chat", json=_body(messages=messages, chat_id="chat-1"))

        assert response.status_code == 200
        chat_service.create_message_pair.assert_not_awaited()


class TestErrorDetails:
    @pytest.fixture
    def failing_gateway(self, app):
        failing = ScriptedProvider(
            Provider.OPENAI, error=UpstreamUnknown(provider="openai", details="HTTP 503 from api.openai.com")
        )
        app.state.llm_gateway = LLMGateway(ProviderRegistry({Provider.OPENAI: failing}))

    def test_upstream_details_shown_outside_production(self, client, failing_gateway, monkeypatch):
        monkeypatch.setattr(settings, "ENV", "development")

        response = client.post("/llm/chat", json=_body())

        assert response.status_code == 502
        assert response.json()["details"] == "HTTP 503 from api.openai.com"

    def test_upstream_details_hidden_in_production(self, client, failing_gateway, monkeypatch):
        monkeypatch.setattr(settings, "ENV", "production")

        response = client.post("/llm/chat", json=_body())

        assert response.status_code == 502
        assert "details" not in response.json()

    def test_internal_error_text_hidden_in_production(self, app, client, gateway, chat_service, monkeypatch):
        monkeypatch.setattr(settings, "ENV", "production")
        chat_service.get_chat.side_effect = RuntimeError("connection to 10.0.0.5 refused")
        app.state.llm_gateway = gateway
        app.state.chat_service = chat_service

        response = client.post("/llm/chat", json=_body(chat_id="chat-1"))

        assert response.status_code == 500
        assert response.json() == {"status": False, "message": "Internal server error"}

    def test_internal_error_text_shown_outside_production(self, app, client, gateway, chat_service, monkeypatch):
        monkeypatch.setattr(settings, "ENV", "development")
        chat_service.get_chat.side_effect = RuntimeError("connection to 10.0.0.5 refused")
        app.state.llm_gateway = gateway
        app.state.chat_service = chat_service

        response = client.post("/llm/chat", json=_body(chat_id="chat-1"))

        assert response.status_code == 500
        assert response.json()["message"] == "Internal server error: connection to 10.0.0.5 refused"


class TestStreamingEndpoint:
    def test_streams_plain_text_and_persists_same_text(self, app, client, gateway, chat_service):
        app.state.llm_gateway = gateway
        app.state.chat_service = chat_service

        response = client.post("/llm/chat", json=_body(stream=True, chat_id="chat-1"))

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert response.headers["cache-control"] == "no-cache"
        assert response.text == "Hello there"
        kwargs = chat_service.create_message_pair.await_args.kwargs
        assert kwargs["assistant_text"] == response.text
        assert kwargs["user_text"] == "hi"
        assert kwargs["model"] == "gpt-3.5-turbo"

    def test_error_before_first_fragment_is_json(self, app, client):
        failing = ScriptedProvider(Provider.OPENAI, error=UpstreamRateLimited(provider="openai"))
        app.state.llm_gateway = LLMGateway(ProviderRegistry({Provider.OPENAI: failing}))

        response = client.post("/llm/chat", json=_body(stream=True))

        assert response.status_code == 429
        assert response.json()["status"] is False


class TestProvidersEndpoint:
    def test_lists_configuration_and_models(self, app, client, gateway):
        app.state.llm_gateway = gateway

        response = client.get("/llm/providers")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["default_provider"] == "openai"
        assert data["providers"] == {"openai": True, "anthropic": False, "google": True}
        gemini = next(m for m in data["models"] if m["model"] == "gemini-pro")
        assert gemini == {"model": "gemini-pro", "provider": "google", "configured": True}

    def test_gateway_missing_is_503(self, client):
        response = client.get("/llm/providers")

        assert response.status_code == 503
