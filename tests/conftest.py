import logging
from datetime import datetime
from typing import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from app.auth.api.dependencies import get_current_user
from app.llm.entity.llm import LLMRequest, LLMResponse, Provider, Usage
from app.llm.service.llm_service import LLMGateway
from app.llm.service.provider.base_provider import BaseProvider
from app.llm.service.registry import ProviderRegistry
from main import create_app

CURRENT_USER = {"user_id": "user-1", "email": "ana@example.com"}


class ScriptedProvider(BaseProvider):
    """Adapter double that replays fixed fragments and counts calls."""

    def __init__(self, provider: Provider, api_key: str | None = "test-key", fragments=None, error=None):
        self.provider = provider
        super().__init__(api_key)
        self.fragments = list(fragments or [])
        self.error = error
        self.calls = 0
        self.closed = False

    def _build_client(self):
        return object()

    async def generate(self, request: LLMRequest) -> LLMResponse:
        self._get_client()
        self.calls += 1
        if self.error is not None:
            raise self.error
        return LLMResponse(text="".join(self.fragments), usage=Usage(prompt_tokens=5, completion_tokens=7))

    async def stream(self, request: LLMRequest) -> AsyncGenerator[str, None]:
        self._get_client()
        self.calls += 1
        try:
            for fragment in self.fragments:
                yield fragment
            if self.error is not None:
                raise self.error
        finally:
            self.closed = True


@pytest.fixture
def logger():
    return logging.getLogger("tests")


@pytest.fixture
def scripted_openai():
    return ScriptedProvider(Provider.OPENAI, fragments=["Hel", "lo", " there"])


@pytest.fixture
def registry(scripted_openai):
    return ProviderRegistry({
        Provider.OPENAI: scripted_openai,
        Provider.ANTHROPIC: ScriptedProvider(Provider.ANTHROPIC, api_key=None),
        Provider.GOOGLE: ScriptedProvider(Provider.GOOGLE, fragments=["gem"]),
    })


@pytest.fixture
def gateway(registry):
    return LLMGateway(registry, default_provider="openai")


@pytest.fixture
def chat_service():
    service = AsyncMock()
    service.get_chat.return_value = MagicMock(id="chat-1")
    return service


@pytest.fixture
def app(logger):
    """Application without lifespan, services wired by each test through app.state."""
    application = create_app(use_lifespan=False)
    application.state.logger = logger
    application.state.startup_complete = True
    application.state.startup_error = None
    application.dependency_overrides[get_current_user] = lambda: CURRENT_USER
    return application


@pytest.fixture
def client(app):
    return TestClient(app)


def make_timestamp() -> datetime:
    return datetime(2024, 3, 1, 12, 0, 0)
