# app/llm/service/provider/base_provider.py
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator

from app.llm.entity.llm import LLMRequest, LLMResponse, Provider
from app.llm.service.errors import MissingCredentials

DEFAULT_TEMPERATURE = 0.2
DEFAULT_MAX_TOKENS = 512


class BaseProvider(ABC):
    """Abstract base provider for all LLM integrations."""

    provider: Provider

    def __init__(self, api_key: str | None):
        self.api_key = api_key
        self._client: Any = None

    @property
    def name(self) -> str:
        return self.provider.value

    def is_enabled(self) -> bool:
        """Whether this provider is usable (API key present)."""
        return bool(self.api_key)

    def _get_client(self) -> Any:
        """Build the SDK client on first use, bound to this provider's key."""
        if not self.api_key:
            raise MissingCredentials(self.name)
        if self._client is None:
            self._client = self._build_client()
        return self._client

    @abstractmethod
    def _build_client(self) -> Any:
        pass

    @abstractmethod
    async def generate(self, request: LLMRequest) -> LLMResponse:
        """Generate a complete response."""
        pass

    @abstractmethod
    def stream(self, request: LLMRequest) -> AsyncIterator[str]:
        """Yield response text fragments in order."""
        pass

    async def aclose(self) -> None:
        client, self._client = self._client, None
        if client is not None and hasattr(client, "close"):
            await client.close()

    @staticmethod
    def _params(request: LLMRequest) -> tuple[float, int]:
        temperature = DEFAULT_TEMPERATURE if request.temperature is None else request.temperature
        max_tokens = DEFAULT_MAX_TOKENS if request.max_tokens is None else request.max_tokens
        return temperature, max_tokens
