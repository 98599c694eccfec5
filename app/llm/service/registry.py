# app/llm/service/registry.py
from app.core.config import Settings
from app.llm.entity.llm import Provider
from app.llm.service.errors import UnknownProvider
from app.llm.service.provider.anthropic import AnthropicProvider
from app.llm.service.provider.base_provider import BaseProvider
from app.llm.service.provider.gemini import GeminiProvider
from app.llm.service.provider.openai_provider import OpenAIProvider


class ProviderRegistry:
    """One adapter per provider, built once at startup."""

    def __init__(self, providers: dict[Provider, BaseProvider]):
        self._providers = providers

    @classmethod
    def from_settings(cls, settings: Settings) -> "ProviderRegistry":
        timeout = settings.LLM_REQUEST_TIMEOUT_S
        return cls({
            Provider.OPENAI: OpenAIProvider(settings.OPENAI_API_KEY, timeout=timeout),
            Provider.ANTHROPIC: AnthropicProvider(settings.ANTHROPIC_API_KEY, timeout=timeout),
            Provider.GOOGLE: GeminiProvider(settings.GOOGLE_API_KEY, endpoint=settings.GEMINI_BASE_URL, timeout=timeout),
        })

    def get(self, provider: Provider) -> BaseProvider:
        adapter = self._providers.get(provider)
        if adapter is None:
            raise UnknownProvider(f"Unknown provider: {provider}")
        return adapter

    def configured(self) -> dict[str, bool]:
        return {p.value: adapter.is_enabled() for p, adapter in self._providers.items()}

    async def aclose(self) -> None:
        for adapter in self._providers.values():
            await adapter.aclose()
