import time
from typing import AsyncGenerator

from app.core.logger import get_logger
from app.llm.entity.llm import LLMRequest, LLMResponse, Provider
from app.llm.service.errors import LLMError, LLMValidationError, MissingCredentials
from app.llm.service.registry import ProviderRegistry

logger = get_logger(__name__)

MAX_MESSAGES = 50
MAX_MESSAGE_CHARS = 10000
MAX_TOTAL_CHARS = 50000


def validate_request(request: LLMRequest) -> None:
    """Enforce message count and size limits before any provider is called."""
    if not request.messages:
        raise LLMValidationError("At least one message is required")
    if len(request.messages) > MAX_MESSAGES:
        raise LLMValidationError(f"Too many messages (max {MAX_MESSAGES})")
    total = 0
    for m in request.messages:
        if not m.content:
            raise LLMValidationError("Message content must not be empty")
        if len(m.content) > MAX_MESSAGE_CHARS:
            raise LLMValidationError(f"Message too long (max {MAX_MESSAGE_CHARS} characters)")
        total += len(m.content)
    if total > MAX_TOTAL_CHARS:
        raise LLMValidationError(f"Total message content too long (max {MAX_TOTAL_CHARS} characters)")


class LLMGateway:
    """Provider-neutral entry point: resolve, validate, dispatch, log. No retries."""

    def __init__(self, registry: ProviderRegistry, default_provider: str = "openai"):
        self.registry = registry
        self.default_provider = default_provider

    def resolve(self, provider: "str | Provider | None" = None) -> Provider:
        return Provider.parse(provider if provider is not None else self.default_provider)

    def _prepare(self, request: LLMRequest, provider):
        resolved = self.resolve(provider)
        validate_request(request)
        adapter = self.registry.get(resolved)
        if not adapter.is_enabled():
            raise MissingCredentials(resolved.value)
        return resolved, adapter

    async def generate(self, request: LLMRequest, provider: "str | Provider | None" = None) -> LLMResponse:
        resolved, adapter = self._prepare(request, provider)
        started = time.perf_counter()
        try:
            response = await adapter.generate(request)
        except LLMError as e:
            duration_ms = int((time.perf_counter() - started) * 1000)
            logger.error(f"LLM request failed | provider={resolved.value} duration_ms={duration_ms} error={e.message}")
            raise
        duration_ms = int((time.perf_counter() - started) * 1000)
        logger.info(
            f"LLM request completed | provider={resolved.value} duration_ms={duration_ms} "
            f"usage={response.usage.model_dump()}"
        )
        return response

    async def generate_text(
        self,
        prompt: str,
        model: str,
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        provider: "str | Provider | None" = None,
    ) -> LLMResponse:
        request = LLMRequest.from_prompt(prompt, model, system=system, temperature=temperature, max_tokens=max_tokens)
        return await self.generate(request, provider)

    def stream(self, request: LLMRequest, provider: "str | Provider | None" = None) -> AsyncGenerator[str, None]:
        # Resolution and validation happen eagerly, before the caller iterates
        resolved, adapter = self._prepare(request, provider)
        return self._logged_stream(resolved, adapter.stream(request))

    async def _logged_stream(self, provider: Provider, source) -> AsyncGenerator[str, None]:
        started = time.perf_counter()
        chars = 0
        try:
            async for fragment in source:
                chars += len(fragment)
                yield fragment
        except LLMError as e:
            duration_ms = int((time.perf_counter() - started) * 1000)
            logger.error(f"LLM stream failed | provider={provider.value} duration_ms={duration_ms} error={e.message}")
            raise
        finally:
            aclose = getattr(source, "aclose", None)
            if aclose is not None:
                await aclose()
        duration_ms = int((time.perf_counter() - started) * 1000)
        logger.info(f"LLM stream completed | provider={provider.value} duration_ms={duration_ms} chars={chars}")
