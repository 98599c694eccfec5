# app/llm/service/provider/anthropic.py
from typing import AsyncGenerator

from anthropic import AsyncAnthropic

from app.llm.entity.llm import LLMRequest, LLMResponse, Provider, Usage
from app.llm.service.errors import LLMError, classify_upstream_error
from .base_provider import BaseProvider


class AnthropicProvider(BaseProvider):
    """Handles Claude (Anthropic) models."""

    provider = Provider.ANTHROPIC

    def __init__(self, api_key: str | None, timeout: float = 60.0):
        super().__init__(api_key)
        self.timeout = timeout

    def _build_client(self) -> AsyncAnthropic:
        return AsyncAnthropic(api_key=self.api_key, timeout=self.timeout)

    def _kwargs(self, request: LLMRequest) -> dict:
        temperature, max_tokens = self._params(request)
        kwargs = {
            "model": request.model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [{"role": m.role, "content": m.content} for m in request.conversation()],
        }
        # Anthropic takes the system prompt as a dedicated field
        system = request.system_text()
        if system:
            kwargs["system"] = system
        return kwargs

    async def generate(self, request: LLMRequest) -> LLMResponse:
        client = self._get_client()
        try:
            msg = await client.messages.create(**self._kwargs(request))
        except LLMError:
            raise
        except Exception as e:
            raise classify_upstream_error(self.name, e) from e

        text = "".join(
            block.text for block in (msg.content or []) if getattr(block, "type", None) == "text"
        )
        usage = getattr(msg, "usage", None)
        return LLMResponse(
            text=text,
            usage=Usage(
                prompt_tokens=getattr(usage, "input_tokens", 0) or 0,
                completion_tokens=getattr(usage, "output_tokens", 0) or 0,
            ),
        )

    async def stream(self, request: LLMRequest) -> AsyncGenerator[str, None]:
        client = self._get_client()
        try:
            async with client.messages.stream(**self._kwargs(request)) as s:
                async for text in s.text_stream:
                    if text:
                        yield text
        except LLMError:
            raise
        except Exception as e:
            raise classify_upstream_error(self.name, e) from e
