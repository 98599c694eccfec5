# app/llm/service/provider/openai_provider.py
from typing import AsyncGenerator

from openai import AsyncOpenAI

from app.llm.entity.llm import LLMRequest, LLMResponse, Provider, Usage
from app.llm.service.errors import LLMError, classify_upstream_error
from .base_provider import BaseProvider


class OpenAIProvider(BaseProvider):
    provider = Provider.OPENAI

    def __init__(self, api_key: str | None, timeout: float = 60.0):
        super().__init__(api_key)
        self.timeout = timeout

    def _build_client(self) -> AsyncOpenAI:
        return AsyncOpenAI(api_key=self.api_key, timeout=self.timeout)

    @staticmethod
    def _messages(request: LLMRequest) -> list[dict]:
        # System prompts go first as role=system entries
        system = [{"role": "system", "content": m.content} for m in request.messages if m.role == "system"]
        rest = [{"role": m.role, "content": m.content} for m in request.conversation()]
        return system + rest

    async def generate(self, request: LLMRequest) -> LLMResponse:
        client = self._get_client()
        temperature, max_tokens = self._params(request)
        try:
            resp = await client.chat.completions.create(
                model=request.model,
                messages=self._messages(request),
                temperature=temperature,
                max_tokens=max_tokens,
                stream=False,
            )
        except LLMError:
            raise
        except Exception as e:
            raise classify_upstream_error(self.name, e) from e

        text = resp.choices[0].message.content if resp.choices else ""
        usage = getattr(resp, "usage", None)
        return LLMResponse(
            text=text or "",
            usage=Usage(
                prompt_tokens=getattr(usage, "prompt_tokens", 0) or 0,
                completion_tokens=getattr(usage, "completion_tokens", 0) or 0,
            ),
        )

    async def stream(self, request: LLMRequest) -> AsyncGenerator[str, None]:
        client = self._get_client()
        temperature, max_tokens = self._params(request)
        try:
            response_stream = await client.chat.completions.create(
                model=request.model,
                messages=self._messages(request),
                temperature=temperature,
                max_tokens=max_tokens,
                stream=True,
            )
            try:
                async for event in response_stream:
                    # delta content lives in event.choices[0].delta.content
                    delta = getattr(event.choices[0].delta, "content", None) if getattr(event, "choices", None) else None
                    if delta:
                        yield delta
            finally:
                # closes the upstream HTTP response when the consumer stops early
                await response_stream.close()
        except LLMError:
            raise
        except Exception as e:
            raise classify_upstream_error(self.name, e) from e
