# app/llm/entity/llm.py
"""
Provider-neutral request/response models for the LLM gateway.

Every call resolves to exactly one Provider. Model identifiers are a closed
set and each maps to exactly one Provider via MODEL_PROVIDERS.
"""

from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

from app.llm.service.errors import UnknownProvider


class Provider(str, Enum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"

    @classmethod
    def parse(cls, value: "str | Provider") -> "Provider":
        """Parse a provider name, accepting "gemini" as an alias of google."""
        if isinstance(value, Provider):
            return value
        name = (value or "").strip().lower()
        if name == "gemini":
            return cls.GOOGLE
        try:
            return cls(name)
        except ValueError:
            raise UnknownProvider(f"Unknown provider: {value}")


class LLMModel(str, Enum):
    GPT_4_TURBO = "gpt-4-turbo-preview"
    GPT_35_TURBO = "gpt-3.5-turbo"
    CLAUDE_3_OPUS = "claude-3-opus-20240229"
    CLAUDE_3_SONNET = "claude-3-sonnet-20240229"
    GEMINI_PRO = "gemini-pro"


MODEL_PROVIDERS: dict[LLMModel, Provider] = {
    LLMModel.GPT_4_TURBO: Provider.OPENAI,
    LLMModel.GPT_35_TURBO: Provider.OPENAI,
    LLMModel.CLAUDE_3_OPUS: Provider.ANTHROPIC,
    LLMModel.CLAUDE_3_SONNET: Provider.ANTHROPIC,
    LLMModel.GEMINI_PRO: Provider.GOOGLE,
}

_unmapped = set(LLMModel) - set(MODEL_PROVIDERS)
if _unmapped:
    raise RuntimeError(f"Models without a provider: {sorted(m.value for m in _unmapped)}")


def resolve_provider(model: "str | LLMModel") -> Provider:
    """Map a model identifier to the provider that serves it."""
    try:
        return MODEL_PROVIDERS[LLMModel(model)]
    except ValueError:
        raise UnknownProvider(f"Unknown model: {model}")


class ChatTurn(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class Usage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    @model_validator(mode="after")
    def _normalize_total(self) -> "Usage":
        # Providers disagree on totals; the sum is the only value we report.
        self.total_tokens = self.prompt_tokens + self.completion_tokens
        return self


class LLMRequest(BaseModel):
    model: str
    messages: List[ChatTurn]
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None

    @classmethod
    def from_prompt(
        cls,
        prompt: str,
        model: str,
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> "LLMRequest":
        messages = []
        if system:
            messages.append(ChatTurn(role="system", content=system))
        messages.append(ChatTurn(role="user", content=prompt))
        return cls(model=model, messages=messages, temperature=temperature, max_tokens=max_tokens)

    def system_text(self) -> str | None:
        parts = [m.content for m in self.messages if m.role == "system"]
        return "\n\n".join(parts) if parts else None

    def conversation(self) -> List[ChatTurn]:
        return [m for m in self.messages if m.role != "system"]

    def last_user_text(self) -> str:
        return next((m.content for m in reversed(self.messages) if m.role == "user"), "")


class LLMResponse(BaseModel):
    text: str
    usage: Usage = Field(default_factory=Usage)
