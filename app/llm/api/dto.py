# app/llm/api/dto.py
from pydantic import BaseModel, Field, field_validator
from typing import List, Optional, Literal

from app.llm.entity.llm import LLMModel, Usage
from app.llm.service.llm_service import MAX_MESSAGES, MAX_MESSAGE_CHARS, MAX_TOTAL_CHARS


class Message(BaseModel):
    role: Literal["user", "assistant", "system"]
    content: str = Field(..., min_length=1, max_length=MAX_MESSAGE_CHARS)


class ChatCompletionRequest(BaseModel):
    model: LLMModel
    messages: List[Message] = Field(..., min_length=1, max_length=MAX_MESSAGES)
    temperature: Optional[float] = Field(default=None, ge=0, le=2)
    max_tokens: Optional[int] = Field(default=None, ge=1, le=4000)
    stream: bool = False
    # Persist the exchange into this chat when given
    chat_id: Optional[str] = Field(default=None, max_length=64)

    @field_validator("messages")
    @classmethod
    def _total_length(cls, messages: List[Message]) -> List[Message]:
        total = sum(len(m.content) for m in messages)
        if total > MAX_TOTAL_CHARS:
            raise ValueError(f"Total message content too long (max {MAX_TOTAL_CHARS} characters)")
        return messages


class ChatCompletionResponse(BaseModel):
    content: str
    model: str
    usage: Usage


class ModelInfo(BaseModel):
    model: str
    provider: str
    configured: bool


class ProviderListResponse(BaseModel):
    default_provider: str
    providers: dict[str, bool]
    models: List[ModelInfo]
