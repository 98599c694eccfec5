from pydantic import BaseModel, Field, field_validator
from typing import List, Optional


class CreateChatDTO(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    is_private: bool = False

    @field_validator("title")
    @classmethod
    def _strip_title(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Title must not be empty")
        return value


class NewMessageDTO(BaseModel):
    content: str = Field(..., min_length=1, max_length=10000)
    is_ai: bool = False
    llm_model: Optional[str] = Field(default=None, max_length=50)


class CreateMessagesDTO(BaseModel):
    messages: List[NewMessageDTO] = Field(..., min_length=1, max_length=10)


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int
