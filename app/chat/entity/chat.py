# app/chat/entity/chat.py
"""
Models for team chats and their messages.
"""

from datetime import datetime
from pydantic import BaseModel
from typing import List, Optional

from app.user.entities.entity import UserSummary


class ChatMessage(BaseModel):
    """A single message; AI-authored messages always record the model that wrote them."""
    id: str
    chat_id: str
    author_id: str
    content: str
    is_ai: bool = False
    llm_model: Optional[str] = None
    created_at: datetime
    author: Optional[UserSummary] = None


class NewMessage(BaseModel):
    content: str
    is_ai: bool = False
    llm_model: Optional[str] = None


class Chat(BaseModel):
    id: str
    title: str
    is_private: bool = False
    creator_id: str
    created_at: datetime
    updated_at: datetime
    message_count: int = 0
    last_message: Optional[ChatMessage] = None

    def visible_to(self, user_id: str) -> bool:
        return not self.is_private or self.creator_id == user_id


class MessagePage(BaseModel):
    messages: List[ChatMessage]
    total: int
