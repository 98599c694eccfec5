from abc import ABC, abstractmethod
from typing import List, Optional
import logging

from fastapi import HTTPException

from app.chat.entity.chat import Chat, ChatMessage, MessagePage, NewMessage


class IChatRepository(ABC):
    @abstractmethod
    async def create_chat(self, title: str, is_private: bool, creator_id: str) -> Chat:
        pass

    @abstractmethod
    async def get_chat(self, chat_id: str) -> Optional[Chat]:
        pass

    @abstractmethod
    async def list_chats(self, user_id: str, search: Optional[str] = None) -> List[Chat]:
        """Chats visible to the user, most recently active first."""
        pass

    @abstractmethod
    async def list_messages(self, chat_id: str, offset: int, limit: int) -> MessagePage:
        pass

    @abstractmethod
    async def create_messages(self, chat_id: str, author_id: str, messages: List[NewMessage]) -> List[ChatMessage]:
        """Insert all messages and bump the chat's updated_at in one transaction."""
        pass

    @abstractmethod
    async def get_message(self, message_id: str) -> Optional[ChatMessage]:
        pass

    @abstractmethod
    async def delete_message(self, message_id: str) -> None:
        pass

    @abstractmethod
    async def count_messages_by_others(self, chat_id: str, author_id: str) -> int:
        pass

    @abstractmethod
    async def delete_chat_messages(self, chat_id: str) -> int:
        pass


class ChatService:
    """Chat and message operations, including the persistence hook used by the LLM relay."""

    def __init__(self, chat_repository: IChatRepository, logger: logging.Logger):
        self.chat_repository = chat_repository
        self.logger = logger

    async def create_chat(self, title: str, is_private: bool, creator_id: str) -> Chat:
        chat = await self.chat_repository.create_chat(title, is_private, creator_id)
        self.logger.info(f"Chat created: {chat.id} by user_id={creator_id}")
        return chat

    async def list_chats(self, user_id: str, search: Optional[str] = None) -> List[Chat]:
        return await self.chat_repository.list_chats(user_id, search)

    async def get_chat(self, chat_id: str, user_id: Optional[str] = None) -> Optional[Chat]:
        chat = await self.chat_repository.get_chat(chat_id)
        if chat is None or (user_id is not None and not chat.visible_to(user_id)):
            return None
        return chat

    async def require_chat(self, chat_id: str, user_id: str) -> Chat:
        chat = await self.get_chat(chat_id, user_id)
        if chat is None:
            raise HTTPException(status_code=404, detail="Chat not found")
        return chat

    async def list_messages(self, chat_id: str, user_id: str, page: int, limit: int) -> MessagePage:
        await self.require_chat(chat_id, user_id)
        return await self.chat_repository.list_messages(chat_id, offset=(page - 1) * limit, limit=limit)

    async def add_messages(self, chat_id: str, author_id: str, messages: List[NewMessage]) -> List[ChatMessage]:
        await self.require_chat(chat_id, author_id)
        for m in messages:
            if m.is_ai and not m.llm_model:
                raise HTTPException(status_code=400, detail="AI messages must include llm_model")
        return await self.chat_repository.create_messages(chat_id, author_id, messages)

    async def create_message_pair(
        self,
        chat_id: str,
        author_id: str,
        user_text: str,
        assistant_text: str,
        model: str,
    ) -> List[ChatMessage]:
        """Write a completed user/assistant exchange as a single unit."""
        created = await self.chat_repository.create_messages(
            chat_id,
            author_id,
            [
                NewMessage(content=user_text, is_ai=False),
                NewMessage(content=assistant_text, is_ai=True, llm_model=model),
            ],
        )
        self.logger.info(f"Persisted chat exchange for chat_id={chat_id} model={model}")
        return created

    async def delete_message(self, chat_id: str, message_id: str, user_id: str) -> None:
        await self.require_chat(chat_id, user_id)
        message = await self.chat_repository.get_message(message_id)
        if message is None or message.chat_id != chat_id:
            raise HTTPException(status_code=404, detail="Message not found")
        if message.author_id != user_id:
            raise HTTPException(status_code=403, detail="You can only delete your own messages")
        await self.chat_repository.delete_message(message_id)

    async def clear_messages(self, chat_id: str, user_id: str) -> int:
        await self.require_chat(chat_id, user_id)
        if await self.chat_repository.count_messages_by_others(chat_id, user_id) > 0:
            raise HTTPException(status_code=403, detail="You can only delete chats where you authored all messages")
        deleted = await self.chat_repository.delete_chat_messages(chat_id)
        self.logger.info(f"Deleted {deleted} messages from chat_id={chat_id}")
        return deleted
