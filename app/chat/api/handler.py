import logging
import math
from typing import Any, Optional

from fastapi import HTTPException

from app.chat.api.dto import CreateChatDTO, CreateMessagesDTO, Pagination
from app.chat.entity.chat import NewMessage
from app.chat.service.service import ChatService

MAX_SEARCH_LENGTH = 100


def validate_search(search: Optional[str]) -> Optional[str]:
    if not search:
        return None
    if len(search) > MAX_SEARCH_LENGTH or "<" in search or ">" in search:
        raise HTTPException(status_code=400, detail="Invalid search query")
    return search


def clamp_limit(limit: int) -> int:
    return min(max(limit, 1), 100)


class ChatHandler:
    def __init__(self, chat_service: ChatService, logger: logging.Logger):
        self.chat_service = chat_service
        self.logger = logger

    async def list_chats(self, user_id: str, search: Optional[str]) -> dict[str, Any]:
        search = validate_search(search)
        try:
            chats = await self.chat_service.list_chats(user_id, search)
            return {
                "status": True,
                "message": "Chats fetched successfully",
                "data": {"chats": [c.model_dump(mode="json") for c in chats]},
            }
        except HTTPException:
            raise
        except Exception as e:
            self.logger.error(f"Error fetching chats: {e!s}")
            raise HTTPException(status_code=500, detail="Failed to fetch chats")

    async def create_chat(self, body: CreateChatDTO, user_id: str) -> dict[str, Any]:
        try:
            chat = await self.chat_service.create_chat(body.title, body.is_private, user_id)
            return {
                "status": True,
                "message": "Chat created successfully",
                "data": {"chat": chat.model_dump(mode="json")},
            }
        except HTTPException:
            raise
        except Exception as e:
            self.logger.error(f"Error creating chat: {e!s}")
            raise HTTPException(status_code=500, detail="Failed to create chat")

    async def list_messages(self, chat_id: str, user_id: str, page: int, limit: int) -> dict[str, Any]:
        page = max(page, 1)
        limit = clamp_limit(limit)
        try:
            result = await self.chat_service.list_messages(chat_id, user_id, page, limit)
            pagination = Pagination(page=page, limit=limit, total=result.total, pages=math.ceil(result.total / limit))
            return {
                "status": True,
                "message": "Messages fetched successfully",
                "data": {
                    "messages": [m.model_dump(mode="json") for m in result.messages],
                    "pagination": pagination.model_dump(),
                },
            }
        except HTTPException:
            raise
        except Exception as e:
            self.logger.error(f"Error fetching messages for chat {chat_id}: {e!s}")
            raise HTTPException(status_code=500, detail="Failed to fetch messages")

    async def create_messages(self, chat_id: str, body: CreateMessagesDTO, user_id: str) -> dict[str, Any]:
        try:
            created = await self.chat_service.add_messages(
                chat_id,
                user_id,
                [NewMessage(content=m.content, is_ai=m.is_ai, llm_model=m.llm_model) for m in body.messages],
            )
            return {
                "status": True,
                "message": "Messages created successfully",
                "data": {"messages": [m.model_dump(mode="json") for m in created]},
            }
        except HTTPException:
            raise
        except Exception as e:
            self.logger.error(f"Error creating messages for chat {chat_id}: {e!s}")
            raise HTTPException(status_code=500, detail="Failed to create messages")

    async def delete_messages(self, chat_id: str, user_id: str, message_id: Optional[str]) -> dict[str, Any]:
        try:
            if message_id:
                await self.chat_service.delete_message(chat_id, message_id, user_id)
                return {"status": True, "message": "Message deleted successfully", "data": {"message_id": message_id}}

            deleted = await self.chat_service.clear_messages(chat_id, user_id)
            return {"status": True, "message": "Messages deleted successfully", "data": {"deleted": deleted}}
        except HTTPException:
            raise
        except Exception as e:
            self.logger.error(f"Error deleting messages for chat {chat_id}: {e!s}")
            raise HTTPException(status_code=500, detail="Failed to delete messages")
