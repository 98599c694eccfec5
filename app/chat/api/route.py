from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from app.auth.api.dependencies import get_current_user
from app.auth.api.dto import BaseResponse
from app.chat.api.dto import CreateChatDTO, CreateMessagesDTO
from app.chat.api.handler import ChatHandler
from app.core.logger import get_logger

chat_router = APIRouter(prefix="/chats", tags=["Chat"])
logger = get_logger("ChatRouter")


def get_chat_handler(request: Request) -> ChatHandler:
    """Dependency to build the chat handler from app.state."""
    chat_service = getattr(request.app.state, "chat_service", None)
    if chat_service is None:
        raise HTTPException(status_code=503, detail="Chat service not available")
    return ChatHandler(chat_service, getattr(request.app.state, "logger", None) or logger)


@chat_router.get("", response_model=BaseResponse)
async def list_chats(
    search: Optional[str] = Query(default=None),
    current_user: dict = Depends(get_current_user),
    handler: ChatHandler = Depends(get_chat_handler),
):
    """Chats ordered by latest activity, with last message and message count."""
    return await handler.list_chats(current_user["user_id"], search)


@chat_router.post("", response_model=BaseResponse, status_code=status.HTTP_201_CREATED)
async def create_chat(
    body: CreateChatDTO,
    current_user: dict = Depends(get_current_user),
    handler: ChatHandler = Depends(get_chat_handler),
):
    return await handler.create_chat(body, current_user["user_id"])


@chat_router.get("/{chat_id}/messages", response_model=BaseResponse)
async def list_messages(
    chat_id: str,
    page: int = Query(default=1),
    limit: int = Query(default=50),
    current_user: dict = Depends(get_current_user),
    handler: ChatHandler = Depends(get_chat_handler),
):
    """Messages oldest first. `limit` is clamped to 1..100."""
    return await handler.list_messages(chat_id, current_user["user_id"], page, limit)


@chat_router.post("/{chat_id}/messages", response_model=BaseResponse, status_code=status.HTTP_201_CREATED)
async def create_messages(
    chat_id: str,
    body: CreateMessagesDTO,
    current_user: dict = Depends(get_current_user),
    handler: ChatHandler = Depends(get_chat_handler),
):
    """Add 1..10 messages in one transaction."""
    return await handler.create_messages(chat_id, body, current_user["user_id"])


@chat_router.delete("/{chat_id}/messages", response_model=BaseResponse)
async def delete_messages(
    chat_id: str,
    message_id: Optional[str] = Query(default=None),
    current_user: dict = Depends(get_current_user),
    handler: ChatHandler = Depends(get_chat_handler),
):
    """Delete one of your messages, or every message when you authored all of them."""
    return await handler.delete_messages(chat_id, current_user["user_id"], message_id)
