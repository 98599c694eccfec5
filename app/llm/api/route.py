# app/llm/api/route.py

from fastapi import APIRouter, Depends, HTTPException, Request

from app.auth.api.dependencies import get_current_user
from app.auth.api.dto import BaseResponse
from app.core.config import settings
from app.core.logger import get_logger
from app.llm.api.dto import ChatCompletionRequest
from app.llm.api.handler import LLMHandler

llm_router = APIRouter(prefix="/llm", tags=["LLM"])


def get_llm_handler(request: Request) -> LLMHandler:
    """Build the handler from services wired on app.state."""
    gateway = getattr(request.app.state, "llm_gateway", None)
    if gateway is None:
        raise HTTPException(status_code=503, detail="LLM gateway not available")
    logger = getattr(request.app.state, "logger", None) or get_logger("LLMHandler")
    return LLMHandler(
        gateway,
        settings,
        logger,
        chat_service=getattr(request.app.state, "chat_service", None),
    )


@llm_router.post("/chat")
async def chat_completion(
    body: ChatCompletionRequest,
    current_user: dict = Depends(get_current_user),
    handler: LLMHandler = Depends(get_llm_handler),
):
    """Chat completion. Streams plain-text fragments when `stream` is true."""
    return await handler.chat(body, current_user)


@llm_router.get("/providers", response_model=BaseResponse)
async def get_providers(handler: LLMHandler = Depends(get_llm_handler)):
    """Return configured providers and supported models."""
    return BaseResponse(
        status=True,
        message="Providers fetched successfully",
        data=handler.providers().model_dump(),
    )
