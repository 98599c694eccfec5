import logging
from typing import Optional

from fastapi import HTTPException
from fastapi.responses import StreamingResponse

from app.core.config import Settings
from app.llm.api.dto import ChatCompletionRequest, ChatCompletionResponse, ModelInfo, ProviderListResponse
from app.llm.entity.llm import MODEL_PROVIDERS, ChatTurn, LLMRequest, resolve_provider
from app.llm.service.errors import LLMError
from app.llm.service.llm_service import LLMGateway
from app.llm.service.relay import ChatStreamRelay

STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # for Nginx
}


class LLMHandler:
    """Handler for LLM API endpoints."""

    def __init__(self, gateway: LLMGateway, settings: Settings, logger: logging.Logger, chat_service=None):
        self.gateway = gateway
        self.settings = settings
        self.logger = logger
        self.chat_service = chat_service

    def _to_llm_request(self, body: ChatCompletionRequest) -> LLMRequest:
        return LLMRequest(
            model=body.model.value,
            messages=[ChatTurn(role=m.role, content=m.content) for m in body.messages],
            temperature=self.settings.CHAT_DEFAULT_TEMPERATURE if body.temperature is None else body.temperature,
            max_tokens=self.settings.CHAT_DEFAULT_MAX_TOKENS if body.max_tokens is None else body.max_tokens,
        )

    async def _check_chat(self, chat_id: Optional[str], user_id: str) -> None:
        if not chat_id:
            return
        if self.chat_service is None:
            raise HTTPException(status_code=503, detail="Chat service not available")
        chat = await self.chat_service.get_chat(chat_id, user_id)
        if chat is None:
            raise HTTPException(status_code=404, detail="Chat not found")

    async def chat(self, body: ChatCompletionRequest, current_user: dict):
        try:
            provider = resolve_provider(body.model)
            request = self._to_llm_request(body)
            await self._check_chat(body.chat_id, current_user["user_id"])

            if body.stream:
                relay = ChatStreamRelay(
                    gateway=self.gateway,
                    request=request,
                    provider=provider,
                    logger=self.logger,
                    chat_service=self.chat_service,
                    chat_id=body.chat_id,
                    author_id=current_user["user_id"],
                    channel_size=self.settings.STREAM_CHANNEL_SIZE,
                )
                await relay.start()
                return StreamingResponse(
                    relay.fragments(),
                    media_type="text/plain; charset=utf-8",
                    headers=STREAM_HEADERS,
                )

            response = await self.gateway.generate(request, provider)
            user_text = request.last_user_text()
            if body.chat_id and response.text and user_text:
                try:
                    await self.chat_service.create_message_pair(
                        chat_id=body.chat_id,
                        author_id=current_user["user_id"],
                        user_text=user_text,
                        assistant_text=response.text,
                        model=request.model,
                    )
                except Exception as e:
                    self.logger.error(f"Failed to persist chat exchange for chat_id={body.chat_id}: {e!s}")

            return ChatCompletionResponse(content=response.text, model=request.model, usage=response.usage)

        except (HTTPException, LLMError):
            raise
        except Exception as e:
            self.logger.error(f"Error in LLM chat: {e!s}", exc_info=True)
            detail = "Internal server error" if self.settings.is_production else f"Internal server error: {e!s}"
            raise HTTPException(status_code=500, detail=detail)

    def providers(self) -> ProviderListResponse:
        """Return configured providers and the model table."""
        configured = self.gateway.registry.configured()
        return ProviderListResponse(
            default_provider=self.gateway.default_provider,
            providers=configured,
            models=[
                ModelInfo(model=m.value, provider=p.value, configured=configured.get(p.value, False))
                for m, p in MODEL_PROVIDERS.items()
            ],
        )
