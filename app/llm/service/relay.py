# app/llm/service/relay.py
"""
Chat streaming relay: one instance per client connection and upstream call.

    IDLE -> AWAITING_UPSTREAM -> STREAMING -> PERSISTING -> DONE
    AWAITING_UPSTREAM | STREAMING -> ABORTED   (client went away, nothing persisted)
    any non-terminal              -> FAILED    (upstream error, nothing persisted)

Fragments are forwarded in upstream order as they arrive. On normal completion
the forwarded fragments are joined and written once, as a user/assistant pair.
"""

import asyncio
import logging
from enum import Enum
from typing import AsyncGenerator, Optional

from app.llm.entity.llm import LLMRequest, Provider
from app.llm.service.channel import DEFAULT_CHANNEL_SIZE, FragmentChannel
from app.llm.service.errors import LLMError
from app.llm.service.llm_service import LLMGateway


class RelayState(str, Enum):
    IDLE = "idle"
    AWAITING_UPSTREAM = "awaiting_upstream"
    STREAMING = "streaming"
    PERSISTING = "persisting"
    DONE = "done"
    ABORTED = "aborted"
    FAILED = "failed"


class ChatStreamRelay:
    def __init__(
        self,
        gateway: LLMGateway,
        request: LLMRequest,
        provider: Provider,
        logger: logging.Logger,
        chat_service=None,
        chat_id: Optional[str] = None,
        author_id: Optional[str] = None,
        channel_size: int = DEFAULT_CHANNEL_SIZE,
    ):
        self.gateway = gateway
        self.request = request
        self.provider = provider
        self.logger = logger
        self.chat_service = chat_service
        self.chat_id = chat_id
        self.author_id = author_id
        self.channel_size = channel_size

        self.state = RelayState.IDLE
        self.error: LLMError | None = None
        self._channel: FragmentChannel | None = None
        self._first: str | None = None
        self._forwarded: list[str] = []
        self._persist_task: asyncio.Task | None = None

    @property
    def forwarded_text(self) -> str:
        return "".join(self._forwarded)

    async def start(self) -> None:
        """Open the upstream stream and wait for its first fragment.

        Errors raised here happen before any byte reaches the client, so the
        caller can still answer with a regular error response.
        """
        if self.state != RelayState.IDLE:
            raise RuntimeError(f"Relay already started (state={self.state.value})")
        self.state = RelayState.AWAITING_UPSTREAM
        try:
            source = self.gateway.stream(self.request, self.provider)
            self._channel = FragmentChannel(source, maxsize=self.channel_size, provider=self.provider.value).start()
            self._first = await self._channel.next()
        except LLMError as e:
            self._fail(e)
            raise
        except asyncio.CancelledError:
            self._abort()
            raise

    async def fragments(self) -> AsyncGenerator[str, None]:
        """Forward fragments to the client, then persist the completed exchange."""
        if self.state != RelayState.AWAITING_UPSTREAM:
            raise RuntimeError(f"Relay not ready to stream (state={self.state.value})")
        self.state = RelayState.STREAMING
        try:
            fragment = self._first
            while fragment is not None:
                self._forwarded.append(fragment)
                yield fragment
                fragment = await self._channel.next()
        except LLMError as e:
            # Already-sent fragments stay sent; the connection is dropped without
            # a final chunk so the client can tell this apart from completion.
            self._fail(e)
            raise
        except (asyncio.CancelledError, GeneratorExit):
            self._abort()
            raise
        finally:
            if self._channel is not None:
                self._channel.close()

        self.state = RelayState.PERSISTING
        await self._persist()
        self.state = RelayState.DONE

    def _abort(self) -> None:
        self.state = RelayState.ABORTED
        if self._channel is not None:
            self._channel.close()
        self.logger.info(
            f"Chat stream aborted by client | provider={self.provider.value} chat_id={self.chat_id} "
            f"discarded_chars={len(self.forwarded_text)}"
        )

    def _fail(self, error: LLMError) -> None:
        self.state = RelayState.FAILED
        self.error = error
        if self._channel is not None:
            self._channel.close()
        self.logger.error(
            f"Chat stream failed | provider={self.provider.value} chat_id={self.chat_id} "
            f"forwarded_chars={len(self.forwarded_text)} error={error.message}"
        )

    async def _persist(self) -> None:
        if self.chat_service is None or not self.chat_id:
            return
        assistant_text = self.forwarded_text
        user_text = self.request.last_user_text()
        if not assistant_text:
            self.logger.warning(f"Empty completion, nothing persisted for chat_id={self.chat_id}")
            return
        if not user_text:
            self.logger.warning(f"No user turn, nothing persisted for chat_id={self.chat_id}")
            return
        self._persist_task = asyncio.create_task(
            self.chat_service.create_message_pair(
                chat_id=self.chat_id,
                author_id=self.author_id,
                user_text=user_text,
                assistant_text=assistant_text,
                model=self.request.model,
            )
        )
        try:
            # The write outlives a client disconnect that lands mid-write
            await asyncio.shield(self._persist_task)
        except asyncio.CancelledError:
            self._persist_task.add_done_callback(self._log_persist_result)
            raise
        except Exception as e:
            self.logger.error(f"Failed to persist chat exchange for chat_id={self.chat_id}: {e!s}")

    def _log_persist_result(self, task: asyncio.Task) -> None:
        if not task.cancelled() and task.exception() is not None:
            self.logger.error(f"Failed to persist chat exchange for chat_id={self.chat_id}: {task.exception()!s}")
