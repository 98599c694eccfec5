"""Tests for the chat streaming relay state machine."""

import asyncio
import logging
from unittest.mock import AsyncMock

import pytest

from app.llm.entity.llm import ChatTurn, LLMRequest, Provider
from app.llm.service.errors import UpstreamInvalidModel, UpstreamRateLimited
from app.llm.service.llm_service import LLMGateway
from app.llm.service.registry import ProviderRegistry
from app.llm.service.relay import ChatStreamRelay, RelayState

from conftest import ScriptedProvider


def _request() -> LLMRequest:
    return LLMRequest(
        model="gpt-3.5-turbo",
        messages=[
            ChatTurn(role="system", content="be brief"),
            ChatTurn(role="user", content="earlier question"),
            ChatTurn(role="assistant", content="earlier answer"),
            ChatTurn(role="user", content="say hello"),
        ],
    )


def _relay(adapter: ScriptedProvider, chat_service, chat_id="chat-1", request=None) -> ChatStreamRelay:
    gateway = LLMGateway(ProviderRegistry({Provider.OPENAI: adapter}))
    return ChatStreamRelay(
        gateway=gateway,
        request=request or _request(),
        provider=Provider.OPENAI,
        logger=logging.getLogger("tests.relay"),
        chat_service=chat_service,
        chat_id=chat_id,
        author_id="user-1",
        channel_size=2,
    )


class TestCompletedStream:
    async def test_persisted_text_equals_forwarded_fragments(self, chat_service):
        fragments = ["Hel", "lo", ", ", "wor", "ld", "!"]
        relay = _relay(ScriptedProvider(Provider.OPENAI, fragments=fragments), chat_service)

        await relay.start()
        received = [f async for f in relay.fragments()]

        assert received == fragments
        assert relay.state == RelayState.DONE
        chat_service.create_message_pair.assert_awaited_once_with(
            chat_id="chat-1",
            author_id="user-1",
            user_text="say hello",
            assistant_text="".join(received),
            model="gpt-3.5-turbo",
        )

    async def test_nothing_persisted_without_chat(self, chat_service):
        relay = _relay(ScriptedProvider(Provider.OPENAI, fragments=["ok"]), chat_service, chat_id=None)

        await relay.start()
        assert [f async for f in relay.fragments()] == ["ok"]

        assert relay.state == RelayState.DONE
        chat_service.create_message_pair.assert_not_awaited()

    async def test_empty_completion_not_persisted(self, chat_service):
        relay = _relay(ScriptedProvider(Provider.OPENAI, fragments=[]), chat_service)

        await relay.start()
        assert [f async for f in relay.fragments()] == []

        assert relay.state == RelayState.DONE
        chat_service.create_message_pair.assert_not_awaited()

    async def test_request_without_user_turn_not_persisted(self, chat_service):
        request = LLMRequest(
            model="gpt-3.5-turbo",
            messages=[ChatTurn(role="system", content="be brief"), ChatTurn(role="assistant", content="hi")],
        )
        relay = _relay(ScriptedProvider(Provider.OPENAI, fragments=["ok"]), chat_service, request=request)

        await relay.start()
        assert [f async for f in relay.fragments()] == ["ok"]

        assert relay.state == RelayState.DONE
        chat_service.create_message_pair.assert_not_awaited()

    async def test_persistence_failure_is_swallowed(self, caplog):
        chat_service = AsyncMock()
        chat_service.create_message_pair.side_effect = RuntimeError("db down")
        relay = _relay(ScriptedProvider(Provider.OPENAI, fragments=["a", "b"]), chat_service)

        await relay.start()
        with caplog.at_level(logging.ERROR, logger="tests.relay"):
            received = [f async for f in relay.fragments()]

        assert received == ["a", "b"]
        assert relay.state == RelayState.DONE
        assert any("Failed to persist chat exchange" in r.getMessage() for r in caplog.records)


class TestAbort:
    async def test_client_disconnect_mid_stream_persists_nothing(self, chat_service):
        adapter = ScriptedProvider(Provider.OPENAI, fragments=["one", "two", "three", "four"])
        relay = _relay(adapter, chat_service)

        await relay.start()
        stream = relay.fragments()
        assert await stream.__anext__() == "one"
        await stream.aclose()
        await relay._channel.wait_closed()

        assert relay.state == RelayState.ABORTED
        assert adapter.closed
        chat_service.create_message_pair.assert_not_awaited()

    async def test_cancellation_while_streaming_persists_nothing(self, chat_service):
        adapter = ScriptedProvider(Provider.OPENAI, fragments=["one"])
        gate = asyncio.Event()
        original_stream = adapter.stream

        async def slow_stream(request):
            async for fragment in original_stream(request):
                yield fragment
            await gate.wait()

        adapter.stream = slow_stream
        relay = _relay(adapter, chat_service)

        async def consume():
            await relay.start()
            async for _ in relay.fragments():
                pass

        task = asyncio.create_task(consume())
        await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert relay.state == RelayState.ABORTED
        assert relay.forwarded_text == "one"
        chat_service.create_message_pair.assert_not_awaited()


class TestFailure:
    async def test_error_before_first_fragment_raises_from_start(self, chat_service):
        relay = _relay(ScriptedProvider(Provider.OPENAI, error=UpstreamInvalidModel(provider="openai")), chat_service)

        with pytest.raises(UpstreamInvalidModel):
            await relay.start()

        assert relay.state == RelayState.FAILED
        chat_service.create_message_pair.assert_not_awaited()

    async def test_mid_stream_error_keeps_sent_fragments_and_persists_nothing(self, chat_service):
        adapter = ScriptedProvider(
            Provider.OPENAI, fragments=["partial ", "answer"], error=UpstreamRateLimited(provider="openai")
        )
        relay = _relay(adapter, chat_service)
        received = []

        await relay.start()
        with pytest.raises(UpstreamRateLimited):
            async for fragment in relay.fragments():
                received.append(fragment)

        assert received == ["partial ", "answer"]
        assert relay.state == RelayState.FAILED
        assert isinstance(relay.error, UpstreamRateLimited)
        chat_service.create_message_pair.assert_not_awaited()

    async def test_relay_cannot_be_started_twice(self, chat_service):
        relay = _relay(ScriptedProvider(Provider.OPENAI, fragments=["x"]), chat_service)
        await relay.start()

        with pytest.raises(RuntimeError):
            await relay.start()

        relay._channel.close()
