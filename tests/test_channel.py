"""Tests for the bounded fragment channel."""

import asyncio

import pytest

from app.llm.service.channel import FragmentChannel
from app.llm.service.errors import UpstreamRateLimited, UpstreamUnknown


class TrackingSource:
    """Async iterator over fixed fragments that records how far it was consumed."""

    def __init__(self, fragments, error=None, hang=False):
        self.fragments = fragments
        self.error = error
        self.hang = hang
        self.produced = 0
        self.closed = False

    async def _gen(self):
        try:
            for fragment in self.fragments:
                self.produced += 1
                yield fragment
            if self.hang:
                await asyncio.Event().wait()
            if self.error is not None:
                raise self.error
        finally:
            self.closed = True

    def __aiter__(self):
        self._it = self._gen()
        return self._it

    async def aclose(self):
        await self._it.aclose()


class TestFragmentChannel:
    async def test_preserves_order_with_small_buffer(self):
        source = TrackingSource([str(i) for i in range(20)])
        channel = FragmentChannel(source, maxsize=1).start()

        received = [f async for f in channel]

        assert received == [str(i) for i in range(20)]
        await channel.wait_closed()
        assert source.closed

    async def test_buffer_bounds_how_far_producer_runs_ahead(self):
        source = TrackingSource([str(i) for i in range(100)])
        channel = FragmentChannel(source, maxsize=4).start()

        assert await channel.next() == "0"
        await asyncio.sleep(0.01)

        # one consumed, four queued, one blocked in put
        assert source.produced <= 6
        channel.close()
        await channel.wait_closed()

    async def test_upstream_error_is_raised_after_fragments(self):
        channel = FragmentChannel(TrackingSource(["a"], error=UpstreamRateLimited(provider="openai"))).start()

        assert await channel.next() == "a"
        with pytest.raises(UpstreamRateLimited):
            await channel.next()
        assert channel.closed

    async def test_foreign_exception_is_wrapped(self):
        channel = FragmentChannel(TrackingSource([], error=RuntimeError("socket reset")), provider="google").start()

        with pytest.raises(UpstreamUnknown) as exc_info:
            await channel.next()

        assert exc_info.value.provider == "google"
        assert exc_info.value.details == "socket reset"

    async def test_close_cancels_producer_and_closes_upstream(self):
        source = TrackingSource(["a"], hang=True)
        channel = FragmentChannel(source).start()
        assert await channel.next() == "a"

        channel.close()
        await channel.wait_closed()

        assert source.closed
        assert await channel.next() is None
