# app/llm/service/channel.py
"""
Bounded fragment channel between an upstream provider stream and the relay.

A producer task pulls fragments from the upstream async iterator into a
bounded queue; the consumer reads them in order. Closing the channel from the
consumer side cancels the producer, which then closes the upstream stream so
no further upstream data is requested.
"""

import asyncio
from typing import AsyncIterator

from app.llm.service.errors import LLMError, UpstreamUnknown

DEFAULT_CHANNEL_SIZE = 64

_END = object()


class _Failure:
    __slots__ = ("error",)

    def __init__(self, error: LLMError):
        self.error = error


class FragmentChannel:
    def __init__(self, source: AsyncIterator[str], maxsize: int = DEFAULT_CHANNEL_SIZE, provider: str | None = None):
        self._source = source
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._provider = provider
        self._producer: asyncio.Task | None = None
        self._finished = False

    @property
    def closed(self) -> bool:
        return self._finished

    def start(self) -> "FragmentChannel":
        if self._producer is None:
            self._producer = asyncio.create_task(self._pump())
        return self

    async def _pump(self) -> None:
        try:
            async for fragment in self._source:
                await self._queue.put(fragment)
            await self._queue.put(_END)
        except asyncio.CancelledError:
            raise
        except LLMError as e:
            await self._queue.put(_Failure(e))
        except Exception as e:
            await self._queue.put(_Failure(UpstreamUnknown(provider=self._provider, details=str(e))))
        finally:
            aclose = getattr(self._source, "aclose", None)
            if aclose is not None:
                await aclose()

    async def next(self) -> str | None:
        """Next fragment in upstream order, None once upstream is exhausted."""
        if self._finished:
            return None
        if self._producer is None:
            self.start()
        item = await self._queue.get()
        if item is _END:
            self._finished = True
            return None
        if isinstance(item, _Failure):
            self._finished = True
            raise item.error
        return item

    def __aiter__(self):
        return self

    async def __anext__(self) -> str:
        fragment = await self.next()
        if fragment is None:
            raise StopAsyncIteration
        return fragment

    def close(self) -> None:
        """Stop the producer; safe to call more than once and from cancellation paths."""
        self._finished = True
        if self._producer is not None and not self._producer.done():
            self._producer.cancel()

    async def wait_closed(self) -> None:
        if self._producer is None:
            return
        await asyncio.gather(self._producer, return_exceptions=True)
