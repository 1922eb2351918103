"""Push sinks: the write side of one SSE response stream."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator


class DeliveryError(Exception):
    """A chunk could not be handed to a connection's sink."""


class SinkClosedError(DeliveryError):
    pass


class SinkOverflowError(DeliveryError):
    pass


class Sink(ABC):
    """Accepts framed text chunks and can be closed.

    ``write`` must not block: the registry calls it synchronously while
    fanning out to every connection of a user.
    """

    @abstractmethod
    def write(self, chunk: str) -> None:
        """Queue a chunk for the client, raising DeliveryError if it cannot."""

    @abstractmethod
    def close(self) -> None:
        """Stop the stream. Calling it twice is a no-op."""


_CLOSE = object()


class QueueSink(Sink):
    """Sink backed by an asyncio.Queue drained by a streaming response.

    A client that stops reading is detected once ``max_backlog`` chunks are
    waiting; the write then fails and the registry drops the connection.
    """

    def __init__(self, max_backlog: int = 100) -> None:
        self.max_backlog = max_backlog
        self._queue: asyncio.Queue[object] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def backlog(self) -> int:
        return self._queue.qsize()

    def write(self, chunk: str) -> None:
        if self._closed:
            raise SinkClosedError("sink is closed")
        if self._queue.qsize() >= self.max_backlog:
            raise SinkOverflowError(f"client is {self.max_backlog} messages behind")
        self._queue.put_nowait(chunk)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSE)

    async def __aiter__(self) -> AsyncIterator[str]:
        while True:
            chunk = await self._queue.get()
            if chunk is _CLOSE:
                return
            yield chunk  # type: ignore[misc]
