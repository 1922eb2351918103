"""Tests for the queue-backed SSE sink."""

import pytest

from waitlist.sse.sink import QueueSink, SinkClosedError, SinkOverflowError


class TestQueueSink:
    @pytest.mark.asyncio
    async def test_iterates_until_closed(self) -> None:
        sink = QueueSink()
        sink.write("a")
        sink.write("b")
        sink.close()
        assert [chunk async for chunk in sink] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_write_after_close_raises(self) -> None:
        sink = QueueSink()
        sink.close()
        assert sink.closed is True
        with pytest.raises(SinkClosedError):
            sink.write("late")

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self) -> None:
        sink = QueueSink()
        sink.close()
        sink.close()
        assert [chunk async for chunk in sink] == []

    @pytest.mark.asyncio
    async def test_overflow_when_reader_falls_behind(self) -> None:
        sink = QueueSink(max_backlog=2)
        sink.write("1")
        sink.write("2")
        assert sink.backlog == 2
        with pytest.raises(SinkOverflowError):
            sink.write("3")
