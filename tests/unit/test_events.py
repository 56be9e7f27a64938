"""Tests for the event channel and cancel token."""

import asyncio

import pytest

from geo_scope.errors import AbortedError
from geo_scope.events import CancelToken, EventChannel, ListEventSink, ProgressEvent, emit


class TestEventChannel:
    """Tests for EventChannel."""

    @pytest.mark.asyncio
    async def test_iterates_until_closed(self) -> None:
        """Test events are delivered in order and iteration ends on close."""
        channel = EventChannel()
        emit(channel, "init", mode="text_quality")
        emit(channel, "complete")
        channel.close()
        channel.send(ProgressEvent(type="late"))

        events = [e async for e in channel]

        assert [e.type for e in events] == ["init", "complete"]
        assert events[0].data == {"mode": "text_quality"}
        assert events[0].timestamp

    @pytest.mark.asyncio
    async def test_consumer_waits_for_producer(self) -> None:
        """Test a consumer receives events sent after it started."""
        channel = EventChannel()

        async def produce() -> None:
            await asyncio.sleep(0.01)
            emit(channel, "queries", topic="GEO")
            channel.close()

        producer = asyncio.create_task(produce())
        events = [e async for e in channel]
        await producer

        assert [e.data["topic"] for e in events] == ["GEO"]

    def test_emit_without_sink(self) -> None:
        """Test emitting to no sink is a no-op."""
        emit(None, "init")

    def test_list_sink(self) -> None:
        """Test the list sink records event types."""
        sink = ListEventSink()
        emit(sink, "a")
        emit(sink, "b", x=1)

        assert sink.types == ["a", "b"]


class TestCancelToken:
    """Tests for CancelToken."""

    def test_raise_if_cancelled(self) -> None:
        """Test cancellation raises AbortedError at the next check."""
        token = CancelToken()
        token.raise_if_cancelled()

        token.cancel()

        assert token.cancelled
        with pytest.raises(AbortedError):
            token.raise_if_cancelled()
