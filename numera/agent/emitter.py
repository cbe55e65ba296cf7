"""Streaming emitter: relays controller events to a remote caller."""

import asyncio
from collections.abc import AsyncIterator

from pydantic import TypeAdapter

from numera.agent.events import TERMINAL_EVENT_TYPES, StreamEvent
from numera.utils.logging import get_logger

logger = get_logger(__name__)

_event_adapter: TypeAdapter[StreamEvent] = TypeAdapter(StreamEvent)


class StreamEmitter:
    """Ordered, unbuffered event stream for one conversation.

    The controller pushes with ``emit``; the transport pulls by iterating.
    Each event is forwarded as soon as it is emitted. The stream closes after
    a ``terminated`` or ``error`` event. The queue is unbounded so a slow or
    absent consumer never blocks the controller.
    """

    def __init__(self, conversation_id: str = ""):
        self.conversation_id = conversation_id
        self._queue: asyncio.Queue[StreamEvent | None] = asyncio.Queue()
        self._sequence = 0
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def emit(self, event: StreamEvent) -> StreamEvent:
        """Stamp ``event`` with the next sequence number and enqueue it."""
        if self._closed:
            raise RuntimeError(f"Cannot emit {event.type} on a closed stream")

        stamped = event.model_copy(update={"sequence": self._sequence, "conversation_id": self.conversation_id})
        self._sequence += 1
        self._queue.put_nowait(stamped)

        if stamped.type in TERMINAL_EVENT_TYPES:
            self.close()
        return stamped

    def close(self) -> None:
        """Close the stream; iteration ends once queued events are drained."""
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(None)

    def __aiter__(self) -> AsyncIterator[StreamEvent]:
        return self

    async def __anext__(self) -> StreamEvent:
        event = await self._queue.get()
        if event is None:
            # Keep the sentinel so later iterations end too
            self._queue.put_nowait(None)
            raise StopAsyncIteration
        return event

    @staticmethod
    def serialize(event: StreamEvent) -> str:
        """One NDJSON line."""
        return event.model_dump_json() + "\n"

    @staticmethod
    def deserialize(line: str) -> StreamEvent:
        return _event_adapter.validate_json(line)

    async def ndjson(self) -> AsyncIterator[str]:
        """Serialize events as line-delimited JSON as they arrive."""
        async for event in self:
            yield self.serialize(event)
