import asyncio
from collections.abc import AsyncIterator

from stt_bridge.domain.errors import SinkClosedError
from stt_bridge.domain.events import TranscriptEvent

_CLOSED = object()


class EventSink:
    """Ordered, unbounded hand-off of events from a session to its consumer.

    ``get()`` blocks while empty. After ``close()`` the queued events are
    still delivered; then the close error (if any) is raised once and every
    later call raises ``StopAsyncIteration``.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[object] = asyncio.Queue()
        self._closed = False
        self._finished = False
        self._error: BaseException | None = None

    @property
    def closed(self) -> bool:
        return self._closed

    def put(self, event: TranscriptEvent) -> None:
        if self._closed:
            raise SinkClosedError(f"Cannot put {event.type.name} into a closed event sink")
        self._queue.put_nowait(event)

    def close(self, error: BaseException | None = None) -> None:
        if self._closed:
            return
        self._closed = True
        self._error = error
        self._queue.put_nowait(_CLOSED)

    async def get(self) -> TranscriptEvent:
        if self._finished:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            self._finished = True
            error, self._error = self._error, None
            if error is not None:
                raise error
            raise StopAsyncIteration
        return item

    def __aiter__(self) -> AsyncIterator[TranscriptEvent]:
        return self

    async def __anext__(self) -> TranscriptEvent:
        return await self.get()
