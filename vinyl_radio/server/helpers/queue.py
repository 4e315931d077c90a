"""FIFO backlog of (not yet played) AudioStreams."""

from __future__ import annotations

from collections import deque
from collections.abc import Iterator
from dataclasses import replace
from uuid import uuid4

from vinyl_radio.common.models.audio_stream import AudioStream


class StreamQueue:
    """Ordered backlog of AudioStreams, consumed strictly in FIFO order."""

    def __init__(self) -> None:
        """Initialize an empty queue."""
        self._items: deque[AudioStream] = deque()

    def __len__(self) -> int:
        """Return the number of queued streams."""
        return len(self._items)

    def __iter__(self) -> Iterator[AudioStream]:
        """Iterate over (a snapshot of) the queued streams."""
        return iter(list(self._items))

    def __contains__(self, stream_id: object) -> bool:
        """Return if a stream with the given id is queued."""
        return any(x.id == stream_id for x in self._items)

    def add(self, stream: AudioStream) -> AudioStream:
        """Append a stream to the tail of the queue, the returned copy holds the new id."""
        item = replace(stream, id=uuid4().hex)
        self._items.append(item)
        return item

    def push_front(self, stream: AudioStream) -> AudioStream:
        """Insert a stream at the head of the queue (play next)."""
        item = replace(stream, id=uuid4().hex)
        self._items.appendleft(item)
        return item

    def remove(self, stream_id: str) -> AudioStream | None:
        """Remove a queued stream by id, returns None if it is not queued."""
        for item in self._items:
            if item.id == stream_id:
                self._items.remove(item)
                return item
        return None

    def dequeue_next(self) -> AudioStream | None:
        """Pop the head of the queue, None if the queue is empty."""
        if not self._items:
            return None
        return self._items.popleft()

    def peek(self) -> AudioStream | None:
        """Return the head of the queue without consuming it."""
        return self._items[0] if self._items else None

    def clear(self) -> int:
        """Remove all queued streams, returns the number of removed streams."""
        count = len(self._items)
        self._items.clear()
        return count
