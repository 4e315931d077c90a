"""Model for the (read only) snapshot of the live stream metadata."""

from __future__ import annotations

from dataclasses import dataclass

from mashumaro import DataClassDictMixin

from .enums import StreamState


@dataclass(frozen=True)
class StreamMetadata(DataClassDictMixin):
    """Immutable snapshot of the live stream metadata."""

    state: StreamState = StreamState.IDLE
    current_track: str | None = None
    next_track: str | None = None
    time_remaining: float = 0.0
    total_listeners: int = 0
    peak_listeners: int = 0
    uptime: float = 0.0
    updated_at: float = 0.0

    @property
    def is_streaming(self) -> bool:
        """Return if the stream is currently live."""
        return self.state == StreamState.STREAMING
