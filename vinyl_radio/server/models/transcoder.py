"""Model/base for the transcoder (decode, mix, encode) used by the live audio processor."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from vinyl_radio.common.models.audio_stream import AudioStream


@dataclass(frozen=True)
class PreparedSource:
    """An AudioStream materialized as a local file, with its (remaining) playable part."""

    stream: AudioStream
    path: str
    duration: float
    offset: float = 0.0

    @property
    def fade_in(self) -> float:
        """Return the fade-in of the stream, only applicable from the start of the source."""
        return self.stream.fade_in if self.offset == 0 else 0.0

    @property
    def fade_out(self) -> float:
        """Return the fade-out of the stream."""
        return min(self.stream.fade_out, self.duration - self.fade_in)

    def tail(self, plan: CrossfadePlan) -> PreparedSource:
        """Return the part of this source that remains after it was crossfaded in."""
        return replace(self, offset=self.offset + plan.duration, duration=plan.tail_length)


@dataclass(frozen=True)
class CrossfadePlan:
    """Timing of a crossfade between an outgoing and an incoming source."""

    fade_out_start: float
    duration: float
    mixed_length: float
    tail_length: float


class OutputSink:
    """Base representation of the (long running) process writing the continuous output."""

    target: str

    async def feed(self, path: str) -> None:
        """Feed a rendered (pcm) segment into the output, blocks until it was accepted."""
        raise NotImplementedError

    async def wait(self) -> int:
        """Wait for the output process to exit and return its exitcode."""
        raise NotImplementedError

    async def close(self) -> None:
        """Gracefully stop the output process."""
        raise NotImplementedError

    @property
    def last_error(self) -> str | None:
        """Return the last error the output process reported (if any)."""
        return None


class Transcoder:
    """
    Base representation of the transcoding engine.

    The engine itself is an external black box, implementations only orchestrate it.
    """

    async def setup(self) -> None:
        """Handle async initialization of the transcoder."""

    async def fetch(self, url: str, dest: str) -> None:
        """Materialize the source at url as local file dest."""
        raise NotImplementedError

    async def probe_duration(self, path: str) -> float:
        """Return the true duration (in seconds) of the given media file."""
        raise NotImplementedError

    async def render(self, source: PreparedSource, dest: str, gain: float, normalize: bool) -> None:
        """Render (the playable part of) a source into a pcm segment."""
        raise NotImplementedError

    async def render_crossfade(
        self,
        outgoing: PreparedSource,
        incoming: PreparedSource,
        plan: CrossfadePlan,
        dest: str,
        gains: tuple[float, float],
        normalize: bool,
    ) -> None:
        """Render the outgoing source mixed with the head of the incoming source."""
        raise NotImplementedError

    async def open_output(self, target: str) -> OutputSink:
        """Spawn the output process that encodes the continuous feed to target."""
        raise NotImplementedError
