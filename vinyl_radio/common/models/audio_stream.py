"""Model for a single playable unit in the live mix."""

from __future__ import annotations

from dataclasses import dataclass, replace

from mashumaro import DataClassDictMixin

from .enums import StreamType
from .errors import InvalidDataError


@dataclass(frozen=True)
class AudioStream(DataClassDictMixin):
    """
    One playable unit (music track, tts, ad or transition) in the live mix.

    The id is assigned when the stream enters the queue, start_time and end_time
    are filled in once the stream gets scheduled on the continuous output.
    """

    url: str
    type: StreamType = StreamType.MUSIC
    duration: float = 0.0
    volume: float = 1.0
    fade_in: float = 0.0
    fade_out: float = 0.0
    start_time: float = 0.0
    end_time: float = 0.0
    id: str = ""
    # display only metadata
    track_id: str | None = None
    title: str | None = None
    artist: str | None = None
    album_art: str | None = None

    def __post_init__(self) -> None:
        """Validate the stream settings."""
        if not self.url:
            raise InvalidDataError("An AudioStream needs an url")
        if self.volume < 0:
            raise InvalidDataError("Volume can not be negative")
        if self.fade_in < 0 or self.fade_out < 0:
            raise InvalidDataError("Fade durations can not be negative")
        if self.duration and self.fade_in + self.fade_out > self.duration:
            raise InvalidDataError("Fade in and fade out exceed the stream duration")

    @property
    def display_name(self) -> str:
        """Return a human readable name for logging purposes."""
        if self.title and self.artist:
            return f"{self.artist} - {self.title}"
        return self.title or self.url

    def with_duration(self, duration: float) -> AudioStream:
        """Return a copy with the (probed) duration, fades are shrunk to fit."""
        fade_in, fade_out = self.fade_in, self.fade_out
        if fade_in + fade_out > duration:
            factor = duration / (fade_in + fade_out) if duration > 0 else 0
            fade_in = fade_in * factor
            fade_out = max(0.0, duration - fade_in)
        return replace(self, duration=duration, fade_in=fade_in, fade_out=fade_out)

    def scheduled(self, start_time: float) -> AudioStream:
        """Return a copy scheduled at the given offset of the continuous output."""
        return replace(self, start_time=start_time, end_time=start_time + self.duration)

    def with_display(
        self,
        track_id: str | None = None,
        title: str | None = None,
        artist: str | None = None,
        album_art: str | None = None,
    ) -> AudioStream:
        """Return a copy with updated display metadata."""
        return replace(
            self,
            track_id=track_id or self.track_id,
            title=title or self.title,
            artist=artist or self.artist,
            album_art=album_art or self.album_art,
        )
