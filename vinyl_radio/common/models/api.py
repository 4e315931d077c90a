"""Models used for the (HTTP) API communication."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from mashumaro.mixins.orjson import DataClassORJSONMixin

from vinyl_radio.common.helpers.json import get_serializable_value

from .base import CamelCaseModel, alias
from .enums import ControlAction, StreamState

# pylint: disable=unnecessary-lambda


@dataclass
class PlaylistTrack(CamelCaseModel):
    """A playlist entry as shown to admin tooling and playback clients."""

    id: str
    name: str
    artist: str
    duration: float
    album_art: str | None = field(default=None, metadata=alias("albumArt"))
    genre: str | None = None
    record_label: str | None = field(default=None, metadata=alias("recordLabel"))
    is_ad: bool = field(default=False, metadata=alias("isAd"))
    is_intro: bool = field(default=False, metadata=alias("isIntro"))
    nft_id: str | None = field(default=None, metadata=alias("nftId"))


@dataclass
class RadioStatusMessage(CamelCaseModel):
    """Response of the radio status query."""

    success: bool
    is_live: bool = field(metadata=alias("isLive"))
    playlist: list[PlaylistTrack] = field(default_factory=list)
    current_track: PlaylistTrack | None = field(default=None, metadata=alias("currentTrack"))
    next_track: PlaylistTrack | None = field(default=None, metadata=alias("nextTrack"))
    total_listeners: int = field(default=0, metadata=alias("totalListeners"))
    peak_listeners: int = field(default=0, metadata=alias("peakListeners"))
    uptime: float = 0.0
    state: StreamState = StreamState.IDLE
    playlist_id: str | None = field(default=None, metadata=alias("playlistId"))
    current_track_index: int = field(default=-1, metadata=alias("currentTrackIndex"))
    progress: float = 0.0
    time_remaining: float = field(default=0.0, metadata=alias("timeRemaining"))
    total_duration: float = field(default=0.0, metadata=alias("totalDuration"))
    updated_at: float = field(default=0.0, metadata=alias("updatedAt"))
    max_age: int = field(default=0, metadata=alias("maxAge"))


@dataclass
class ControlCommand(CamelCaseModel):
    """Body of the radio control command."""

    action: ControlAction
    track_id: str | None = field(default=None, metadata=alias("trackId"))
    config: dict[str, Any] | None = None


@dataclass
class ControlResult(CamelCaseModel):
    """Response of the radio control command."""

    success: bool
    error: str | None = None
    error_code: int | None = field(default=None, metadata=alias("errorCode"))
    message: str | None = None
    stream_id: str | None = field(default=None, metadata=alias("streamId"))


@dataclass
class PlaylistSummary(CamelCaseModel):
    """Response of the playlist generation request."""

    success: bool
    playlist_id: str | None = field(default=None, metadata=alias("playlistId"))
    track_count: int = field(default=0, metadata=alias("trackCount"))
    total_duration: float = field(default=0.0, metadata=alias("totalDuration"))
    algorithm: str | None = None
    reused: bool = False
    error: str | None = None


@dataclass
class LikeResult(CamelCaseModel):
    """Response of the like command."""

    success: bool
    liked: bool
    like_count: int = field(default=0, metadata=alias("likeCount"))


@dataclass
class CommandMessage(DataClassORJSONMixin):
    """Model for a (generic) command sent to the API."""

    command: str
    args: dict[str, Any] | None = None


@dataclass
class CommandResultMessage(DataClassORJSONMixin):
    """Result of a (generic) API command."""

    success: bool
    result: Any = field(default=None, metadata={"serialize": lambda v: get_serializable_value(v)})
    error_code: int | None = None
    details: str | None = None


@dataclass
class ServerInfoMessage(DataClassORJSONMixin):
    """Info of the server."""

    server_id: str
    server_version: str
    schema_version: int
    base_url: str
