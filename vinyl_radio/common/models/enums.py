"""All enums used by the Vinyl Radio models."""

from __future__ import annotations

from enum import StrEnum
from typing import Self


class StreamType(StrEnum):
    """Enum for the type of a (playable) AudioStream."""

    MUSIC = "music"
    TTS = "tts"
    AD = "ad"
    TRANSITION = "transition"


class StreamState(StrEnum):
    """Enum for the state of the live audio processor."""

    IDLE = "idle"
    STARTING = "starting"
    STREAMING = "streaming"
    STOPPING = "stopping"
    ERROR = "error"


class RadioStreamStatus(StrEnum):
    """Enum for the (admin) status of a radio stream."""

    ACTIVE = "active"
    INACTIVE = "inactive"


class PlaylistEntryType(StrEnum):
    """Enum for the type of an entry in a generated playlist."""

    TRACK = "track"
    INTRO = "intro"
    AD = "ad"


class ControlAction(StrEnum):
    """Enum with the actions accepted by the radio control command."""

    START = "start"
    STOP = "stop"
    ADD_TRACK = "add-track"
    UPDATE_TRACK = "update-track"
    SET_TRACK = "set-track"
    SKIP = "skip"


class LikeAction(StrEnum):
    """Enum with the actions of the like command."""

    LIKE = "like"
    UNLIKE = "unlike"


class PlaybackState(StrEnum):
    """Enum for the state of a client playback state machine."""

    LOADING = "loading"
    READY = "ready"
    PLAYING = "playing"
    PAUSED = "paused"


class EventType(StrEnum):
    """Enum with possible Events."""

    STREAM_STARTED = "streamStarted"
    STREAM_STOPPED = "streamStopped"
    STREAM_ENDED = "streamEnded"
    STREAM_ERROR = "streamError"
    STREAM_ADDED = "streamAdded"
    STREAM_REMOVED = "streamRemoved"
    TRACK_CHANGED = "trackChanged"
    CONFIG_UPDATED = "configUpdated"
    LISTENER_COUNT_UPDATED = "listenerCountUpdated"
    PROCESSING_ERROR = "processingError"
    PLAYLIST_GENERATED = "playlistGenerated"
    RADIO_UPDATED = "radioUpdated"
    CATALOG_UPDATED = "catalogUpdated"
    SHUTDOWN = "shutdown"
    UNKNOWN = "unknown"

    @classmethod
    def _missing_(cls: Self, value: object) -> Self:  # noqa: ARG003
        """Set default enum member if an unknown value is provided."""
        return cls.UNKNOWN
