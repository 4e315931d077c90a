"""Models for catalog tracks, playlist algorithms and generated playlists."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from time import time

from mashumaro import DataClassDictMixin

from .base import CamelCaseModel, alias
from .enums import PlaylistEntryType


@dataclass(frozen=True)
class AlgorithmWeights(DataClassDictMixin):
    """The five weights of a playlist algorithm, each in the range 0..1."""

    genre: float
    artist: float
    popularity: float
    recency: float
    diversity: float


@dataclass(frozen=True)
class PlaylistAlgorithm(DataClassDictMixin):
    """Named weighting profile used by the playlist generator."""

    key: str
    name: str
    description: str
    weights: AlgorithmWeights


@dataclass
class CatalogTrack(CamelCaseModel):
    """A radio-eligible track as supplied by the content store."""

    id: str
    name: str
    artist: str
    audio_url: str = field(metadata=alias("audioUrl"))
    duration: float
    genre: str = "Unknown"
    album_art: str | None = field(default=None, metadata=alias("albumArt"))
    record_label: str = field(default="Independent", metadata=alias("recordLabel"))
    play_count: int = field(default=0, metadata=alias("playCount"))
    like_count: int = field(default=0, metadata=alias("likeCount"))
    created_at: datetime | None = field(default=None, metadata=alias("createdAt"))
    nft_id: str | None = field(default=None, metadata=alias("nftId"))

    @property
    def popularity(self) -> int:
        """Return the raw popularity (plays and likes) of this track."""
        return self.play_count + self.like_count


@dataclass
class PlaylistConfig(CamelCaseModel):
    """Request to generate a playlist."""

    max_duration: float = field(default=3600.0, metadata=alias("maxDuration"))
    include_tts: bool = field(default=False, metadata=alias("includeTTS"))
    voice_id: str | None = field(default=None, metadata=alias("voiceId"))
    shuffle_tracks: bool = field(default=False, metadata=alias("shuffleTracks"))
    algorithm: str = "balanced"
    genres: list[str] = field(default_factory=list)


@dataclass
class PlaylistEntry(CamelCaseModel):
    """A single (ordered) entry of a generated playlist."""

    position: int
    entry_type: PlaylistEntryType = field(metadata=alias("type"))
    duration: float
    track_id: str | None = field(default=None, metadata=alias("trackId"))
    url: str | None = None
    text: str | None = None
    voice_id: str | None = field(default=None, metadata=alias("voiceId"))

    @property
    def is_ad(self) -> bool:
        """Return if this entry is an ad slot."""
        return self.entry_type == PlaylistEntryType.AD

    @property
    def is_intro(self) -> bool:
        """Return if this entry is a (tts) intro slot."""
        return self.entry_type == PlaylistEntryType.INTRO


@dataclass
class GeneratedPlaylist(CamelCaseModel):
    """Ordered result of the playlist generator."""

    id: str
    algorithm: str
    config: PlaylistConfig
    entries: list[PlaylistEntry] = field(default_factory=list)
    total_duration: float = field(default=0.0, metadata=alias("totalDuration"))
    track_count: int = field(default=0, metadata=alias("trackCount"))
    created_at: float = field(default_factory=time, metadata=alias("createdAt"))

    def __post_init__(self) -> None:
        """Calculate the summary values from the entries."""
        self.total_duration = sum(x.duration for x in self.entries)
        self.track_count = len(self.entries)

    @property
    def is_empty(self) -> bool:
        """Return if no content fitted the requested duration budget."""
        return not self.entries

    @property
    def track_ids(self) -> list[str]:
        """Return the (catalog) track ids in playlist order."""
        return [x.track_id for x in self.entries if x.entry_type == PlaylistEntryType.TRACK]

    def index_of(self, track_id: str) -> int | None:
        """Return the position of the (first) entry for the given track id."""
        for entry in self.entries:
            if entry.track_id == track_id and entry.entry_type == PlaylistEntryType.TRACK:
                return entry.position
        return None
