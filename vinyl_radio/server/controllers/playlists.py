"""Controller that generates (and keeps track of) radio playlists."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

import shortuuid

from vinyl_radio.common.models.api import PlaylistSummary
from vinyl_radio.common.models.enums import EventType
from vinyl_radio.common.models.errors import NotFoundError
from vinyl_radio.common.models.playlist import GeneratedPlaylist, PlaylistAlgorithm, PlaylistConfig
from vinyl_radio.constants import (
    CONF_AD_LIBRARY,
    CONF_PLAYLISTS,
    PLAYLIST_RETENTION,
    PLAYLIST_REUSE_DURATION_TOLERANCE,
    PLAYLIST_REUSE_MAX_AGE,
)
from vinyl_radio.server.helpers.api import api_command
from vinyl_radio.server.helpers.playlist_builder import (
    PLAYLIST_ALGORITHMS,
    build_playlist,
    get_algorithm,
)
from vinyl_radio.server.models.core_controller import CoreController

if TYPE_CHECKING:
    from vinyl_radio.server import RadioServer

DEFAULT_AD_VOICE = "default"


class PlaylistsController(CoreController):
    """Controller that generates playlists from the catalog."""

    domain: str = "playlists"

    def __init__(self, radio: RadioServer) -> None:
        """Initialize the controller."""
        super().__init__(radio)
        self._playlists: dict[str, GeneratedPlaylist] = {}

    async def setup(self) -> None:
        """Async initialize of module."""
        for raw_playlist in self.radio.config.get(CONF_PLAYLISTS, []):
            try:
                playlist = GeneratedPlaylist.from_dict(raw_playlist)
            except (LookupError, TypeError, ValueError) as err:
                self.logger.warning("Ignoring invalid stored playlist: %s", str(err))
                continue
            self._playlists[playlist.id] = playlist
        self.logger.debug("Restored %s playlist(s)", len(self._playlists))

    @api_command("playlists/algorithms")
    def get_algorithms(self) -> list[PlaylistAlgorithm]:
        """Return all available playlist algorithms."""
        return list(PLAYLIST_ALGORITHMS.values())

    @api_command("playlists")
    def get_playlists(self) -> list[GeneratedPlaylist]:
        """Return the (retained) generated playlists, newest first."""
        return sorted(self._playlists.values(), key=lambda x: x.created_at, reverse=True)

    @api_command("playlists/get")
    def get_playlist(self, playlist_id: str) -> GeneratedPlaylist:
        """Return a single generated playlist."""
        if playlist := self._playlists.get(playlist_id):
            return playlist
        msg = f"Playlist {playlist_id} not found"
        raise NotFoundError(msg)

    @api_command("playlists/generate")
    def generate(self, config: PlaylistConfig | None = None, reuse: bool = True) -> PlaylistSummary:
        """
        Generate a playlist from the catalog.

        A recent playlist with the same algorithm, genres and voice and (about) the
        same duration is returned instead, unless reuse is disabled.
        """
        if config is None:
            config = PlaylistConfig()
        algorithm = get_algorithm(config.algorithm)
        if reuse and (existing := self._find_reusable(config)):
            self.logger.debug("Reusing playlist %s", existing.id)
            return self._summary(existing, reused=True)
        entries = build_playlist(
            self.radio.catalog.tracks, config, ad_clips=self._get_ad_clips(config.voice_id)
        )
        playlist = GeneratedPlaylist(
            id=shortuuid.uuid(), algorithm=algorithm.key, config=config, entries=entries
        )
        if playlist.is_empty:
            self.logger.warning(
                "No tracks fit a playlist of %s seconds (%s tracks in catalog)",
                config.max_duration,
                len(self.radio.catalog.tracks),
            )
            return PlaylistSummary(
                success=False,
                algorithm=algorithm.key,
                error="No tracks available for the requested duration",
            )
        self._store(playlist)
        self.logger.info(
            "Generated playlist %s with %s entries (%s seconds) using %s",
            playlist.id,
            playlist.track_count,
            playlist.total_duration,
            algorithm.name,
        )
        self.radio.signal_event(
            EventType.PLAYLIST_GENERATED, playlist.id, self._summary(playlist).to_dict()
        )
        return self._summary(playlist)

    def _find_reusable(self, config: PlaylistConfig) -> GeneratedPlaylist | None:
        """Return a recent playlist that (about) matches the requested config."""
        now = time.time()
        for playlist in self.get_playlists():
            if now - playlist.created_at > PLAYLIST_REUSE_MAX_AGE:
                continue
            if playlist.algorithm != config.algorithm:
                continue
            if playlist.config.include_tts != config.include_tts:
                continue
            if playlist.config.voice_id != config.voice_id:
                continue
            if {x.lower() for x in playlist.config.genres} != {x.lower() for x in config.genres}:
                continue
            tolerance = config.max_duration * PLAYLIST_REUSE_DURATION_TOLERANCE
            if abs(playlist.config.max_duration - config.max_duration) > tolerance:
                continue
            return playlist
        return None

    def _store(self, playlist: GeneratedPlaylist) -> None:
        """Store a playlist, only the most recent playlists are retained."""
        self._playlists[playlist.id] = playlist
        for stale in self.get_playlists()[PLAYLIST_RETENTION:]:
            self._playlists.pop(stale.id)
        self.radio.config.set(CONF_PLAYLISTS, [x.to_dict() for x in self.get_playlists()])

    def _get_ad_clips(self, voice_id: str | None) -> list[str]:
        """Return the ad clips available for the given voice."""
        ad_library: dict[str, list[str]] = self.radio.config.get(CONF_AD_LIBRARY, {})
        return ad_library.get(voice_id or DEFAULT_AD_VOICE) or ad_library.get(DEFAULT_AD_VOICE, [])

    @staticmethod
    def _summary(playlist: GeneratedPlaylist, reused: bool = False) -> PlaylistSummary:
        return PlaylistSummary(
            success=True,
            playlist_id=playlist.id,
            track_count=playlist.track_count,
            total_duration=playlist.total_duration,
            algorithm=playlist.algorithm,
            reused=reused,
        )
