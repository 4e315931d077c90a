"""Controller that exposes the status and control surface of the radio."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import shortuuid

from vinyl_radio.common.models.api import (
    ControlResult,
    PlaylistSummary,
    PlaylistTrack,
    RadioStatusMessage,
)
from vinyl_radio.common.models.audio_stream import AudioStream
from vinyl_radio.common.models.enums import (
    ControlAction,
    EventType,
    PlaylistEntryType,
    RadioStreamStatus,
    StreamType,
)
from vinyl_radio.common.models.errors import InvalidDataError, NotFoundError
from vinyl_radio.common.models.playlist import GeneratedPlaylist, PlaylistConfig, PlaylistEntry
from vinyl_radio.common.models.radio import RadioStream
from vinyl_radio.constants import (
    CONF_OUTPUT_TARGET,
    CONF_RADIO_STREAM,
    CONF_TTS_URL,
    DEFAULT_RADIO_NAME,
    STATUS_MAX_AGE,
)
from vinyl_radio.server.helpers.api import api_command
from vinyl_radio.server.models.core_controller import CoreController

if TYPE_CHECKING:
    from collections.abc import Callable

    from vinyl_radio.common.models.event import RadioEvent
    from vinyl_radio.server import RadioServer

AD_TITLE = "Sponsored Message"
AD_ARTIST = "Ad"
DEFAULT_TTS_VOICE = "default"


class RadioController(CoreController):
    """Controller that manages the (single) radio stream and its playlist."""

    domain: str = "radio"

    def __init__(self, radio: RadioServer) -> None:
        """Initialize the controller."""
        super().__init__(radio)
        self.stream = RadioStream(id=shortuuid.uuid(), name=DEFAULT_RADIO_NAME)
        # queued stream id -> position in the playlist
        self._positions: dict[str, int] = {}
        self._unsub: Callable | None = None

    @property
    def playlist(self) -> GeneratedPlaylist | None:
        """Return the playlist of the radio stream."""
        if not self.stream.playlist_id:
            return None
        try:
            return self.radio.playlists.get_playlist(self.stream.playlist_id)
        except NotFoundError:
            return None

    async def setup(self) -> None:
        """Async initialize of module."""
        if raw_stream := self.radio.config.get(CONF_RADIO_STREAM):
            try:
                self.stream = RadioStream.from_dict(raw_stream)
            except (LookupError, TypeError, ValueError) as err:
                self.logger.warning("Ignoring invalid stored radio stream: %s", str(err))
        # the output process does not survive a restart
        self.stream.is_live = self.radio.live_audio.is_streaming
        self._unsub = self.radio.subscribe(
            self._on_live_audio_event,
            (EventType.TRACK_CHANGED, EventType.STREAM_ENDED, EventType.STREAM_ERROR),
        )

    async def close(self) -> None:
        """Handle logic on server stop."""
        if self._unsub:
            self._unsub()
            self._unsub = None

    @api_command("radio/status")
    def get_status(self) -> RadioStatusMessage:
        """Return the status of the radio for playback clients."""
        live = self.radio.live_audio
        metadata = live.get_metadata()
        playlist = self.playlist
        tracks = [self._to_playlist_track(x) for x in playlist.entries] if playlist else []
        status = RadioStatusMessage(
            success=True,
            is_live=self.stream.is_live and live.is_streaming,
            playlist=tracks,
            total_listeners=metadata.total_listeners,
            peak_listeners=metadata.peak_listeners,
            uptime=metadata.uptime,
            state=metadata.state,
            playlist_id=playlist.id if playlist else None,
            total_duration=playlist.total_duration if playlist else 0.0,
            time_remaining=metadata.time_remaining,
            updated_at=time.time(),
            max_age=STATUS_MAX_AGE,
        )
        if not status.is_live:
            # offline: the playlist is only shown as preview
            return status
        current = live.current_stream
        index = self._get_current_index(current, playlist)
        if index >= 0:
            status.current_track_index = index
            status.current_track = tracks[index]
            status.next_track = tracks[(index + 1) % len(tracks)]
        elif current is not None:
            status.current_track = self._stream_to_playlist_track(current)
        if current is not None and current.duration:
            elapsed = current.duration - metadata.time_remaining
            status.progress = round(min(100.0, max(0.0, elapsed / current.duration * 100)), 1)
        return status

    @api_command("radio/control")
    async def control(
        self,
        action: ControlAction,
        track_id: str | None = None,
        config: dict[str, Any] | None = None,
    ) -> ControlResult:
        """Execute a control action on the radio."""
        self.logger.debug("Control action %s (track: %s)", action.value, track_id)
        if action == ControlAction.START:
            return await self._start(config or {})
        if action == ControlAction.STOP:
            return await self._stop()
        if action == ControlAction.SKIP:
            skipped = self.radio.live_audio.skip_current()
            return ControlResult(success=True, message=None if skipped else "Nothing to skip")
        if not track_id:
            msg = f"Action {action.value} requires a trackId"
            raise InvalidDataError(msg)
        if action == ControlAction.ADD_TRACK:
            track = self.radio.catalog.get_track(track_id)
            stream_id = self.radio.live_audio.add_stream(self._track_stream(track_id))
            self.logger.info("Added %s to the live queue", track.name)
            return ControlResult(success=True, stream_id=stream_id)
        if action == ControlAction.UPDATE_TRACK:
            track = self.radio.catalog.get_track(track_id)
            if not self.radio.live_audio.update_current_display(
                track.id, track.name, track.artist, track.album_art
            ):
                return ControlResult(success=False, error="Nothing is playing")
            return ControlResult(success=True)
        # set-track
        return self._set_track(track_id)

    @api_command("radio/playlist")
    def generate_playlist(
        self, config: PlaylistConfig | None = None, reuse: bool = True
    ) -> PlaylistSummary:
        """Generate a playlist and assign it to the radio stream."""
        summary = self.radio.playlists.generate(config, reuse)
        if summary.success:
            self.stream.playlist_id = summary.playlist_id
            self._save()
        return summary

    @api_command("radio/stream")
    def get_stream(self) -> RadioStream:
        """Return the (administrative) radio stream entity."""
        return self.stream

    async def _start(self, config: dict[str, Any]) -> ControlResult:
        """Go live with the playlist of the radio stream."""
        live = self.radio.live_audio
        if live.is_streaming:
            return ControlResult(success=True, message="Radio is already live")
        config = dict(config)
        output_target = config.pop("outputTarget", None) or self.radio.config.get(
            CONF_OUTPUT_TARGET
        )
        if mix_config := config.pop("mixConfig", None):
            live.update_config(mix_config)
        playlist = self.playlist
        if playlist is None or config:
            try:
                playlist_config = PlaylistConfig.from_dict(config)
            except (LookupError, TypeError, ValueError) as err:
                msg = f"Invalid playlist config: {err}"
                raise InvalidDataError(msg) from err
            summary = self.generate_playlist(playlist_config)
            if not summary.success:
                return ControlResult(success=False, error=summary.error)
            playlist = self.playlist
        await live.start_streaming(output_target)
        live.clear_queue()
        self._enqueue_playlist(playlist)
        self.stream.status = RadioStreamStatus.ACTIVE
        self.stream.is_live = True
        self.stream.output_target = output_target
        self._save()
        return ControlResult(success=True, message="Radio is live")

    async def _stop(self) -> ControlResult:
        """Go offline."""
        live = self.radio.live_audio
        if not live.is_streaming and not self.stream.is_live:
            return ControlResult(success=True, message="Radio is not live")
        await live.stop_streaming()
        live.clear_queue()
        self._positions.clear()
        self.stream.status = RadioStreamStatus.INACTIVE
        self.stream.is_live = False
        self._save()
        return ControlResult(success=True, message="Radio stopped")

    def _set_track(self, track_id: str) -> ControlResult:
        """Continue the playlist from the given track."""
        playlist = self.playlist
        position = playlist.index_of(track_id) if playlist else None
        if playlist is None or position is None:
            # raises NotFoundError for tracks unknown to the catalog
            self.radio.catalog.get_track(track_id)
            msg = f"Track {track_id} is not part of the playlist"
            raise NotFoundError(msg)
        if position > 0 and playlist.entries[position - 1].is_intro:
            position -= 1
        live = self.radio.live_audio
        live.clear_queue()
        self._positions.clear()
        self._enqueue_playlist(playlist, position)
        live.skip_current()
        return ControlResult(success=True)

    def _enqueue_playlist(self, playlist: GeneratedPlaylist, start: int = 0) -> int:
        """Enqueue (the remainder of) a playlist on the live audio processor."""
        count = 0
        for entry in playlist.entries[start:]:
            if (stream := self._entry_stream(entry)) is None:
                continue
            stream_id = self.radio.live_audio.add_stream(stream)
            self._positions[stream_id] = entry.position
            count += 1
        self.logger.debug("Enqueued %s entries of playlist %s", count, playlist.id)
        return count

    def _entry_stream(self, entry: PlaylistEntry) -> AudioStream | None:
        """Return the playable stream for a playlist entry."""
        if entry.entry_type == PlaylistEntryType.AD:
            if not entry.url:
                return None
            return AudioStream(
                url=entry.url,
                type=StreamType.AD,
                duration=entry.duration,
                title=AD_TITLE,
                artist=AD_ARTIST,
            )
        if entry.entry_type == PlaylistEntryType.INTRO:
            if not (tts_url := self.radio.config.get(CONF_TTS_URL)) or not entry.text:
                return None
            title = self._to_playlist_track(entry).name
            return AudioStream(
                url=tts_url.format(
                    text=quote(entry.text), voice=quote(entry.voice_id or DEFAULT_TTS_VOICE)
                ),
                type=StreamType.TTS,
                duration=entry.duration,
                track_id=entry.track_id,
                title=title,
                artist=DEFAULT_RADIO_NAME,
            )
        try:
            return self._track_stream(entry.track_id)
        except NotFoundError:
            self.logger.warning("Track %s is no longer in the catalog", entry.track_id)
            return None

    def _track_stream(self, track_id: str) -> AudioStream:
        """Return the playable stream for a catalog track."""
        track = self.radio.catalog.get_track(track_id)
        return AudioStream(
            url=track.audio_url,
            type=StreamType.MUSIC,
            duration=track.duration,
            track_id=track.id,
            title=track.name,
            artist=track.artist,
            album_art=track.album_art,
        )

    def _get_current_index(
        self, current: AudioStream | None, playlist: GeneratedPlaylist | None
    ) -> int:
        """Return the playlist position of the current stream, -1 if unknown."""
        if current is None or playlist is None:
            return -1
        position = self._positions.get(current.id)
        if position is not None and position >= len(playlist.entries):
            # positions refer to a previous playlist
            position = None
        if position is not None and playlist.entries[position].track_id == current.track_id:
            return position
        if current.track_id and current.type == StreamType.MUSIC:
            # display metadata was overridden
            index = playlist.index_of(current.track_id)
            return -1 if index is None else index
        return -1 if position is None else position

    def _to_playlist_track(self, entry: PlaylistEntry) -> PlaylistTrack:
        """Return the (client facing) representation of a playlist entry."""
        if entry.is_ad:
            return PlaylistTrack(
                id=f"ad-{entry.position}",
                name=AD_TITLE,
                artist=AD_ARTIST,
                duration=entry.duration,
                is_ad=True,
            )
        try:
            track = self.radio.catalog.get_track(entry.track_id)
        except NotFoundError:
            return PlaylistTrack(
                id=entry.track_id or f"entry-{entry.position}",
                name="Unknown track",
                artist="Unknown artist",
                duration=entry.duration,
                is_intro=entry.is_intro,
            )
        if entry.is_intro:
            return PlaylistTrack(
                id=f"intro-{entry.position}",
                name=f"Intro: {track.name}",
                artist=DEFAULT_RADIO_NAME,
                duration=entry.duration,
                album_art=track.album_art,
                is_intro=True,
            )
        return PlaylistTrack(
            id=track.id,
            name=track.name,
            artist=track.artist,
            duration=track.duration,
            album_art=track.album_art,
            genre=track.genre,
            record_label=track.record_label,
            nft_id=track.nft_id,
        )

    @staticmethod
    def _stream_to_playlist_track(stream: AudioStream) -> PlaylistTrack:
        """Return the representation of a stream that is not part of the playlist."""
        return PlaylistTrack(
            id=stream.track_id or stream.id,
            name=stream.title or stream.url,
            artist=stream.artist or "",
            duration=stream.duration,
            album_art=stream.album_art,
            is_ad=stream.type == StreamType.AD,
            is_intro=stream.type == StreamType.TTS,
        )

    def _on_live_audio_event(self, event: RadioEvent) -> None:
        """Handle events of the live audio processor."""
        if event.event in (EventType.STREAM_ENDED, EventType.STREAM_ERROR):
            self.stream.is_live = False
            self.stream.status = RadioStreamStatus.INACTIVE
            self._positions.clear()
            self._save()
            return
        self._prune_positions()
        # loop the playlist when the queue runs empty
        if event.data and event.data.get("next") is None and self.stream.is_live:
            if self.radio.live_audio.is_streaming and (playlist := self.playlist):
                self.logger.debug("Queue ran empty, restarting playlist %s", playlist.id)
                self._enqueue_playlist(playlist)

    def _prune_positions(self) -> None:
        """Forget the positions of streams that are no longer current or queued."""
        live_audio = self.radio.live_audio
        current = live_audio.current_stream
        for stream_id in list(self._positions):
            if current is not None and stream_id == current.id:
                continue
            if stream_id not in live_audio.queue:
                self._positions.pop(stream_id)

    def _save(self) -> None:
        self.stream.touch()
        self.radio.config.set(CONF_RADIO_STREAM, self.stream.to_dict())
        self.radio.signal_event(EventType.RADIO_UPDATED, self.stream.id, self.stream.to_dict())
