"""
Client side playback state of the radio.

The server is the authority on what is playing: the state machine polls the radio
status and reconciles its local view with every poll. A track selected by the user
is shown optimistically as a pending action until a poll confirms it, or reverted
when the control request fails.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import shortuuid

from vinyl_radio.client.exceptions import InvalidState, TransportError
from vinyl_radio.common.models.enums import ControlAction, PlaybackState
from vinyl_radio.common.models.errors import NotFoundError, RadioError
from vinyl_radio.constants import (
    DEFAULT_VOLUME,
    MANUAL_CHANGE_GRACE,
    STATUS_FETCH_RATE_LIMIT,
    STATUS_POLL_INTERVAL,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from vinyl_radio.client.client import RadioClient
    from vinyl_radio.common.models.api import PlaylistTrack, RadioStatusMessage

LOGGER = logging.getLogger(__package__)


@dataclass
class PendingAction:
    """A locally applied (not yet confirmed) change of the current track."""

    action: ControlAction
    track: PlaylistTrack
    previous: PlaylistTrack | None
    created_at: float = field(default_factory=time.monotonic)


class PlaybackStateMachine:
    """Playback state of a single radio client, kept in sync by polling."""

    def __init__(
        self,
        client: RadioClient,
        poll_interval: float = STATUS_POLL_INTERVAL,
    ) -> None:
        """Initialize the state machine."""
        self.client = client
        self.poll_interval = poll_interval
        self.state = PlaybackState.LOADING
        self.status: RadioStatusMessage | None = None
        self.playlist: list[PlaylistTrack] = []
        self.current_track: PlaylistTrack | None = None
        self.pending: PendingAction | None = None
        # local (ui only) state, never sent to the server
        self.volume = DEFAULT_VOLUME
        self.muted = False
        self.liked: set[str] = set()
        self.search_filter = ""
        self._last_fetch: float | None = None
        self._artwork_track_id: str | None = None
        self._artwork_token = ""
        self._poll_task: asyncio.Task | None = None
        self._listeners: list[Callable[[PlaybackStateMachine], None]] = []

    @property
    def is_live(self) -> bool:
        """Return if the radio is live (and the status is recent)."""
        return self.status is not None and self.status.is_live and not self.is_offline

    @property
    def is_offline(self) -> bool:
        """Return if the last known status is missing or too old to be trusted."""
        if self.status is None:
            return True
        return time.time() - self.status.updated_at > self.status.max_age

    @property
    def current_index(self) -> int:
        """Return the position of the current track in the (client) playlist."""
        if self.current_track is None:
            return -1
        for index, track in enumerate(self.playlist):
            if track.id == self.current_track.id:
                return index
        return -1

    @property
    def is_liked(self) -> bool:
        """Return if the current track is liked."""
        return self.current_track is not None and self.current_track.id in self.liked

    @property
    def artwork_url(self) -> str | None:
        """Return the artwork url of the current track, busted on every track change."""
        if self.current_track is None or not self.current_track.album_art:
            return None
        separator = "&" if "?" in self.current_track.album_art else "?"
        return f"{self.current_track.album_art}{separator}v={self._artwork_token}"

    def filtered_playlist(self) -> list[PlaylistTrack]:
        """Return the playlist, filtered by the search filter."""
        if not self.search_filter:
            return list(self.playlist)
        needle = self.search_filter.lower()
        return [
            x for x in self.playlist if needle in x.name.lower() or needle in x.artist.lower()
        ]

    def share_url(self, base_url: str) -> str | None:
        """Return the url to share the current track."""
        if self.current_track is None:
            return None
        return f"{base_url.rstrip('/')}/radio?track={self.current_track.id}"

    def add_listener(self, cb_func: Callable[[PlaybackStateMachine], None]) -> Callable:
        """Add a callback that is called on every change, returns function to remove it."""
        self._listeners.append(cb_func)

        def remove_listener() -> None:
            self._listeners.remove(cb_func)

        return remove_listener

    async def refresh(self, force: bool = False, background: bool = False) -> bool:
        """
        Fetch the radio status, returns False if the fetch was skipped or failed.

        A background refresh (poll) only shows the loading state while there is
        no status yet, local playback controls stay usable during the fetch.
        """
        now = time.monotonic()
        if (
            not force
            and self._last_fetch is not None
            and now - self._last_fetch < STATUS_FETCH_RATE_LIMIT
        ):
            return False
        self._last_fetch = now
        previous_state = self.state
        loading = not background or self.status is None
        if loading:
            self.state = PlaybackState.LOADING
        try:
            status = await self.client.get_status()
        except (TransportError, RadioError) as err:
            LOGGER.warning("Unable to fetch radio status: %s", str(err))
            if loading and previous_state != PlaybackState.LOADING:
                self.state = previous_state
            elif loading and self.status is not None:
                self.state = PlaybackState.READY
            self._notify()
            return False
        self._apply_status(status)
        if loading and previous_state in (PlaybackState.PLAYING, PlaybackState.PAUSED):
            self.state = previous_state
        elif loading:
            self.state = PlaybackState.READY
        self._notify()
        return True

    async def select_track(self, track_id: str) -> bool:
        """Switch the radio to a track, shown optimistically until the server confirms it."""
        track = next((x for x in self.playlist if x.id == track_id), None)
        if track is None:
            msg = f"Track {track_id} is not part of the playlist"
            raise NotFoundError(msg)
        self.pending = PendingAction(
            action=ControlAction.SET_TRACK, track=track, previous=self._authoritative_track()
        )
        self._set_current(track)
        self._notify()
        try:
            await self.client.control(ControlAction.SET_TRACK, track_id)
        except (TransportError, RadioError) as err:
            LOGGER.warning("Unable to select track %s: %s", track_id, str(err))
            self._revert()
            await self.refresh(force=True)
            return False
        return True

    async def select_index(self, index: int) -> bool:
        """Switch the radio to the track at the given position of the playlist."""
        if not self.playlist:
            msg = "The playlist is empty"
            raise InvalidState(msg)
        return await self.select_track(self.playlist[index % len(self.playlist)].id)

    async def next_track(self) -> bool:
        """Switch to the next track of the playlist (wraps around)."""
        return await self.select_index(self.current_index + 1)

    async def previous_track(self) -> bool:
        """Switch to the previous track of the playlist (wraps around)."""
        index = self.current_index
        return await self.select_index(len(self.playlist) - 1 if index <= 0 else index - 1)

    def play(self) -> PlaybackState:
        """Start (local) playback."""
        if self.state == PlaybackState.LOADING:
            msg = "Unable to play while loading"
            raise InvalidState(msg)
        self.state = PlaybackState.PLAYING
        self._notify()
        return self.state

    def pause(self) -> PlaybackState:
        """Pause (local) playback."""
        if self.state == PlaybackState.PLAYING:
            self.state = PlaybackState.PAUSED
            self._notify()
        return self.state

    def toggle_play(self) -> PlaybackState:
        """Toggle between playing and paused."""
        if self.state == PlaybackState.PLAYING:
            return self.pause()
        return self.play()

    def set_volume(self, volume: float) -> None:
        """Set the (local) volume, a volume of 0 means muted."""
        self.volume = min(1.0, max(0.0, volume))
        self.muted = self.volume == 0
        self._notify()

    def toggle_mute(self) -> bool:
        """Toggle mute, returns the new muted state."""
        self.muted = not self.muted
        if not self.muted and self.volume == 0:
            self.volume = DEFAULT_VOLUME
        self._notify()
        return self.muted

    def toggle_like(self) -> bool:
        """Toggle the (local) like of the current track, returns the new liked state."""
        if self.current_track is None:
            return False
        if self.current_track.id in self.liked:
            self.liked.discard(self.current_track.id)
        else:
            self.liked.add(self.current_track.id)
        self._notify()
        return self.is_liked

    def start_polling(self) -> asyncio.Task:
        """Start polling the radio status in the background."""
        if self._poll_task is None or self._poll_task.done():
            self._poll_task = asyncio.create_task(self._poll())
        return self._poll_task

    async def stop_polling(self) -> None:
        """Stop polling the radio status."""
        if self._poll_task is None:
            return
        self._poll_task.cancel()
        try:
            await self._poll_task
        except asyncio.CancelledError:
            pass
        self._poll_task = None

    async def _poll(self) -> None:
        while True:
            await self.refresh(force=True, background=True)
            await asyncio.sleep(self.poll_interval)

    def _apply_status(self, status: RadioStatusMessage) -> None:
        """Reconcile the local state with an (authoritative) status."""
        self.status = status
        self.playlist = [x for x in status.playlist if not x.is_ad]
        reported = status.current_track
        if self.pending is not None:
            if reported is not None and reported.id == self.pending.track.id:
                LOGGER.debug("Track change to %s confirmed", reported.name)
            elif time.monotonic() - self.pending.created_at < MANUAL_CHANGE_GRACE:
                # the server did not yet pick up the manual change
                return
            else:
                LOGGER.debug("Track change to %s was not confirmed", self.pending.track.name)
            self.pending = None
        self._set_current(reported)

    def _authoritative_track(self) -> PlaylistTrack | None:
        """Return the current track as last reported by the server."""
        if self.status is None:
            return None
        return self.status.current_track

    def _revert(self) -> None:
        """Revert a pending action to the last authoritative track."""
        if self.pending is None:
            return
        self._set_current(self.pending.previous)
        self.pending = None
        self._notify()

    def _set_current(self, track: PlaylistTrack | None) -> None:
        self.current_track = track
        track_id = track.id if track else None
        if track_id != self._artwork_track_id:
            self._artwork_track_id = track_id
            self._artwork_token = shortuuid.ShortUUID().random(length=8)

    def _notify(self) -> None:
        for cb_func in self._listeners:
            cb_func(self)
