"""Controller that provides the catalog of radio-eligible tracks."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

from aiohttp import ClientError, ClientTimeout

from vinyl_radio.common.helpers.json import JSON_DECODE_EXCEPTIONS, load_json_file
from vinyl_radio.common.models.api import LikeResult
from vinyl_radio.common.models.enums import EventType, LikeAction
from vinyl_radio.common.models.errors import InvalidDataError, NotFoundError
from vinyl_radio.common.models.playlist import CatalogTrack
from vinyl_radio.constants import CONF_CATALOG, CONF_LIKES
from vinyl_radio.server.helpers.api import api_command
from vinyl_radio.server.models.core_controller import CoreController

if TYPE_CHECKING:
    from vinyl_radio.server import RadioServer

DEFAULT_CATALOG_FILENAME = "catalog.json"
ANONYMOUS_USER = "anonymous"
FETCH_TIMEOUT = ClientTimeout(total=30)


class CatalogController(CoreController):
    """Controller holding the catalog of radio-eligible tracks."""

    domain: str = "catalog"

    def __init__(self, radio: RadioServer) -> None:
        """Initialize the controller."""
        super().__init__(radio)
        self._tracks: dict[str, CatalogTrack] = {}

    @property
    def source(self) -> str:
        """Return the location (file path or url) of the catalog."""
        return self.radio.config.get(
            CONF_CATALOG, os.path.join(self.radio.storage_path, DEFAULT_CATALOG_FILENAME)
        )

    @property
    def tracks(self) -> list[CatalogTrack]:
        """Return all tracks of the catalog (in catalog order)."""
        return list(self._tracks.values())

    async def setup(self) -> None:
        """Async initialize of module."""
        await self.reload_catalog()

    @api_command("catalog/reload")
    async def reload_catalog(self) -> int:
        """(Re)load the catalog from its source, returns the number of tracks."""
        try:
            raw_items = await self._load_raw(self.source)
        except FileNotFoundError:
            self.logger.warning("Catalog %s does not exist, starting empty", self.source)
            raw_items = []
        except (ClientError, OSError, InvalidDataError, *JSON_DECODE_EXCEPTIONS) as err:
            self.logger.error("Unable to load catalog from %s: %s", self.source, str(err))
            return len(self._tracks)
        tracks: dict[str, CatalogTrack] = {}
        for raw_item in raw_items:
            try:
                track = CatalogTrack.from_dict(raw_item)
            except (LookupError, TypeError, ValueError) as err:
                self.logger.warning("Skipping invalid catalog item: %s", str(err))
                continue
            track.like_count += len(self.radio.config.get(f"{CONF_LIKES}/{track.id}", []))
            tracks[track.id] = track
        self._tracks = tracks
        self.logger.info("Loaded %s track(s) from catalog %s", len(tracks), self.source)
        self.radio.signal_event(EventType.CATALOG_UPDATED, data={"count": len(tracks)})
        return len(tracks)

    @api_command("catalog/tracks")
    def get_tracks(self, genre: str | None = None) -> list[CatalogTrack]:
        """Return all catalog tracks, optionally filtered by genre."""
        if genre is None:
            return self.tracks
        return [x for x in self._tracks.values() if x.genre.lower() == genre.lower()]

    @api_command("catalog/tracks/get")
    def get_track(self, track_id: str) -> CatalogTrack:
        """Return a single catalog track."""
        if track := self._tracks.get(track_id):
            return track
        msg = f"Track {track_id} not found in catalog"
        raise NotFoundError(msg)

    @api_command("catalog/like")
    def like(
        self, track_id: str, action: LikeAction = LikeAction.LIKE, user_id: str | None = None
    ) -> LikeResult:
        """Like or unlike a track, repeating the same action has no effect."""
        track = self.get_track(track_id)
        user_id = user_id or ANONYMOUS_USER
        conf_key = f"{CONF_LIKES}/{track_id}"
        likes: list[str] = list(self.radio.config.get(conf_key, []))
        liked = user_id in likes
        if action == LikeAction.LIKE and not liked:
            likes.append(user_id)
            track.like_count += 1
        elif action == LikeAction.UNLIKE and liked:
            likes.remove(user_id)
            track.like_count = max(0, track.like_count - 1)
        else:
            return LikeResult(success=True, liked=liked, like_count=track.like_count)
        self.radio.config.set(conf_key, likes)
        self.logger.debug("User %s %sd track %s", user_id, action.value, track_id)
        return LikeResult(success=True, liked=action == LikeAction.LIKE, like_count=track.like_count)

    async def _load_raw(self, source: str) -> list[dict]:
        """Load the raw catalog items from a file or (http) url."""
        if source.startswith(("http://", "https://")):
            async with self.radio.http_session.get(source, timeout=FETCH_TIMEOUT) as resp:
                resp.raise_for_status()
                data = await resp.json(content_type=None)
        else:
            data = await load_json_file(source)
        if isinstance(data, dict):
            # content stores wrap the items in an object
            data = data.get("tracks", data.get("items"))
        if not isinstance(data, list):
            msg = f"Catalog {source} does not contain a list of tracks"
            raise InvalidDataError(msg)
        return data
