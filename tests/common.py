"""Common test helpers for Vinyl Radio tests."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable
from typing import Any

import aiofiles

from vinyl_radio.common.models.api import ControlResult, PlaylistTrack, RadioStatusMessage
from vinyl_radio.common.models.enums import ControlAction, EventType
from vinyl_radio.common.models.errors import CrossfadeFailure, SourcePrepFailure, SubprocessFailure
from vinyl_radio.common.models.event import RadioEvent
from vinyl_radio.server.models.transcoder import (
    CrossfadePlan,
    OutputSink,
    PreparedSource,
    Transcoder,
)
from vinyl_radio.server.server import RadioServer

OUTPUT_TARGET = "rtmp://live.example.com/app/streamkey"

CATALOG: list[dict[str, Any]] = [
    {
        "id": "t1",
        "name": "Rock One",
        "artist": "Artist A",
        "audioUrl": "https://cdn.example.com/audio/t1.mp3",
        "albumArt": "https://cdn.example.com/art/t1.jpg",
        "duration": 200,
        "genre": "Rock",
        "playCount": 40,
    },
    {
        "id": "t2",
        "name": "Rock Two",
        "artist": "Artist B",
        "audioUrl": "https://cdn.example.com/audio/t2.mp3",
        "duration": 180,
        "genre": "Rock",
        "playCount": 10,
    },
    {
        "id": "t3",
        "name": "Jazz One",
        "artist": "Artist C",
        "audioUrl": "https://cdn.example.com/audio/t3.mp3",
        "duration": 240,
        "genre": "Jazz",
        "recordLabel": "Blue Note",
        "nftId": "nft-3",
    },
    {
        "id": "t4",
        "name": "Soul One",
        "artist": "Artist D",
        "audioUrl": "https://cdn.example.com/audio/t4.mp3",
        "duration": 210,
        "genre": "Soul",
    },
    {
        "id": "t5",
        "name": "Endless Jam",
        "artist": "Artist E",
        "audioUrl": "https://cdn.example.com/audio/t5.mp3",
        "duration": 5000,
        "genre": "Jazz",
    },
    # invalid: no audio url
    {"id": "broken", "name": "Broken", "artist": "Nobody", "duration": 100},
]


class FakeOutput(OutputSink):
    """Output process stand-in that records the fed segments."""

    def __init__(self, target: str) -> None:
        """Initialize the fake output."""
        self.target = target
        self.fed: list[str] = []
        self.closed = False
        self._exit: asyncio.Future[int] = asyncio.get_running_loop().create_future()

    async def feed(self, path: str) -> None:
        """Record the fed segment."""
        self.fed.append(path)

    async def wait(self) -> int:
        """Wait for the (simulated) exit."""
        return await self._exit

    async def close(self) -> None:
        """Gracefully stop the (fake) process."""
        self.closed = True
        if not self._exit.done():
            self._exit.set_result(0)

    def exit(self, returncode: int) -> None:
        """Simulate an (unrequested) exit of the output process."""
        self._exit.set_result(returncode)

    @property
    def last_error(self) -> str | None:
        """Return the last error of the fake process."""
        if self._exit.done() and not self._exit.cancelled() and self._exit.result():
            return "Connection refused"
        return None


class FakeTranscoder(Transcoder):
    """Transcoder stand-in that never spawns ffmpeg."""

    def __init__(self, durations: dict[str, float] | None = None) -> None:
        """Initialize the fake transcoder."""
        self.durations = durations or {}
        self.default_duration = 30.0
        self.fail_urls: set[str] = set()
        self.fail_crossfade = False
        self.fail_output = False
        self.fetched: list[str] = []
        self.rendered: list[PreparedSource] = []
        self.crossfades: list[tuple[PreparedSource, PreparedSource, CrossfadePlan]] = []
        self.outputs: list[FakeOutput] = []
        self._sources: dict[str, str] = {}

    @property
    def output(self) -> FakeOutput:
        """Return the most recently opened output."""
        return self.outputs[-1]

    async def fetch(self, url: str, dest: str) -> None:
        """Write a dummy file for the source."""
        if url in self.fail_urls:
            msg = f"Unable to download {url}"
            raise SourcePrepFailure(msg)
        self.fetched.append(url)
        self._sources[dest] = url
        async with aiofiles.open(dest, "wb") as _file:
            await _file.write(b"audio")

    async def probe_duration(self, path: str) -> float:
        """Return the configured duration of the source."""
        return self.durations.get(self._sources[path], self.default_duration)

    async def render(self, source: PreparedSource, dest: str, gain: float, normalize: bool) -> None:
        """Write a dummy pcm segment."""
        self.rendered.append(source)
        async with aiofiles.open(dest, "wb") as _file:
            await _file.write(b"pcm")

    async def render_crossfade(
        self,
        outgoing: PreparedSource,
        incoming: PreparedSource,
        plan: CrossfadePlan,
        dest: str,
        gains: tuple[float, float],
        normalize: bool,
    ) -> None:
        """Write a dummy mixed segment."""
        if self.fail_crossfade:
            msg = "amix failed"
            raise CrossfadeFailure(msg)
        self.crossfades.append((outgoing, incoming, plan))
        async with aiofiles.open(dest, "wb") as _file:
            await _file.write(b"mixed")

    async def open_output(self, target: str) -> FakeOutput:
        """Return a fake output process."""
        if self.fail_output:
            msg = "Unable to spawn ffmpeg"
            raise SubprocessFailure(msg)
        output = FakeOutput(target)
        self.outputs.append(output)
        return output


class FakeRadioClient:
    """Stand-in for the RadioClient used by the playback state machine."""

    def __init__(self, status: RadioStatusMessage | Exception) -> None:
        """Initialize the fake client."""
        self.status = status
        self.status_calls = 0
        self.control_calls: list[tuple[ControlAction, str | None]] = []
        self.control_error: Exception | None = None
        # set to hold status requests until the event is set
        self.status_gate: asyncio.Event | None = None

    async def get_status(self) -> RadioStatusMessage:
        """Return the configured status."""
        self.status_calls += 1
        if self.status_gate is not None:
            await self.status_gate.wait()
        if isinstance(self.status, Exception):
            raise self.status
        return self.status

    async def control(
        self,
        action: ControlAction,
        track_id: str | None = None,
        config: dict[str, Any] | None = None,
    ) -> ControlResult:
        """Record the control call."""
        self.control_calls.append((action, track_id))
        if self.control_error is not None:
            raise self.control_error
        return ControlResult(success=True)


def make_status(
    current: str | None,
    tracks: Iterable[PlaylistTrack],
    updated_at: float,
    is_live: bool = True,
) -> RadioStatusMessage:
    """Return a (live) radio status with the given current track."""
    playlist = list(tracks)
    current_track = next((x for x in playlist if x.id == current), None)
    return RadioStatusMessage(
        success=True,
        is_live=is_live,
        playlist=playlist,
        current_track=current_track,
        updated_at=updated_at,
        max_age=90,
    )


def collect_events(
    radio: RadioServer, event_filter: EventType | tuple[EventType, ...] | None = None
) -> tuple[list[RadioEvent], Callable]:
    """Collect the events signaled by the server, returns the list and the unsubscribe."""
    events: list[RadioEvent] = []
    remove_cb = radio.subscribe(events.append, event_filter)
    return events, remove_cb


async def wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Wait until the predicate is met."""
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.01)
