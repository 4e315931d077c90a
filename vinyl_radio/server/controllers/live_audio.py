"""
Controller that produces the continuous live radio output.

The processor consumes the stream queue, prepares every source (download and probe),
crossfades consecutive sources and feeds the rendered pcm segments into a single
long running output process (ffmpeg) that encodes to the output target.

A prepared source is not played immediately: it is kept as the (pending) current
source until the next source arrives, so the whole current source can be mixed with
the head of the next one. The remaining tail of the next source then becomes the new
pending current source. When the queue runs empty, the pending source is played out.
"""

from __future__ import annotations

import asyncio
import os
import time
from dataclasses import replace
from typing import TYPE_CHECKING, Any

from vinyl_radio.common.models.audio_stream import AudioStream
from vinyl_radio.common.models.enums import EventType, StreamState
from vinyl_radio.common.models.errors import (
    AlreadyStreamingError,
    AudioError,
    InvalidDataError,
    RadioError,
    SourcePrepFailure,
    SubprocessFailure,
)
from vinyl_radio.common.models.metadata import StreamMetadata
from vinyl_radio.common.models.mix_config import LiveMixConfig
from vinyl_radio.constants import (
    CONF_MIX_CONFIG,
    CONF_OUTPUT_TARGET,
    PROCESSING_INTERVAL,
    TEMP_DIR_NAME,
    TRANSCODE_TIMEOUT,
    VERBOSE_LOG_LEVEL,
)
from vinyl_radio.server.helpers.api import api_command
from vinyl_radio.server.helpers.audio import FFMpegTranscoder, compute_crossfade
from vinyl_radio.server.helpers.queue import StreamQueue
from vinyl_radio.server.helpers.util import create_temp_path, remove_file, sweep_temp_dir
from vinyl_radio.server.models.core_controller import CoreController
from vinyl_radio.server.models.transcoder import PreparedSource

if TYPE_CHECKING:
    from vinyl_radio.server import RadioServer
    from vinyl_radio.server.models.transcoder import OutputSink, Transcoder


class LiveAudioController(CoreController):
    """Controller that orchestrates the live mix and the output process."""

    domain: str = "live_audio"

    def __init__(self, radio: RadioServer, transcoder: Transcoder | None = None) -> None:
        """Initialize the controller."""
        super().__init__(radio)
        self.transcoder = transcoder
        self.queue = StreamQueue()
        self.temp_dir = os.path.join(self.radio.storage_path, TEMP_DIR_NAME)
        self._config = LiveMixConfig()
        self._metadata = StreamMetadata()
        self._state = StreamState.IDLE
        self._output: OutputSink | None = None
        self._loop_task: asyncio.Task | None = None
        self._watch_task: asyncio.Task | None = None
        self._feed_task: asyncio.Task | None = None
        self._process_lock = asyncio.Lock()
        self._current: PreparedSource | None = None
        self._skip_requested = False
        self._output_position = 0.0
        self._started_at: float | None = None
        self._temp_files: set[str] = set()

    @property
    def state(self) -> StreamState:
        """Return the state of the processor."""
        return self._state

    @property
    def is_streaming(self) -> bool:
        """Return if the processor is live."""
        return self._state == StreamState.STREAMING

    @property
    def current_stream(self) -> AudioStream | None:
        """Return the (pending) current stream."""
        return self._current.stream if self._current else None

    @property
    def output_target(self) -> str | None:
        """Return the target the output process is encoding to."""
        return self._output.target if self._output else None

    @property
    def mix_config(self) -> LiveMixConfig:
        """Return the active mix configuration."""
        return self._config

    async def setup(self) -> None:
        """Async initialize of module."""
        if self.transcoder is None:
            self.transcoder = FFMpegTranscoder(self.radio.http_session)
        await self.transcoder.setup()
        if stored := self.radio.config.get(CONF_MIX_CONFIG):
            try:
                self._config = LiveMixConfig().merge(stored)
            except InvalidDataError as err:
                self.logger.warning("Ignoring invalid stored mix config: %s", str(err))
        # remove leftovers of an earlier (crashed) run
        await sweep_temp_dir(self.temp_dir)

    async def close(self) -> None:
        """Handle logic on server stop."""
        await self.stop_streaming()
        await self.cleanup()

    async def reload(self) -> None:
        """Apply changed (log) settings, the output process keeps running."""
        self._set_logger()

    @api_command("live_audio/start")
    async def start_streaming(self, output_target: str | None = None) -> None:
        """Spawn the output process and start the processing loop."""
        if self._state != StreamState.IDLE:
            msg = f"Unable to start streaming while {self._state.value}"
            raise AlreadyStreamingError(msg)
        output_target = output_target or self.radio.config.get(CONF_OUTPUT_TARGET)
        if not output_target:
            msg = "No output target configured"
            raise InvalidDataError(msg)
        self._set_state(StreamState.STARTING)
        try:
            self._output = await self.transcoder.open_output(output_target)
        except SubprocessFailure:
            self._output = None
            self._set_state(StreamState.IDLE)
            raise
        self._started_at = time.time()
        self._output_position = 0.0
        self._set_state(StreamState.STREAMING)
        self._watch_task = self.radio.create_task(self._watch_output(self._output))
        self._loop_task = self.radio.create_task(self._processing_loop())
        self.logger.info("Started streaming to %s", output_target)
        self.radio.signal_event(EventType.STREAM_STARTED, data={"outputUrl": output_target})

    @api_command("live_audio/stop")
    async def stop_streaming(self) -> None:
        """Gracefully stop the output process and the processing loop."""
        if self._state in (StreamState.IDLE, StreamState.STOPPING, StreamState.ERROR):
            return
        self._set_state(StreamState.STOPPING)
        # the watcher would otherwise report the (requested) exit of the process
        await self._cancel_tasks()
        if self._output is not None:
            await self._output.close()
            self._output = None
        await self._reset()
        self.logger.info("Stopped streaming")
        self.radio.signal_event(EventType.STREAM_STOPPED)

    @api_command("live_audio/queue/add")
    def add_stream(self, stream: AudioStream) -> str:
        """Append a stream to the queue, returns the assigned id."""
        item = self.queue.add(stream)
        self.logger.debug("Added %s to the queue", item.display_name)
        self.radio.signal_event(EventType.STREAM_ADDED, item.id, {"stream": item.to_dict()})
        return item.id

    @api_command("live_audio/queue/remove")
    def remove_stream(self, stream_id: str) -> bool:
        """Remove a (not yet played) stream from the queue."""
        if self.queue.remove(stream_id) is None:
            return False
        self.radio.signal_event(EventType.STREAM_REMOVED, stream_id, {"streamId": stream_id})
        return True

    @api_command("live_audio/queue/play_now")
    def play_now(self, stream: AudioStream) -> str:
        """Insert a stream at the head of the queue, returns the assigned id."""
        item = self.queue.push_front(stream)
        self.radio.signal_event(EventType.STREAM_ADDED, item.id, {"stream": item.to_dict()})
        return item.id

    @api_command("live_audio/queue/clear")
    def clear_queue(self) -> int:
        """Remove all queued streams."""
        return self.queue.clear()

    @api_command("live_audio/skip")
    def skip_current(self) -> bool:
        """Drop the pending current stream, the next stream becomes current without crossfade."""
        if self._current is None:
            return False
        self.logger.debug("Skipping %s", self._current.stream.display_name)
        self._skip_requested = True
        return True

    def update_current_display(
        self,
        track_id: str | None = None,
        title: str | None = None,
        artist: str | None = None,
        album_art: str | None = None,
    ) -> AudioStream | None:
        """Override the display metadata of the current stream."""
        if self._current is None:
            return None
        stream = self._current.stream.with_display(track_id, title, artist, album_art)
        self._current = replace(self._current, stream=stream)
        self._signal_track_changed()
        return stream

    @api_command("live_audio/queue")
    def get_queue_status(self) -> dict[str, Any]:
        """Return the current stream and the queued streams."""
        return {
            "current": current.to_dict() if (current := self.current_stream) else None,
            "queue": [x.to_dict() for x in self.queue],
            "queueLength": len(self.queue),
            "isStreaming": self.is_streaming,
        }

    @api_command("live_audio/config")
    def get_config(self) -> LiveMixConfig:
        """Return the active mix configuration."""
        return self._config

    @api_command("live_audio/config/update")
    def update_config(self, values: dict[str, Any]) -> LiveMixConfig:
        """Merge (partial) values into the mix configuration."""
        self._config = self._config.merge(values)
        self.radio.config.set(CONF_MIX_CONFIG, self._config.to_dict())
        self.logger.debug("Updated mix config: %s", self._config)
        self.radio.signal_event(EventType.CONFIG_UPDATED, data={"config": self._config.to_dict()})
        return self._config

    @api_command("live_audio/metadata")
    def get_metadata(self) -> StreamMetadata:
        """Return a snapshot of the stream metadata."""
        metadata = self._metadata
        if not metadata.is_streaming or self._started_at is None:
            return metadata
        now = time.time()
        return replace(
            metadata,
            time_remaining=round(max(0.0, metadata.time_remaining - (now - metadata.updated_at)), 1),
            uptime=round(now - self._started_at, 1),
        )

    @api_command("live_audio/listeners")
    def update_listener_count(self, count: int) -> StreamMetadata:
        """Update the number of listeners, the peak keeps the highest value seen."""
        if count < 0:
            msg = "Listener count can not be negative"
            raise InvalidDataError(msg)
        self._metadata = replace(
            self._metadata,
            total_listeners=count,
            peak_listeners=max(self._metadata.peak_listeners, count),
        )
        self.radio.signal_event(EventType.LISTENER_COUNT_UPDATED, data={"count": count})
        return self.get_metadata()

    async def cleanup(self) -> int:
        """Remove all temporary files of the processor."""
        count = 0
        for path in list(self._temp_files):
            if await remove_file(path):
                count += 1
            self._temp_files.discard(path)
        return count + await sweep_temp_dir(self.temp_dir)

    async def process_next_stream(self) -> bool:
        """Run a single iteration of the processing loop, returns False when idle."""
        async with self._process_lock:
            if self._skip_requested and self._current is not None:
                await self._release(self._current)
                self._current = None
            self._skip_requested = False
            next_stream = self.queue.dequeue_next()
            if next_stream is None:
                if self._current is None:
                    return False
                await self._play_out(self._current)
                self._current = None
                return True
            try:
                incoming = await self._prepare_source(next_stream)
            except SourcePrepFailure as err:
                self.logger.warning("Skipping %s: %s", next_stream.display_name, str(err))
                self.radio.signal_event(
                    EventType.PROCESSING_ERROR,
                    next_stream.id,
                    {"streamId": next_stream.id, "error": str(err)},
                )
                return True
            if self._current is None:
                self._current = self._schedule(incoming, self._output_position)
            else:
                self._current = await self._transition(self._current, incoming)
            self._update_metadata()
            return True

    async def _processing_loop(self) -> None:
        """Consume the queue for as long as the processor is streaming."""
        processed = False
        while True:
            await asyncio.sleep(0 if processed else PROCESSING_INTERVAL)
            if self._state != StreamState.STREAMING:
                break
            try:
                processed = await self.process_next_stream()
            except RadioError as err:
                processed = False
                self.logger.error("Error while processing the queue: %s", str(err))
                self.radio.signal_event(EventType.PROCESSING_ERROR, data={"error": str(err)})

    async def _watch_output(self, output: OutputSink) -> None:
        """Report an (unrequested) exit of the output process."""
        returncode = await output.wait()
        if self._state != StreamState.STREAMING or output is not self._output:
            return
        self._set_state(StreamState.ERROR)
        if returncode == 0:
            self.logger.info("Output process ended")
            self.radio.signal_event(EventType.STREAM_ENDED, data={"code": returncode})
        else:
            self.logger.error(
                "Output process exited with code %s: %s", returncode, output.last_error
            )
            self.radio.signal_event(EventType.STREAM_ERROR, data={"code": returncode})
        self._watch_task = None
        await self._cancel_tasks()
        self._output = None
        await self._reset()

    async def _transition(self, current: PreparedSource, incoming: PreparedSource) -> PreparedSource:
        """Crossfade the current source into the incoming one, returns the new current."""
        plan = None
        if self._config.auto_fade:
            plan = compute_crossfade(
                current.duration, incoming.duration, self._config.crossfade_duration
            )
        if plan is not None:
            dest = self._create_temp_path(suffix=".pcm")
            gains = (
                self._config.gain_for(current.stream.type, current.stream.volume),
                self._config.gain_for(incoming.stream.type, incoming.stream.volume),
            )
            try:
                async with asyncio.timeout(TRANSCODE_TIMEOUT):
                    await self.transcoder.render_crossfade(
                        current, incoming, plan, dest, gains, self._config.normalize_audio
                    )
            except (AudioError, SubprocessFailure, TimeoutError) as err:
                self.logger.warning(
                    "Crossfade of %s into %s failed, falling back to hard cut: %s",
                    current.stream.display_name,
                    incoming.stream.display_name,
                    str(err) or "timeout",
                )
                await self._remove_temp(dest)
            else:
                start_time = self._output_position + plan.fade_out_start
                await self._release(current)
                await self._feed_segment(dest, plan.mixed_length)
                return self._schedule(incoming, start_time).tail(plan)
        await self._play_out(current)
        return self._schedule(incoming, self._output_position)

    async def _play_out(self, source: PreparedSource) -> None:
        """Render (the remainder of) a source and feed it to the output."""
        if source.duration <= 0:
            await self._release(source)
            return
        dest = self._create_temp_path(suffix=".pcm")
        gain = self._config.gain_for(source.stream.type, source.stream.volume)
        try:
            async with asyncio.timeout(TRANSCODE_TIMEOUT):
                await self.transcoder.render(source, dest, gain, self._config.normalize_audio)
        except (AudioError, SubprocessFailure, TimeoutError) as err:
            self.logger.warning(
                "Unable to play %s: %s", source.stream.display_name, str(err) or "timeout"
            )
            self.radio.signal_event(
                EventType.PROCESSING_ERROR,
                source.stream.id,
                {"streamId": source.stream.id, "error": str(err) or "timeout"},
            )
            await self._remove_temp(dest)
        else:
            await self._feed_segment(dest, source.duration)
        finally:
            await self._release(source)

    async def _prepare_source(self, stream: AudioStream) -> PreparedSource:
        """Materialize a stream as local file and probe its (real) duration."""
        path = self._create_temp_path(f"stream-{stream.id}")
        try:
            async with asyncio.timeout(TRANSCODE_TIMEOUT):
                await self.transcoder.fetch(stream.url, path)
                duration = await self.transcoder.probe_duration(path)
        except TimeoutError as err:
            await self._remove_temp(path)
            msg = f"Timeout while preparing {stream.display_name}"
            raise SourcePrepFailure(msg) from err
        except RadioError:
            await self._remove_temp(path)
            raise
        if duration <= 0:
            await self._remove_temp(path)
            msg = f"{stream.display_name} has no playable audio"
            raise SourcePrepFailure(msg)
        if stream.duration and abs(stream.duration - duration) > 1:
            self.logger.log(
                VERBOSE_LOG_LEVEL,
                "Duration of %s corrected from %s to %s seconds",
                stream.display_name,
                stream.duration,
                duration,
            )
        return PreparedSource(stream=stream.with_duration(duration), path=path, duration=duration)

    async def _feed_segment(self, path: str, duration: float) -> None:
        """Hand a rendered segment to the output, after the previous segment was accepted."""
        if self._feed_task is not None:
            await self._feed_task
        self._output_position += duration
        self._feed_task = self.radio.create_task(self._feed(path))

    async def _feed(self, path: str) -> None:
        """Write a rendered segment into the output process."""
        try:
            if self._output is not None:
                await self._output.feed(path)
        except SubprocessFailure as err:
            # an exit of the output process is reported by the watcher
            self.logger.debug("Unable to feed segment: %s", str(err))
        finally:
            await self._remove_temp(path)

    def _schedule(self, source: PreparedSource, start_time: float) -> PreparedSource:
        """Return the source with its stream scheduled on the continuous output."""
        return replace(source, stream=source.stream.scheduled(start_time))

    def _update_metadata(self) -> None:
        """Update the metadata snapshot after the current stream changed."""
        next_stream = self.queue.peek()
        self._metadata = replace(
            self._metadata,
            current_track=self._current.stream.id if self._current else None,
            next_track=next_stream.id if next_stream else None,
            time_remaining=self._current.duration if self._current else 0.0,
            updated_at=time.time(),
        )
        self._signal_track_changed()

    def _signal_track_changed(self) -> None:
        next_stream = self.queue.peek()
        self.radio.signal_event(
            EventType.TRACK_CHANGED,
            data={
                "current": self.current_stream.to_dict() if self.current_stream else None,
                "next": next_stream.to_dict() if next_stream else None,
            },
        )

    def _set_state(self, state: StreamState) -> None:
        self._state = state
        self._metadata = replace(self._metadata, state=state, updated_at=time.time())

    async def _cancel_tasks(self) -> None:
        """Cancel the processing loop, the pending feed and the output watcher."""
        for task in (self._loop_task, self._feed_task, self._watch_task):
            if task is None or task.done():
                continue
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._loop_task = self._feed_task = self._watch_task = None

    async def _reset(self) -> None:
        """Return to idle after the output process is gone."""
        if self._current is not None:
            await self._release(self._current)
            self._current = None
        await self.cleanup()
        self._started_at = None
        self._metadata = replace(
            self._metadata, current_track=None, next_track=None, time_remaining=0.0, uptime=0.0
        )
        self._set_state(StreamState.IDLE)

    def _create_temp_path(self, name: str | None = None, suffix: str = "") -> str:
        path = create_temp_path(self.temp_dir, name, suffix)
        self._temp_files.add(path)
        return path

    async def _release(self, source: PreparedSource) -> None:
        """Remove the local file of a source that will not be played again."""
        await self._remove_temp(source.path)

    async def _remove_temp(self, path: str) -> None:
        self._temp_files.discard(path)
        await remove_file(path)
