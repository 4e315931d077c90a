"""Tests for the live audio processor."""

import asyncio
import os

import pytest

from vinyl_radio.common.models.audio_stream import AudioStream
from vinyl_radio.common.models.enums import EventType, StreamState, StreamType
from vinyl_radio.common.models.errors import (
    AlreadyStreamingError,
    InvalidDataError,
    SubprocessFailure,
)
from vinyl_radio.server.controllers import live_audio
from vinyl_radio.server.server import RadioServer
from tests.common import OUTPUT_TARGET, FakeTranscoder, collect_events, wait_for

TRACK_A = "https://cdn.example.com/audio/a.mp3"
TRACK_B = "https://cdn.example.com/audio/b.mp3"
TRACK_C = "https://cdn.example.com/audio/c.mp3"


async def test_start_and_stop(radio: RadioServer, transcoder: FakeTranscoder) -> None:
    """Test the lifecycle of the output process."""
    live = radio.live_audio
    events, _ = collect_events(radio, (EventType.STREAM_STARTED, EventType.STREAM_STOPPED))
    assert live.state == StreamState.IDLE
    await live.start_streaming(OUTPUT_TARGET)
    assert live.state == StreamState.STREAMING
    assert live.is_streaming
    assert live.output_target == OUTPUT_TARGET
    with pytest.raises(AlreadyStreamingError):
        await live.start_streaming(OUTPUT_TARGET)

    await live.stop_streaming()
    assert live.state == StreamState.IDLE
    assert transcoder.output.closed
    # stopping twice is a no-op
    await live.stop_streaming()
    assert live.state == StreamState.IDLE
    await asyncio.sleep(0)
    assert [x.event for x in events] == [EventType.STREAM_STARTED, EventType.STREAM_STOPPED]
    assert events[0].data == {"outputUrl": OUTPUT_TARGET}


async def test_stop_when_idle(radio: RadioServer) -> None:
    """Test that stopping a processor that never started does not raise."""
    events, _ = collect_events(radio, EventType.STREAM_STOPPED)
    await radio.live_audio.stop_streaming()
    await radio.live_audio.stop_streaming()
    await asyncio.sleep(0)
    assert radio.live_audio.state == StreamState.IDLE
    assert events == []


async def test_start_failures(radio: RadioServer, transcoder: FakeTranscoder) -> None:
    """Test that a failed start leaves the processor idle."""
    live = radio.live_audio
    with pytest.raises(InvalidDataError):
        await live.start_streaming()
    transcoder.fail_output = True
    with pytest.raises(SubprocessFailure):
        await live.start_streaming(OUTPUT_TARGET)
    assert live.state == StreamState.IDLE
    assert live.output_target is None


async def test_first_track_becomes_current(radio: RadioServer) -> None:
    """Test a single iteration with one queued 30 second track."""
    live = radio.live_audio
    events, _ = collect_events(radio, EventType.TRACK_CHANGED)
    await live.start_streaming(OUTPUT_TARGET)
    stream_id = live.add_stream(AudioStream(url=TRACK_A, duration=30, title="A"))
    assert await live.process_next_stream() is True

    metadata = live.get_metadata()
    assert metadata.current_track == stream_id
    assert metadata.time_remaining == pytest.approx(30, abs=0.5)
    assert metadata.next_track is None
    assert metadata.is_streaming
    assert live.current_stream.start_time == 0
    assert live.current_stream.end_time == 30
    await asyncio.sleep(0)
    assert events[-1].data["current"]["id"] == stream_id
    assert events[-1].data["next"] is None


async def test_probed_duration_wins(radio: RadioServer, transcoder: FakeTranscoder) -> None:
    """Test that the probed duration overrides the duration of the caller."""
    transcoder.durations[TRACK_A] = 42.0
    live = radio.live_audio
    await live.start_streaming(OUTPUT_TARGET)
    live.add_stream(AudioStream(url=TRACK_A, duration=30))
    await live.process_next_stream()
    assert live.current_stream.duration == 42.0
    assert live.get_metadata().time_remaining == pytest.approx(42, abs=0.5)


async def test_output_exit_with_error(radio: RadioServer, transcoder: FakeTranscoder) -> None:
    """Test that an exit of the output process is reported exactly once."""
    live = radio.live_audio
    events, _ = collect_events(radio, (EventType.STREAM_ERROR, EventType.STREAM_ENDED))
    await live.start_streaming(OUTPUT_TARGET)
    live.add_stream(AudioStream(url=TRACK_A))
    await live.process_next_stream()
    temp_files = os.listdir(live.temp_dir)
    assert temp_files

    transcoder.output.exit(1)
    await wait_for(lambda: live.state == StreamState.IDLE and events)
    await asyncio.sleep(0.05)
    assert len(events) == 1
    assert events[0].event == EventType.STREAM_ERROR
    assert events[0].data == {"code": 1}
    assert live.current_stream is None
    assert not live.get_metadata().is_streaming
    assert os.listdir(live.temp_dir) == []
    # stop after the failure is a no-op, a new start is possible
    await live.stop_streaming()
    await live.start_streaming(OUTPUT_TARGET)
    assert live.is_streaming


async def test_output_ended(radio: RadioServer, transcoder: FakeTranscoder) -> None:
    """Test that a clean exit of the output process is reported as ended."""
    live = radio.live_audio
    events, _ = collect_events(radio, (EventType.STREAM_ERROR, EventType.STREAM_ENDED))
    await live.start_streaming(OUTPUT_TARGET)
    transcoder.output.exit(0)
    await wait_for(lambda: live.state == StreamState.IDLE and events)
    await asyncio.sleep(0.05)
    assert [x.event for x in events] == [EventType.STREAM_ENDED]


async def test_crossfade(radio: RadioServer, transcoder: FakeTranscoder) -> None:
    """Test that the current track is crossfaded into the next track."""
    transcoder.durations = {TRACK_A: 30.0, TRACK_B: 20.0}
    live = radio.live_audio
    await live.start_streaming(OUTPUT_TARGET)
    first = live.add_stream(AudioStream(url=TRACK_A, fade_out=2))
    second = live.add_stream(AudioStream(url=TRACK_B))
    await live.process_next_stream()
    assert live.get_metadata().next_track == second
    await live.process_next_stream()

    assert len(transcoder.crossfades) == 1
    outgoing, incoming, plan = transcoder.crossfades[0]
    assert outgoing.stream.id == first
    assert incoming.stream.id == second
    assert plan.mixed_length == 30
    assert plan.tail_length == 17
    assert plan.fade_out_start == 27
    # the tail of the incoming track is the new current
    assert live.current_stream.id == second
    assert live.current_stream.start_time == 27
    assert live.current_stream.end_time == 47
    assert live.get_metadata().time_remaining == pytest.approx(17, abs=0.5)
    await wait_for(lambda: len(transcoder.output.fed) == 1)

    # the queue ran empty: the tail is played out
    assert await live.process_next_stream() is True
    assert live.current_stream is None
    assert transcoder.rendered[-1].offset == 3
    assert transcoder.rendered[-1].duration == 17
    await wait_for(lambda: len(transcoder.output.fed) == 2)
    assert await live.process_next_stream() is False


async def test_crossfade_failure_hard_cut(
    radio: RadioServer, transcoder: FakeTranscoder
) -> None:
    """Test that a failed crossfade falls back to a hard cut."""
    transcoder.fail_crossfade = True
    transcoder.durations = {TRACK_A: 30.0, TRACK_B: 20.0}
    live = radio.live_audio
    await live.start_streaming(OUTPUT_TARGET)
    live.add_stream(AudioStream(url=TRACK_A))
    second = live.add_stream(AudioStream(url=TRACK_B))
    await live.process_next_stream()
    await live.process_next_stream()
    assert transcoder.crossfades == []
    assert transcoder.rendered[0].stream.url == TRACK_A
    assert transcoder.rendered[0].duration == 30
    assert live.current_stream.id == second
    assert live.current_stream.start_time == 30
    assert live.current_stream.duration == 20
    assert live.is_streaming


async def test_crossfade_disabled(radio: RadioServer, transcoder: FakeTranscoder) -> None:
    """Test that streams are played back to back without auto fade."""
    live = radio.live_audio
    live.update_config({"autoFade": False})
    await live.start_streaming(OUTPUT_TARGET)
    live.add_stream(AudioStream(url=TRACK_A))
    live.add_stream(AudioStream(url=TRACK_B))
    await live.process_next_stream()
    await live.process_next_stream()
    assert transcoder.crossfades == []
    assert len(transcoder.rendered) == 1


async def test_source_failure_is_skipped(
    radio: RadioServer, transcoder: FakeTranscoder
) -> None:
    """Test that a stream that can not be prepared is skipped."""
    transcoder.fail_urls.add(TRACK_B)
    live = radio.live_audio
    events, _ = collect_events(radio, EventType.PROCESSING_ERROR)
    await live.start_streaming(OUTPUT_TARGET)
    live.add_stream(AudioStream(url=TRACK_A))
    broken = live.add_stream(AudioStream(url=TRACK_B))
    third = live.add_stream(AudioStream(url=TRACK_C))
    await live.process_next_stream()
    assert await live.process_next_stream() is True
    await live.process_next_stream()
    assert live.current_stream.id == third
    assert live.is_streaming
    await asyncio.sleep(0)
    assert [x.object_id for x in events] == [broken]


async def test_skip_current(radio: RadioServer, transcoder: FakeTranscoder) -> None:
    """Test that a skipped stream is dropped without crossfade."""
    live = radio.live_audio
    await live.start_streaming(OUTPUT_TARGET)
    assert live.skip_current() is False
    live.add_stream(AudioStream(url=TRACK_A))
    await live.process_next_stream()
    assert live.skip_current() is True
    second = live.add_stream(AudioStream(url=TRACK_B))
    await live.process_next_stream()
    assert live.current_stream.id == second
    assert transcoder.crossfades == []
    assert transcoder.rendered == []


async def test_processing_loop(
    radio: RadioServer, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Test that the background loop consumes the queue."""
    monkeypatch.setattr(live_audio, "PROCESSING_INTERVAL", 0.01)
    live = radio.live_audio
    events, _ = collect_events(radio, EventType.TRACK_CHANGED)
    await live.start_streaming(OUTPUT_TARGET)
    stream_id = live.add_stream(AudioStream(url=TRACK_A))
    await wait_for(lambda: any((x.data["current"] or {}).get("id") == stream_id for x in events))
    await live.stop_streaming()
    assert live.current_stream is None
    assert len(live.queue) == 0


async def test_queue_commands(radio: RadioServer) -> None:
    """Test the queue commands of the processor."""
    live = radio.live_audio
    events, _ = collect_events(radio, (EventType.STREAM_ADDED, EventType.STREAM_REMOVED))
    first = live.add_stream(AudioStream(url=TRACK_A))
    second = live.add_stream(AudioStream(url=TRACK_B, type=StreamType.AD))
    urgent = live.play_now(AudioStream(url=TRACK_C, type=StreamType.TTS))
    status = live.get_queue_status()
    assert status["queueLength"] == 3
    assert [x["id"] for x in status["queue"]] == [urgent, first, second]
    assert status["current"] is None
    assert status["isStreaming"] is False
    assert live.remove_stream(first) is True
    assert live.remove_stream(first) is False
    assert live.clear_queue() == 2
    await asyncio.sleep(0)
    assert [x.event for x in events] == [EventType.STREAM_ADDED] * 3 + [EventType.STREAM_REMOVED]
    assert events[-1].data == {"streamId": first}


async def test_update_config(radio: RadioServer) -> None:
    """Test updating the mix configuration."""
    live = radio.live_audio
    events, _ = collect_events(radio, EventType.CONFIG_UPDATED)
    config = live.update_config({"crossfadeDuration": 6, "masterVolume": 0.5})
    assert config.crossfade_duration == 6
    assert live.get_config() is config
    assert radio.config.get("mix_config")["crossfade_duration"] == 6
    with pytest.raises(InvalidDataError):
        live.update_config({"crossfadeDuration": -1})
    assert live.mix_config.crossfade_duration == 6
    await asyncio.sleep(0)
    assert events[0].data["config"]["master_volume"] == 0.5


async def test_listener_peak(radio: RadioServer) -> None:
    """Test that the peak listener count is the highest count seen."""
    live = radio.live_audio
    for count in (5, 12, 3, 0, 7):
        metadata = live.update_listener_count(count)
    assert metadata.total_listeners == 7
    assert metadata.peak_listeners == 12
    with pytest.raises(InvalidDataError):
        live.update_listener_count(-1)
    assert live.get_metadata().peak_listeners == 12


async def test_cleanup(radio: RadioServer) -> None:
    """Test the removal of (orphaned) temporary files."""
    live = radio.live_audio
    orphan = os.path.join(live.temp_dir, "vinylradio-orphan.pcm")
    other = os.path.join(live.temp_dir, "keep.txt")
    for path in (orphan, other):
        with open(path, "w", encoding="utf-8") as _file:
            _file.write("x")
    assert await live.cleanup() == 1
    assert os.listdir(live.temp_dir) == ["keep.txt"]
