"""Tests for the audio and ffmpeg helpers."""

import pytest

from vinyl_radio.common.models.audio_stream import AudioStream
from vinyl_radio.server.helpers.audio import compute_crossfade
from vinyl_radio.server.helpers.ffmpeg import (
    get_crossfade_args,
    get_output_args,
    get_segment_args,
    parse_duration,
)
from vinyl_radio.server.models.transcoder import PreparedSource


def _source(duration: float, **kwargs) -> PreparedSource:
    stream = AudioStream(url="https://cdn.example.com/a.mp3", duration=duration, **kwargs)
    return PreparedSource(stream=stream, path="/tmp/a", duration=duration)


@pytest.mark.parametrize(
    ("d1", "d2", "c"),
    [(30, 20, 3), (180, 240, 5), (10.5, 12.25, 0.5)],
)
def test_crossfade_lengths(d1: float, d2: float, c: float) -> None:
    """Test that the first track governs the mixed length and the tail is d2 - c."""
    plan = compute_crossfade(d1, d2, c)
    assert plan is not None
    assert plan.mixed_length == d1
    assert plan.tail_length == pytest.approx(d2 - c)
    assert plan.fade_out_start == pytest.approx(d1 - c)
    assert plan.duration == c


def test_crossfade_limits() -> None:
    """Test the effective crossfade window of short tracks."""
    plan = compute_crossfade(2, 20, 3)
    assert plan.duration == 2
    assert plan.fade_out_start == 0
    plan = compute_crossfade(20, 1, 3)
    assert plan.duration == 1
    assert plan.tail_length == 0
    assert compute_crossfade(20, 20, 0) is None


def test_prepared_source_tail() -> None:
    """Test the remainder of a source after it was crossfaded in."""
    incoming = _source(20, fade_in=2)
    plan = compute_crossfade(30, 20, 3)
    tail = incoming.tail(plan)
    assert tail.offset == 3
    assert tail.duration == 17
    # the fade-in was part of the crossfade
    assert incoming.fade_in == 2
    assert tail.fade_in == 0


def test_output_args() -> None:
    """Test the args of the output process."""
    args = get_output_args("rtmp://live.example.com/app/key")
    assert args[0] == "ffmpeg"
    assert "-re" in args
    assert args[args.index("-i") + 1] == "-"
    assert args[args.index("-c:a") + 1] == "aac"
    assert args[args.index("-b:a") + 1] == "128k"
    assert args[-3:] == ["-f", "flv", "rtmp://live.example.com/app/key"]
    args = get_output_args("/srv/radio/live.mp3")
    assert args[args.index("-c:a") + 1] == "libmp3lame"
    assert args[-1] == "/srv/radio/live.mp3"


def test_segment_args() -> None:
    """Test the args to render a source into a pcm segment."""
    source = _source(30, fade_in=2, fade_out=3)
    args = get_segment_args(source, "/tmp/out.pcm", 0.9, True)
    filters = args[args.index("-af") + 1]
    assert filters.startswith("loudnorm")
    assert "volume=0.9" in filters
    assert "afade=t=in:st=0:d=2.000" in filters
    assert "afade=t=out:st=27.000:d=3.000" in filters
    assert args[-1] == "/tmp/out.pcm"
    assert "-ss" not in args
    args = get_segment_args(source, "/tmp/out.pcm", 1.0, False)
    assert "loudnorm" not in args[args.index("-af") + 1]


def test_crossfade_args() -> None:
    """Test the args to crossfade two sources."""
    outgoing = _source(30)
    incoming = _source(20)
    plan = compute_crossfade(30, 20, 3)
    args = get_crossfade_args(outgoing, incoming, plan, "/tmp/mix.pcm", (0.9, 0.8), False)
    filter_complex = args[args.index("-filter_complex") + 1]
    assert "afade=t=out:st=27.000:d=3.000" in filter_complex
    assert "afade=t=in:st=0:d=3.000" in filter_complex
    assert "adelay=delays=27000:all=1" in filter_complex
    assert "amix=inputs=2:duration=first" in filter_complex
    # only the head of the incoming source is used
    second_input = args.index("-i", args.index("-i") + 1)
    assert args[second_input - 2 : second_input] == ["-t", "3.000"]


@pytest.mark.parametrize(
    ("output", "expected"),
    [
        ("123.456000\n", 123.456),
        ("N/A\n", None),
        ("", None),
        ("Input #0, mp3\n  Duration: 00:03:25.50, start: 0.025057, bitrate: 320 kb/s", 205.5),
        ("  Duration: 01:00:00.00, start: 0.0", 3600.0),
        ("0.000000", None),
    ],
)
def test_parse_duration(output: str, expected: float | None) -> None:
    """Test parsing the duration from ffprobe/ffmpeg output."""
    assert parse_duration(output) == expected
