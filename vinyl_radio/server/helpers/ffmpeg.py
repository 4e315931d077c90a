"""FFMpeg related helpers."""

from __future__ import annotations

import asyncio
import logging
import re
from collections import deque
from typing import TYPE_CHECKING

import aiofiles

from vinyl_radio.constants import (
    OUTPUT_BITRATE,
    PCM_CHANNELS,
    PCM_FORMAT,
    PCM_SAMPLE_RATE,
    ROOT_LOGGER_NAME,
    VERBOSE_LOG_LEVEL,
)
from vinyl_radio.server.models.transcoder import OutputSink

from .process import DEFAULT_CHUNKSIZE, AsyncProcess

if TYPE_CHECKING:
    from vinyl_radio.server.models.transcoder import CrossfadePlan, PreparedSource

LOGGER = logging.getLogger(f"{ROOT_LOGGER_NAME}.ffmpeg")

DURATION_REGEX = re.compile(r"Duration: (\d{2}):(\d{2}):(\d{2}(?:\.\d+)?)")
PCM_ARGS = ["-f", PCM_FORMAT, "-ar", str(PCM_SAMPLE_RATE), "-ac", str(PCM_CHANNELS)]
LOUDNORM_FILTER = "loudnorm=I=-16:TP=-1.5:LRA=11"
FORMAT_FILTERS = [
    f"aresample={PCM_SAMPLE_RATE}",
    f"aformat=sample_fmts=s16:sample_rates={PCM_SAMPLE_RATE}:channel_layouts=stereo",
]


class FFMpegOutput(AsyncProcess, OutputSink):
    """The long running ffmpeg process that encodes the continuous pcm feed to the target."""

    def __init__(self, target: str) -> None:
        """Initialize the output process."""
        super().__init__(get_output_args(target), stdin=True, stderr=True, name="ffmpeg")
        self.target = target
        self.log_history: deque[str] = deque(maxlen=100)
        self._logger_task: asyncio.Task | None = None

    @property
    def last_error(self) -> str | None:
        """Return the last error line ffmpeg logged."""
        for line in reversed(self.log_history):
            if "error" in line.lower():
                return line
        return self.log_history[-1] if self.log_history else None

    async def start(self) -> None:
        """Spawn the ffmpeg process and start reading its log."""
        await super().start()
        self.logger = LOGGER.getChild(str(self.proc.pid))
        self.logger.log(VERBOSE_LOG_LEVEL, "started with args: %s", " ".join(self._args[1:]))
        self._logger_task = asyncio.create_task(self._log_reader_task())

    async def feed(self, path: str) -> None:
        """Feed a rendered (pcm) segment into ffmpeg, pacing is done by ffmpeg's -re."""
        async with aiofiles.open(path, "rb") as _file:
            while chunk := await _file.read(DEFAULT_CHUNKSIZE):
                await self.write(chunk)

    async def wait(self) -> int:
        """Wait for ffmpeg to exit and return its exitcode."""
        returncode = await super().wait()
        if self._logger_task and not self._logger_task.done():
            # make sure the final (error) lines are in the log history
            await asyncio.wait([self._logger_task], timeout=2)
        return returncode

    async def close(self, send_signal: bool = True) -> None:
        """Gracefully stop ffmpeg."""
        if self.closed:
            return
        await super().close(send_signal)
        if self._logger_task and not self._logger_task.done():
            self._logger_task.cancel()

    async def _log_reader_task(self) -> None:
        """Read ffmpeg log from stderr."""
        async for line in self.iter_stderr():
            self.log_history.append(line)
            if "error" in line.lower() or "warning" in line.lower():
                self.logger.debug(line)
            else:
                self.logger.log(VERBOSE_LOG_LEVEL, line)


def get_generic_args(loglevel: str = "error") -> list[str]:
    """Return the generic args for every ffmpeg invocation."""
    return [
        "ffmpeg",
        "-hide_banner",
        "-loglevel",
        loglevel,
        "-nostats",
        "-y",
    ]


def get_output_args(target: str) -> list[str]:
    """Collect all args for the output process, reading pcm from stdin."""
    input_args = ["-re", *PCM_ARGS, "-i", "-"]
    encode_args = ["-ar", str(PCM_SAMPLE_RATE), "-ac", str(PCM_CHANNELS)]
    if target.startswith(("rtmp://", "rtmps://")):
        output_args = ["-c:a", "aac", "-b:a", OUTPUT_BITRATE, *encode_args, "-f", "flv", target]
    elif target.startswith("icecast://"):
        output_args = ["-c:a", "libmp3lame", "-b:a", OUTPUT_BITRATE, *encode_args]
        output_args += ["-content_type", "audio/mpeg", "-f", "mp3", target]
    elif target.endswith(".mp3"):
        output_args = ["-c:a", "libmp3lame", "-b:a", OUTPUT_BITRATE, *encode_args]
        output_args += ["-f", "mp3", target]
    else:
        output_args = ["-c:a", "aac", "-b:a", OUTPUT_BITRATE, *encode_args, "-f", "adts", target]
    return get_generic_args("warning") + input_args + output_args


def get_segment_args(
    source: PreparedSource, output_path: str, gain: float, normalize: bool
) -> list[str]:
    """Collect all args to render (the playable part of) a source to a pcm segment."""
    filter_params = []
    if normalize:
        filter_params.append(LOUDNORM_FILTER)
    filter_params.append(f"volume={gain}")
    if source.fade_in:
        filter_params.append(f"afade=t=in:st=0:d={source.fade_in:.3f}")
    if source.fade_out:
        start = max(0.0, source.duration - source.fade_out)
        filter_params.append(f"afade=t=out:st={start:.3f}:d={source.fade_out:.3f}")
    filter_params += FORMAT_FILTERS
    return [
        *get_generic_args(),
        *_get_input_args(source.path, source.offset, source.duration),
        "-af",
        ",".join(filter_params),
        *PCM_ARGS,
        output_path,
    ]


def get_crossfade_args(
    outgoing: PreparedSource,
    incoming: PreparedSource,
    plan: CrossfadePlan,
    output_path: str,
    gains: tuple[float, float],
    normalize: bool,
) -> list[str]:
    """
    Collect all args to mix the outgoing source with the head of the incoming source.

    The outgoing source fades out over the crossfade window at the end of its timeline,
    the head of the incoming source fades in and is delayed to the start of that window.
    Both are summed and the length of the outgoing source governs the mixed segment.
    """
    norm = f"{LOUDNORM_FILTER}," if normalize else ""
    fade_out = f"afade=t=out:st={plan.fade_out_start:.3f}:d={plan.duration:.3f}"
    if outgoing.fade_in:
        fade_out = f"afade=t=in:st=0:d={outgoing.fade_in:.3f},{fade_out}"
    fade_in = f"afade=t=in:st=0:d={plan.duration:.3f}"
    delay_ms = int(round(plan.fade_out_start * 1000))
    fmt = ",".join(FORMAT_FILTERS)
    filter_complex = (
        f"[0:a]{norm}volume={gains[0]},{fade_out},{fmt}[fade1];"
        f"[1:a]{norm}volume={gains[1]},{fade_in},{fmt},adelay=delays={delay_ms}:all=1[fade2];"
        "[fade1][fade2]amix=inputs=2:duration=first:dropout_transition=0:normalize=0[mixed]"
    )
    return [
        *get_generic_args(),
        *_get_input_args(outgoing.path, outgoing.offset, outgoing.duration),
        *_get_input_args(incoming.path, incoming.offset, plan.duration),
        "-filter_complex",
        filter_complex,
        "-map",
        "[mixed]",
        *PCM_ARGS,
        output_path,
    ]


def get_probe_args(path: str) -> list[str]:
    """Return the ffprobe args to retrieve the duration of a media file."""
    return [
        "ffprobe",
        "-hide_banner",
        "-v",
        "error",
        "-show_entries",
        "format=duration",
        "-of",
        "default=noprint_wrappers=1:nokey=1",
        path,
    ]


def get_probe_fallback_args(path: str) -> list[str]:
    """Return the ffmpeg args to decode a file to null, logging its duration."""
    return ["ffmpeg", "-hide_banner", "-nostats", "-i", path, "-f", "null", "-"]


def parse_duration(output: str) -> float | None:
    """Parse the duration from the output of ffprobe or the log of ffmpeg."""
    output = output.strip()
    try:
        duration = float(output.splitlines()[0]) if output else None
    except ValueError:
        duration = None
    if duration is None and (match := DURATION_REGEX.search(output)):
        hours, minutes, seconds = match.groups()
        duration = int(hours) * 3600 + int(minutes) * 60 + float(seconds)
    if duration is None or duration <= 0:
        return None
    return round(duration, 3)


def _get_input_args(path: str, offset: float = 0.0, duration: float | None = None) -> list[str]:
    """Return the args for a (local) file input, optionally trimmed."""
    args = []
    if offset:
        args += ["-ss", f"{offset:.3f}"]
    if duration:
        args += ["-t", f"{duration:.3f}"]
    return [*args, "-i", path]
