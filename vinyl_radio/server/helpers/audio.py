"""Various helpers for audio manipulation, backed by ffmpeg."""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING

import aiofiles
from aiohttp import ClientError, ClientTimeout

from vinyl_radio.common.models.errors import (
    AudioError,
    CrossfadeFailure,
    SourcePrepFailure,
    SubprocessFailure,
)
from vinyl_radio.constants import ROOT_LOGGER_NAME, VERBOSE_LOG_LEVEL
from vinyl_radio.server.models.transcoder import CrossfadePlan, Transcoder

from .ffmpeg import (
    FFMpegOutput,
    get_crossfade_args,
    get_probe_args,
    get_probe_fallback_args,
    get_segment_args,
    parse_duration,
)
from .process import DEFAULT_CHUNKSIZE, communicate

if TYPE_CHECKING:
    from aiohttp import ClientSession

    from vinyl_radio.server.models.transcoder import PreparedSource

LOGGER = logging.getLogger(f"{ROOT_LOGGER_NAME}.audio")

DOWNLOAD_TIMEOUT = ClientTimeout(total=300, sock_connect=30)


def compute_crossfade(
    outgoing_duration: float, incoming_duration: float, crossfade_duration: float
) -> CrossfadePlan | None:
    """
    Calculate the crossfade window between two sources.

    The window starts at outgoing_duration - crossfade_duration, the mixed segment
    is as long as the outgoing source and the incoming source continues with a tail
    of incoming_duration - crossfade_duration. Returns None if there is nothing to fade.
    """
    duration = min(crossfade_duration, outgoing_duration, incoming_duration)
    if duration <= 0:
        return None
    return CrossfadePlan(
        fade_out_start=round(outgoing_duration - duration, 3),
        duration=duration,
        mixed_length=outgoing_duration,
        tail_length=round(incoming_duration - duration, 3),
    )


async def check_audio_support() -> tuple[bool, str]:
    """Check if ffmpeg is present and return its version."""
    try:
        returncode, output, _ = await communicate(["ffmpeg", "-version"], timeout=10)
    except SubprocessFailure:
        return (False, "")
    ffmpeg_present = returncode == 0 and b"FFmpeg" in output
    if not ffmpeg_present:
        return (False, "")
    # parse version number from output
    version = output.decode().split("ffmpeg version ")[1].split(" ")[0].split("-")[0]
    return (True, version)


class FFMpegTranscoder(Transcoder):
    """Transcoder that orchestrates the ffmpeg and ffprobe binaries."""

    def __init__(self, http_session: ClientSession) -> None:
        """Initialize the transcoder."""
        self.http_session = http_session
        self.version: str | None = None

    async def setup(self) -> None:
        """Check ffmpeg availability."""
        ffmpeg_present, version = await check_audio_support()
        if not ffmpeg_present:
            LOGGER.error(
                "FFmpeg binary is missing from system. "
                "Please install ffmpeg on your OS to enable streaming."
            )
            return
        self.version = version
        LOGGER.info("Detected ffmpeg version %s", version)

    async def fetch(self, url: str, dest: str) -> None:
        """Download (or copy) the source at url to local file dest."""
        if url.startswith(("http://", "https://")):
            await self._download(url, dest)
            return
        src = url.removeprefix("file://")
        try:
            async with aiofiles.open(src, "rb") as infile, aiofiles.open(dest, "wb") as outfile:
                while chunk := await infile.read(DEFAULT_CHUNKSIZE):
                    await outfile.write(chunk)
        except OSError as err:
            msg = f"Unable to read source {url}: {err}"
            raise SourcePrepFailure(msg) from err

    async def probe_duration(self, path: str) -> float:
        """Return the duration of the decoded media, ffmpeg is used if ffprobe fails."""
        try:
            returncode, stdout, _ = await communicate(get_probe_args(path))
        except SubprocessFailure as err:
            LOGGER.debug(str(err))
        else:
            if returncode == 0 and (duration := parse_duration(stdout.decode(errors="ignore"))):
                return duration
        LOGGER.log(VERBOSE_LOG_LEVEL, "ffprobe failed for %s, trying ffmpeg", path)
        _, _, stderr = await communicate(get_probe_fallback_args(path))
        if duration := parse_duration(stderr.decode(errors="ignore")):
            return duration
        msg = f"Unable to determine duration of {os.path.basename(path)}"
        raise SourcePrepFailure(msg)

    async def render(self, source: PreparedSource, dest: str, gain: float, normalize: bool) -> None:
        """Render (the playable part of) a source into a pcm segment."""
        args = get_segment_args(source, dest, gain, normalize)
        returncode, _, stderr = await communicate(args)
        if returncode != 0:
            msg = f"Rendering {source.stream.display_name} failed: {_last_line(stderr)}"
            raise AudioError(msg)

    async def render_crossfade(
        self,
        outgoing: PreparedSource,
        incoming: PreparedSource,
        plan: CrossfadePlan,
        dest: str,
        gains: tuple[float, float],
        normalize: bool,
    ) -> None:
        """Render the outgoing source mixed with the head of the incoming source."""
        args = get_crossfade_args(outgoing, incoming, plan, dest, gains, normalize)
        returncode, _, stderr = await communicate(args)
        if returncode != 0:
            msg = f"Crossfade failed: {_last_line(stderr)}"
            raise CrossfadeFailure(msg)
        LOGGER.log(
            VERBOSE_LOG_LEVEL,
            "Crossfaded %s into %s - window: %s seconds at %s",
            outgoing.stream.display_name,
            incoming.stream.display_name,
            plan.duration,
            plan.fade_out_start,
        )

    async def open_output(self, target: str) -> FFMpegOutput:
        """Spawn the ffmpeg output process."""
        output = FFMpegOutput(target)
        await output.start()
        return output

    async def _download(self, url: str, dest: str) -> None:
        """Download a remote source to a local file."""
        try:
            async with self.http_session.get(url, timeout=DOWNLOAD_TIMEOUT) as resp:
                resp.raise_for_status()
                async with aiofiles.open(dest, "wb") as outfile:
                    async for chunk in resp.content.iter_chunked(DEFAULT_CHUNKSIZE):
                        await outfile.write(chunk)
        except (ClientError, OSError) as err:
            msg = f"Unable to download {url}: {err}"
            raise SourcePrepFailure(msg) from err


def _last_line(data: bytes) -> str:
    """Return the last (non empty) line of process output."""
    lines = [x for x in data.decode(errors="ignore").splitlines() if x.strip()]
    return lines[-1] if lines else "unknown error"
