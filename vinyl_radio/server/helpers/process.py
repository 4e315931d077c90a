"""
AsyncProcess.

Wrapper around an asyncio subprocess for the external transcoder binaries.
The process is only ever reached through its lifecycle (spawn, signal, exitcode)
and its stdio pipes, closing is guarded so pipes can not deadlock on exit.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import AsyncGenerator
from contextlib import suppress
from signal import SIGINT

from vinyl_radio.common.models.errors import SubprocessFailure
from vinyl_radio.constants import ROOT_LOGGER_NAME, VERBOSE_LOG_LEVEL

LOGGER = logging.getLogger(f"{ROOT_LOGGER_NAME}.helpers.process")

DEFAULT_CHUNKSIZE = 64000
CLOSE_TIMEOUT = 5


class AsyncProcess:
    """Wrapper around asyncio subprocess to feed and supervise an external process."""

    def __init__(
        self,
        args: list[str],
        stdin: bool = False,
        stdout: bool = False,
        stderr: bool = True,
        name: str | None = None,
    ) -> None:
        """Initialize AsyncProcess."""
        self.proc: asyncio.subprocess.Process | None = None
        if name is None:
            name = args[0].split(os.sep)[-1]
        self.name = name
        self.logger = LOGGER.getChild(name)
        self._args = args
        self._stdin = asyncio.subprocess.PIPE if stdin else None
        self._stdout = asyncio.subprocess.PIPE if stdout else asyncio.subprocess.DEVNULL
        self._stderr = asyncio.subprocess.PIPE if stderr else asyncio.subprocess.DEVNULL
        self._close_called = False
        self._returncode: int | None = None

    @property
    def closed(self) -> bool:
        """Return if the process was closed."""
        return self._close_called or self.returncode is not None

    @property
    def returncode(self) -> int | None:
        """Return the returncode of the process."""
        if self._returncode is not None:
            return self._returncode
        if self.proc is None:
            return None
        if (ret_code := self.proc.returncode) is not None:
            self._returncode = ret_code
        return ret_code

    async def start(self) -> None:
        """Spawn the process."""
        try:
            self.proc = await asyncio.create_subprocess_exec(
                *self._args,
                stdin=self._stdin,
                stdout=self._stdout,
                stderr=self._stderr,
                # we're exchanging big amounts of (audio) data with pipes
                limit=1000000,
            )
        except OSError as err:
            msg = f"Unable to start {self.name}: {err}"
            raise SubprocessFailure(msg) from err
        self.logger.log(
            VERBOSE_LOG_LEVEL, "Process %s started with PID %s", self.name, self.proc.pid
        )

    async def write(self, data: bytes) -> None:
        """Write data to process stdin."""
        if self.closed:
            msg = f"Process {self.name} already exited"
            raise SubprocessFailure(msg, self.returncode)
        self.proc.stdin.write(data)
        try:
            await self.proc.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as err:
            msg = f"Process {self.name} no longer accepts input"
            raise SubprocessFailure(msg, self.returncode) from err

    async def iter_stderr(self) -> AsyncGenerator[str, None]:
        """Iterate lines from the stderr stream as string."""
        while True:
            if self._close_called or not self.proc or not self.proc.stderr:
                return
            try:
                line = await self.proc.stderr.readline()
            except ValueError as err:
                # ffmpeg may output progress on stderr without a newline,
                # NOTE: this consumes the line that was too big
                if "chunk exceed the limit" in str(err):
                    continue
                raise
            if line == b"":
                return
            if decoded := line.decode(errors="ignore").strip():
                yield decoded

    async def close(self, send_signal: bool = False) -> None:
        """Close/terminate the process and wait for exit."""
        self._close_called = True
        if self.proc is None:
            return
        if send_signal and self.returncode is None:
            with suppress(ProcessLookupError):
                self.proc.send_signal(SIGINT)
        if self.proc.stdin and not self.proc.stdin.is_closing():
            self.proc.stdin.close()
        await asyncio.sleep(0)  # yield to loop

        # make sure the process is really cleaned up,
        # pipes need to be flushed and stdin closed or we deadlock
        while self.returncode is None:
            try:
                await asyncio.wait_for(self.proc.communicate(), CLOSE_TIMEOUT)
            except RuntimeError as err:
                if "read() called while another coroutine" in str(err):
                    # race condition with a (log) reader
                    await asyncio.sleep(0.1)
                    continue
                raise
            except TimeoutError:
                self.logger.debug(
                    "Process %s with PID %s did not stop in time. Sending terminate...",
                    self.name,
                    self.proc.pid,
                )
                with suppress(ProcessLookupError):
                    self.proc.terminate()
        self.logger.log(
            VERBOSE_LOG_LEVEL,
            "Process %s with PID %s stopped with returncode %s",
            self.name,
            self.proc.pid,
            self.returncode,
        )

    async def wait(self) -> int:
        """Wait for the process and return the returncode."""
        if self._returncode is None:
            self._returncode = await self.proc.wait()
        return self._returncode


async def communicate(
    args: list[str],
    timeout: float | None = None,
) -> tuple[int, bytes, bytes]:
    """Run a process to completion and return returncode, stdout and stderr output."""
    try:
        proc = await asyncio.create_subprocess_exec(
            *args,
            stderr=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
        )
    except OSError as err:
        msg = f"Unable to start {args[0]}: {err}"
        raise SubprocessFailure(msg) from err
    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout)
    except (TimeoutError, asyncio.CancelledError):
        with suppress(ProcessLookupError):
            proc.kill()
        await proc.wait()
        raise
    return (proc.returncode, stdout, stderr)
