"""Launching and supervising the ``exiftool -listx`` subprocess."""
from __future__ import annotations

import asyncio
import shlex
from typing import Optional, Sequence

from exiftags.errors import ProcessExitError, ProcessStartError
from exiftags.logging import get_logger

logger = get_logger(__name__)

DEFAULT_EXIFTOOL = "exiftool"
LISTING_FLAG = "-listx"

_DRAIN_CHUNK_SIZE = 64 * 1024


def build_listing_command(exiftool: str = DEFAULT_EXIFTOOL) -> list[str]:
    """Build the argument vector for the tag dictionary listing.

    Args:
        exiftool: Executable, optionally with leading arguments in shell
            quoting (for example ``"perl /opt/Image-ExifTool/exiftool"``).

    Returns:
        Argument vector ending with the listing flag.

    Raises:
        ValueError: If no executable is given.
    """

    argv = shlex.split(exiftool)
    if not argv:
        raise ValueError("exiftool command must not be empty")
    return [*argv, LISTING_FLAG]


class ListingProcess:
    """One running listing subprocess plus the task that waits for its exit.

    stdout is a pipe read by the caller; stdin and stderr go to the null
    device. The watcher task records the exit status as soon as the process
    ends so the caller can check it after the output is drained.
    """

    def __init__(self, command: Sequence[str], process: asyncio.subprocess.Process) -> None:
        self.command = list(command)
        self._process = process
        self._watcher: asyncio.Task[int] = asyncio.create_task(self._watch())

    @classmethod
    async def start(cls, command: Sequence[str]) -> "ListingProcess":
        """Spawn the listing process.

        Raises:
            ProcessStartError: If the executable cannot be launched.
        """
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as exc:
            raise ProcessStartError(command, exc.strerror or str(exc)) from exc
        logger.info("Started %s (pid %d)", shlex.join(command), process.pid)
        return cls(command, process)

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def stdout(self) -> asyncio.StreamReader:
        if self._process.stdout is None:
            raise RuntimeError("listing process has no stdout pipe")
        return self._process.stdout

    @property
    def returncode(self) -> Optional[int]:
        return self._process.returncode

    async def _watch(self) -> int:
        returncode = await self._process.wait()
        logger.debug("Process %d exited with status %d", self._process.pid, returncode)
        return returncode

    async def wait_for_exit(self, timeout: float) -> int:
        """Wait for the process to exit after its output was drained.

        Raises:
            ProcessExitError: If it exits non-zero or is still running after ``timeout``.
        """
        try:
            returncode = await asyncio.wait_for(asyncio.shield(self._watcher), timeout)
        except asyncio.TimeoutError:
            await self.terminate()
            raise ProcessExitError(self.command, None) from None
        if returncode != 0:
            raise ProcessExitError(self.command, returncode)
        return returncode

    async def terminate(self) -> None:
        """Kill the process if it is still running and reap it. Safe to call twice."""
        if self._process.returncode is None:
            try:
                self._process.kill()
            except ProcessLookupError:
                pass
            else:
                logger.info("Killed process %d", self._process.pid)
        # The exit status is only reported once the pipe is drained to EOF.
        while await self.stdout.read(_DRAIN_CHUNK_SIZE):
            pass
        await self._watcher
