"""
Thin handle around an engine child process.

EngineProcess is the only thing in the package that touches the OS process:
liveness, line writes, chunk reads, kill and reaping. stderr is merged into
stdout so the engine's diagnostics show up in the same ordered stream.
"""

from __future__ import annotations

import asyncio
import codecs
import logging
import subprocess
from typing import Sequence

from ucishell.errors import SpawnFailed

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 4096


class EngineProcess:
    def __init__(self, proc: asyncio.subprocess.Process, command: tuple[str, ...]) -> None:
        self._proc = proc
        self.command = command
        # Engines may split a multi-byte character across two reads.
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    @property
    def pid(self) -> int:
        return self._proc.pid

    @property
    def returncode(self) -> int | None:
        return self._proc.returncode

    def is_alive(self) -> bool:
        return self._proc.returncode is None

    async def write_line(self, line: str) -> None:
        """Write ``line`` plus one newline and wait for the pipe to drain."""
        stdin = self._proc.stdin
        if stdin is None:
            raise RuntimeError(f"Engine pid {self.pid} has no stdin pipe")
        stdin.write((line + "\n").encode("utf-8"))
        await stdin.drain()

    async def read_chunk(self, size: int = READ_CHUNK_SIZE) -> str | None:
        """Return the next piece of output, or None once the stream hits EOF."""
        stdout = self._proc.stdout
        if stdout is None:
            raise RuntimeError(f"Engine pid {self.pid} has no stdout pipe")
        data = await stdout.read(size)
        if not data:
            tail = self._decoder.decode(b"", final=True)
            return tail or None
        return self._decoder.decode(data)

    def kill(self) -> None:
        try:
            self._proc.kill()
        except ProcessLookupError:
            pass  # already gone

    async def wait(self, timeout: float | None = None) -> int | None:
        """Wait for exit; returns the exit code, or None if still running after ``timeout``."""
        try:
            return await asyncio.wait_for(self._proc.wait(), timeout)
        except asyncio.TimeoutError:
            return None

    def close_stdin(self) -> None:
        if self._proc.stdin is not None and not self._proc.stdin.is_closing():
            self._proc.stdin.close()

    def __repr__(self) -> str:
        return f"EngineProcess(pid={self.pid}, command={list(self.command)!r})"


async def spawn(command: Sequence[str]) -> EngineProcess:
    """
    Start ``command`` (executable first, then arguments) with piped stdio.

    Raises:
        SpawnFailed: the executable is missing or cannot be run.
    """
    command = tuple(command)
    startupinfo = None
    if hasattr(subprocess, "STARTUPINFO"):
        # Keep a console window from popping up on Windows
        startupinfo = subprocess.STARTUPINFO()
        startupinfo.dwFlags |= subprocess.STARTF_USESHOWWINDOW

    try:
        proc = await asyncio.create_subprocess_exec(
            *command,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            startupinfo=startupinfo,
        )
    except OSError as exc:
        logger.error("Failed to start engine %s: %s", list(command), exc)
        raise SpawnFailed(command, exc) from exc

    logger.info("Started engine %s [pid=%s]", list(command), proc.pid)
    return EngineProcess(proc, command)
