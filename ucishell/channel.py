"""
CommandChannel — the one way commands get written to an engine.

Commands go out strictly in the order given, one line each, with a minimum
gap between writes so the engine's input buffer is never flooded and our
echo doesn't interleave badly with its output. Nothing waits for a reply:
UCI responses arrive whenever the engine decides to send them.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Callable, Sequence

from ucishell.errors import NoActiveSession, ProcessNotRunning
from ucishell.events import CommandSentEvent
from ucishell.process import EngineProcess

if TYPE_CHECKING:
    from ucishell.session import EngineSession

logger = logging.getLogger(__name__)


class CommandChannel:
    """
    Paced, ordered command writer.

    Args:
        min_interval: Minimum seconds between two writes on this channel.
        clock: Monotonic time source (injectable for tests).
    """

    def __init__(
        self,
        min_interval: float = 0.05,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.min_interval = min_interval
        self._clock = clock
        self._last_send: float | None = None

    async def send(self, session: EngineSession | None, commands: Sequence[str]) -> None:
        """
        Write each command, in order, followed by a single newline.

        Raises:
            NoActiveSession: there is no session at all.
            ProcessNotRunning: the session's engine has exited.
        """
        if not commands:
            return
        session, process = _live_process(session)

        for command in commands:
            line = command.rstrip("\r\n")
            await self._pace()
            await _write(session, process, line)
            session.emit(CommandSentEvent(label=session.label, command=line))

    async def write_raw(self, session: EngineSession | None, command: str) -> None:
        """Write one command with no pacing and no echo to the session's sink."""
        session, process = _live_process(session)
        await _write(session, process, command.rstrip("\r\n"))

    async def _pace(self) -> None:
        if self._last_send is not None:
            remaining = self.min_interval - (self._clock() - self._last_send)
            if remaining > 0:
                await asyncio.sleep(remaining)
        self._last_send = self._clock()


def _live_process(session: EngineSession | None) -> tuple[EngineSession, EngineProcess]:
    if session is None:
        raise NoActiveSession()
    process = session.process
    if process is None or not process.is_alive():
        raise ProcessNotRunning(
            session.label, process.returncode if process is not None else None
        )
    return session, process


async def _write(session: EngineSession, process: EngineProcess, line: str) -> None:
    try:
        await process.write_line(line)
    except (BrokenPipeError, ConnectionResetError) as exc:
        logger.warning("Write to %s failed: %s", session.label, exc)
        raise ProcessNotRunning(session.label, process.returncode) from exc
    logger.debug("-> %s: %s", session.label, line)
