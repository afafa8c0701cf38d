"""
EngineSession — owns one engine process and its lifecycle.

    absent ──start──▶ starting ──▶ running ──quit──▶ stopping ──▶ absent
                                      │
                                   restart (kill, then start)

Waits are fixed sleeps, not protocol acknowledgements: the session never
looks for "uciok" or "readyok". Start sleeps briefly so the engine can come
up before the setup commands arrive; quit gives the engine a grace period to
exit on its own before it is killed.

Output is pumped by an asyncio task: each chunk goes through the OutputFilter
and, if anything is left, out to the event sink as an EngineOutputEvent.
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Awaitable, Callable, Literal, Sequence

from ucishell.channel import CommandChannel
from ucishell.config import Config
from ucishell.errors import SendPrecondition, SessionError
from ucishell.events import (
    EngineExitedEvent,
    EngineOutputEvent,
    EventSink,
    SessionEndedEvent,
    SessionEvent,
    SessionStartedEvent,
    discard,
)
from ucishell.history import append_history, load_history
from ucishell.output_filter import OutputFilter
from ucishell.process import EngineProcess, spawn
from ucishell.registry import SessionRegistry, default_registry
from ucishell.session_log import SessionLog

logger = logging.getLogger(__name__)

SessionState = Literal["absent", "starting", "running", "stopping"]
Spawner = Callable[[Sequence[str]], Awaitable[EngineProcess]]

KILL_REAP_TIMEOUT = 2.0     # seconds to wait for a killed process to be reaped
PUMP_DRAIN_TIMEOUT = 1.0    # seconds to let the output pump reach EOF after exit


def engine_label(command: Sequence[str]) -> str:
    """
    Display name for an engine command.

    Taken from the *last* element of the command, not the executable, so
    ["stockfish", "--uci"] is labelled "--uci".
    """
    last = command[-1]
    return os.path.basename(last) or last


class EngineSession:
    """
    A single engine process bound to ``config.identity``.

    Args:
        config: Startup command, setup commands, timing and filter settings.
        registry: Where the session registers its identity.
        sink: Receives every SessionEvent, in order.
        channel: Command writer; built from ``config.timing.send_delay`` if omitted.
        output_filter: Chatter filter; built from ``config.filter`` if omitted.
        spawner: Coroutine that starts a process (swappable in tests).
    """

    def __init__(
        self,
        config: Config | None = None,
        *,
        registry: SessionRegistry | None = None,
        sink: EventSink = discard,
        channel: CommandChannel | None = None,
        output_filter: OutputFilter | None = None,
        spawner: Spawner = spawn,
    ) -> None:
        self.config = config or Config()
        self.identity = self.config.identity
        self.registry = registry if registry is not None else default_registry
        self.channel = channel or CommandChannel(self.config.timing.send_delay)
        self.output_filter = output_filter or self.config.filter.build()
        self._sink = sink
        self._spawn = spawner

        self.process: EngineProcess | None = None
        self.label: str = ""
        self.full_command: tuple[str, ...] = ()
        self.state: SessionState = "absent"

        self.history: list[str] = []
        self.sent_commands: list[str] = []
        self.session_log: SessionLog | None = None
        self._pump: asyncio.Task[None] | None = None

    # ------------------------------------------------------------------ #
    # Public API                                                           #
    # ------------------------------------------------------------------ #

    @property
    def is_running(self) -> bool:
        return self.process is not None and self.process.is_alive()

    async def start(self, command: Sequence[str] | None = None) -> EngineProcess:
        """
        Spawn the engine and send the setup commands.

        If a live engine already holds this identity, its process is returned
        and nothing is spawned.

        Raises:
            SpawnFailed: the executable could not be started.
            ProcessNotRunning: the engine exited before the setup commands went out.
        """
        existing = self.registry.live(self.identity)
        if existing is not None:
            logger.info("Engine %r already running [pid=%s]", existing.label, existing.process.pid)
            return existing.process  # type: ignore[return-value]

        if self.process is not None:
            # Previous engine died on its own; collect it before starting anew
            await self._terminate()
        return await self._start(command, restarted=False)

    async def restart(self, command: Sequence[str] | None = None) -> EngineProcess:
        """
        Replace the running engine without a quit handshake.

        The command defaults to the one the current engine was started with,
        then to the configured startup command. If another session runs the
        engine for this identity, that session is restarted instead.

        A failed restart ends the session: pending history is saved and the
        transcript is closed before the error propagates.
        """
        owner = self.registry.live(self.identity)
        if owner is not None and owner is not self:
            return await owner.restart(command)

        if command:
            resolved = tuple(command)
        elif self.full_command:
            resolved = self.full_command
        else:
            resolved = self.config.session.startup_command

        if self.is_running:
            logger.info("Restarting %r: killing pid %s", self.label, self.process.pid)  # type: ignore[union-attr]
        await self._terminate()
        return await self._start(resolved, restarted=True)

    async def send(self, commands: Sequence[str]) -> None:
        """Send ad-hoc commands; they are remembered for the history store."""
        await self.channel.send(self, commands)
        self.sent_commands.extend(c.rstrip("\r\n") for c in commands)

    async def stop(self) -> None:
        """
        Ask the engine to stop searching.

        Raises:
            ProcessNotRunning: no live engine.
        """
        await self.channel.write_raw(self, "stop")
        logger.info("Sent stop to %r", self.label)

    async def quit(self) -> bool:
        """
        Shut the engine down, killing it if it does not exit in time.

        Never raises. Returns True if a quit command was sent, False if the
        handshake was skipped because no engine was running.
        """
        quit_sent = False
        label = self.label

        if self.is_running:
            self.state = "stopping"
            try:
                await self.channel.write_raw(self, "quit")
                quit_sent = True
            except SendPrecondition as exc:
                logger.warning("Could not send quit to %r: %s", label, exc)
            else:
                await asyncio.sleep(self.config.timing.quit_grace)
        else:
            logger.info("No running engine for %r; skipping quit", self.identity)

        await self._terminate()
        self._end(label, quit_sent)
        logger.info("Session %r ended (quit %s)", self.identity, "sent" if quit_sent else "skipped")
        return quit_sent

    def emit(self, event: SessionEvent) -> None:
        self._sink(event)
        if self.session_log is not None:
            self.session_log(event)

    # ------------------------------------------------------------------ #
    # Internal                                                             #
    # ------------------------------------------------------------------ #

    async def _start(self, command: Sequence[str] | None, *, restarted: bool) -> EngineProcess:
        command = tuple(command) if command else self.config.session.startup_command
        if not command:
            raise ValueError("Engine command must not be empty")

        self.state = "starting"
        try:
            self.registry.ensure_free(self.identity, self)
            process = await self._spawn(command)
            self.process = process
            self.full_command = command
            self.label = engine_label(command)
            self.registry.bind(self.identity, self)
        except SessionError:
            await self._abandon()
            raise

        if not restarted:
            self.history = self._load_history()
        log_dir = self.config.logging.session_log_path
        if log_dir is not None and self.session_log is None:
            self.session_log = SessionLog(log_dir, self.label)

        self.emit(
            SessionStartedEvent(
                label=self.label,
                command=command,
                pid=process.pid,
                restarted=restarted,
            )
        )
        self._pump = asyncio.create_task(self._pump_output(process, self.label))
        self.state = "running"

        await asyncio.sleep(self.config.timing.settle_delay)
        try:
            await self.channel.send(self, self.config.session.setup_commands)
        except SendPrecondition:
            logger.error("Engine %r exited before the setup commands were sent", self.label)
            await self._abandon()
            raise
        return process

    async def _pump_output(self, process: EngineProcess, label: str) -> None:
        try:
            while True:
                chunk = await process.read_chunk()
                if chunk is None:
                    break
                text = self.output_filter.filter(chunk)
                if text:
                    self.emit(EngineOutputEvent(label=label, text=text))
            returncode = await process.wait()
            logger.info("Engine %r exited with code %s", label, returncode)
            self.emit(EngineExitedEvent(label=label, returncode=returncode))
        except Exception:
            logger.exception("Output pump for %r failed", label)

    async def _terminate(self) -> None:
        """Kill the process if alive, reap it, drain the pump, unbind. Never raises."""
        process, pump = self.process, self._pump
        self.process, self._pump = None, None
        self.registry.clear(self.identity, self)
        if process is None:
            return

        try:
            if process.is_alive():
                logger.info("Killing engine %r [pid=%s]", self.label, process.pid)
                process.kill()
            if await process.wait(KILL_REAP_TIMEOUT) is None:
                logger.warning("Engine pid %s did not exit after kill", process.pid)
            process.close_stdin()
        except OSError as exc:
            logger.warning("Error while terminating pid %s: %s", process.pid, exc)

        if pump is not None:
            _, pending = await asyncio.wait({pump}, timeout=PUMP_DRAIN_TIMEOUT)
            if pending:
                pump.cancel()

    async def _abandon(self) -> None:
        """Clean up after a start or restart that failed part way."""
        label = self.label
        await self._terminate()
        self._end(label, quit_sent=False)

    def _end(self, label: str, quit_sent: bool) -> None:
        if label:
            self.emit(SessionEndedEvent(label=label, quit_sent=quit_sent))
        self._save_history()
        self._release_display()
        self.full_command = ()
        self.state = "absent"

    def _load_history(self) -> list[str]:
        path = self.config.logging.history_file
        if path is None:
            return []
        try:
            return load_history(self.identity, path)
        except OSError as exc:
            logger.warning("Could not read history from %s: %s", path, exc)
            return []

    def _save_history(self) -> None:
        path = self.config.logging.history_file
        if path is None or not self.sent_commands:
            return
        try:
            append_history(self.identity, self.sent_commands, path)
        except OSError as exc:
            logger.warning("Could not write history to %s: %s", path, exc)
        self.history.extend(self.sent_commands)
        self.sent_commands = []

    def _release_display(self) -> None:
        if self.session_log is not None:
            self.session_log.close()
            logger.debug("Session log written to %s", self.session_log.path)
            self.session_log = None

    def __repr__(self) -> str:
        return f"EngineSession(identity={self.identity!r}, label={self.label!r}, state={self.state!r})"
