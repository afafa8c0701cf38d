"""
Control surface — what a command line, editor binding or script calls.

SessionControl looks the session up in the registry by identity on every
call, so there is never more than one engine per identity no matter how many
callers hold a SessionControl.

Usage:
    control = SessionControl(config, sink=display_event)
    await control.run()
    await control.send(["position startpos", "go depth 12"])
    await control.stop()
    await control.quit()
"""

from __future__ import annotations

import logging
from typing import Sequence

from ucishell.config import Config
from ucishell.errors import NoActiveSession
from ucishell.events import EventSink, discard
from ucishell.process import EngineProcess, spawn
from ucishell.registry import SessionRegistry, default_registry
from ucishell.session import EngineSession, Spawner

logger = logging.getLogger(__name__)


class SessionControl:
    def __init__(
        self,
        config: Config | None = None,
        *,
        registry: SessionRegistry | None = None,
        sink: EventSink = discard,
        spawner: Spawner = spawn,
    ) -> None:
        self.config = config or Config()
        self.registry = registry if registry is not None else default_registry
        self._sink = sink
        self._spawner = spawner

    @property
    def identity(self) -> str:
        return self.config.identity

    @property
    def session(self) -> EngineSession | None:
        return self.registry.get(self.identity)

    async def run(self, command: Sequence[str] | None = None) -> EngineProcess:
        """Start the engine, or return the one already running under this identity."""
        return await self._session_or_new().start(command)

    async def restart(self, command: Sequence[str] | None = None) -> EngineProcess:
        return await self._session_or_new().restart(command)

    async def send(self, commands: Sequence[str]) -> None:
        if not commands:
            return
        await self._require_session().send(commands)

    async def stop(self) -> None:
        await self._require_session().stop()

    async def quit(self) -> bool:
        session = self.session
        if session is None:
            logger.info("quit: no session bound to %r", self.identity)
            return False
        return await session.quit()

    def _session_or_new(self) -> EngineSession:
        session = self.session
        if session is None:
            session = EngineSession(
                self.config,
                registry=self.registry,
                sink=self._sink,
                spawner=self._spawner,
            )
        return session

    def _require_session(self) -> EngineSession:
        session = self.session
        if session is None:
            raise NoActiveSession(self.identity)
        return session
