"""
Session registry — which engine session currently owns which identity.

Replaces a single global "the engine" slot with an explicit table so the
one-session-per-identity rule can be checked and tested directly.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ucishell.errors import IdentityInUse

if TYPE_CHECKING:
    from ucishell.session import EngineSession


class SessionRegistry:
    def __init__(self) -> None:
        self._sessions: dict[str, EngineSession] = {}

    def get(self, identity: str) -> EngineSession | None:
        return self._sessions.get(identity)

    def live(self, identity: str) -> EngineSession | None:
        """The session bound to ``identity`` if its process is still running."""
        session = self._sessions.get(identity)
        if session is not None and session.is_running:
            return session
        return None

    def ensure_free(self, identity: str, session: EngineSession) -> None:
        """Raise IdentityInUse if a different, still running session holds ``identity``."""
        current = self._sessions.get(identity)
        if current is not None and current is not session and current.is_running:
            raise IdentityInUse(identity)

    def bind(self, identity: str, session: EngineSession) -> None:
        self.ensure_free(identity, session)
        self._sessions[identity] = session

    def clear(self, identity: str, session: EngineSession | None = None) -> None:
        """Drop the binding; when ``session`` is given, only if it is the bound one."""
        if session is not None and self._sessions.get(identity) is not session:
            return
        self._sessions.pop(identity, None)

    def __contains__(self, identity: str) -> bool:
        return identity in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)


default_registry = SessionRegistry()
