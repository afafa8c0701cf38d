"""
Session error hierarchy.

Every failure that reaches a caller carries a user-facing message telling them
what to do next (start or restart the engine). Nothing here is retried
automatically; the control surface surfaces these as-is.
"""

from __future__ import annotations

from typing import Any


class SessionError(Exception):
    """Base class for engine session failures."""

    def __init__(
        self,
        message: str,
        *,
        user_message: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.user_message = user_message or message
        self.context = context or {}


class SpawnFailed(SessionError):
    """The engine executable could not be started."""

    def __init__(self, command: tuple[str, ...], cause: Exception | None = None) -> None:
        self.command = command
        self.cause = cause
        reason = f": {cause}" if cause else ""
        super().__init__(
            f"Could not start engine {' '.join(command)!r}{reason}",
            user_message=(
                f"Could not start {command[0]!r}. "
                "Check the engine path in config.yaml or pass a different command to run()."
            ),
            context={"command": list(command)},
        )


class SendPrecondition(SessionError):
    """A command could not be sent because there is no live engine to send it to."""


class NoActiveSession(SendPrecondition):
    def __init__(self, identity: str | None = None) -> None:
        where = f" bound to {identity!r}" if identity else ""
        super().__init__(
            f"No engine session{where}",
            user_message="No engine is running. Start one with run().",
            context={"identity": identity},
        )


class ProcessNotRunning(SendPrecondition):
    def __init__(self, label: str, returncode: int | None = None) -> None:
        super().__init__(
            f"Engine {label!r} is not running (exit code {returncode})",
            user_message=f"Engine {label!r} has exited. Restart it with restart().",
            context={"label": label, "returncode": returncode},
        )


class IdentityInUse(SessionError):
    """Another session already runs an engine under this identity."""

    def __init__(self, identity: str) -> None:
        super().__init__(
            f"Identity {identity!r} is already bound to a running engine",
            user_message=f"An engine is already running as {identity!r}. Quit it first.",
            context={"identity": identity},
        )
