"""
Typed event dataclasses — the shared language between an engine session and
whatever shows its traffic.

EngineSession emits these through a single sink callable, in the order things
happen. The Rich console (cli/display.py), the plain-text transcript
(session_log.py) and tests all consume the same stream.
All events are frozen so they can be handed across tasks safely.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable


@dataclass(frozen=True)
class SessionStartedEvent:
    label: str
    command: tuple[str, ...]
    pid: int
    restarted: bool = False
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class CommandSentEvent:
    label: str
    command: str  # without the line terminator


@dataclass(frozen=True)
class EngineOutputEvent:
    label: str
    text: str  # already filtered, may hold several lines or a partial one


@dataclass(frozen=True)
class EngineExitedEvent:
    label: str
    returncode: int | None


@dataclass(frozen=True)
class SessionEndedEvent:
    label: str
    quit_sent: bool  # False when the quit handshake was skipped
    timestamp: datetime = field(default_factory=datetime.now)


SessionEvent = (
    SessionStartedEvent
    | CommandSentEvent
    | EngineOutputEvent
    | EngineExitedEvent
    | SessionEndedEvent
)

EventSink = Callable[[SessionEvent], None]


def discard(event: SessionEvent) -> None:
    """Sink that drops everything."""


def fan_out(*sinks: EventSink) -> EventSink:
    """Combine several sinks into one; each event reaches them in the given order."""

    def _sink(event: SessionEvent) -> None:
        for sink in sinks:
            sink(event)

    return _sink
