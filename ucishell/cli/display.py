"""
Rich-based CLI event consumer.

This is the ONLY place where terminal output happens.
It translates SessionEvent objects into formatted Rich output; the session
itself never prints.
"""

from __future__ import annotations

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from ucishell.errors import SessionError
from ucishell.events import (
    CommandSentEvent,
    EngineExitedEvent,
    EngineOutputEvent,
    SessionEndedEvent,
    SessionEvent,
    SessionStartedEvent,
)

console = Console(legacy_windows=False)


def display_event(event: SessionEvent) -> None:
    """Dispatch a SessionEvent to the appropriate display function."""
    match event:
        case SessionStartedEvent():
            _session_started(event)
        case CommandSentEvent():
            console.print(f"[bold cyan]>[/] [cyan]{escape(event.command)}[/]", highlight=False)
        case EngineOutputEvent():
            console.print(event.text, end="", highlight=False, markup=False)
        case EngineExitedEvent():
            _engine_exited(event)
        case SessionEndedEvent():
            _session_ended(event)


def display_error(exc: SessionError) -> None:
    console.print(f"[red]Error:[/] {exc.user_message}")


# --------------------------------------------------------------------------- #
# Display functions                                                            #
# --------------------------------------------------------------------------- #

def _session_started(event: SessionStartedEvent) -> None:
    verb = "Restarted" if event.restarted else "Started"
    console.print()
    console.print(
        Panel(
            f"[bold white]{escape(' '.join(event.command))}[/]\n"
            f"[dim]pid {event.pid} · {event.timestamp.strftime('%Y-%m-%d %H:%M:%S')}[/]",
            title=f"[bold green] {verb} {event.label} [/]",
            border_style="green",
            expand=False,
        )
    )


def _engine_exited(event: EngineExitedEvent) -> None:
    style = "dim" if event.returncode in (0, None) else "yellow"
    console.print(f"\n[{style}]{event.label} exited (code {event.returncode})[/]")


def _session_ended(event: SessionEndedEvent) -> None:
    how = "quit" if event.quit_sent else "killed"
    console.print(f"[dim]Session {event.label} ended ({how}) at {event.timestamp.strftime('%H:%M:%S')}[/]")
