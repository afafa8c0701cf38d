"""
Session transcript — writes everything sent to and received from an engine
to a text file.

One log file is created per session, named by timestamp and engine label.
Sent commands are prefixed with "> "; engine output is written verbatim
(after chatter filtering), in the order it arrived.

Log files land in ./logs/ by default (created automatically).
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

from ucishell.events import (
    CommandSentEvent,
    EngineExitedEvent,
    EngineOutputEvent,
    SessionEndedEvent,
    SessionEvent,
    SessionStartedEvent,
)

_SEP = "=" * 80


class SessionLog:
    def __init__(self, log_dir: Path, label: str) -> None:
        log_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        self._path = log_dir / f"session_{timestamp}_{_safe(label)}.log"
        self._closed = False
        self._write(
            f"{_SEP}\n"
            f"  UCI Shell — Session Log\n"
            f"  Engine: {label}\n"
            f"  Started: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}\n"
            f"{_SEP}\n"
        )

    # ------------------------------------------------------------------ #
    # Public API                                                           #
    # ------------------------------------------------------------------ #

    def __call__(self, event: SessionEvent) -> None:
        if self._closed:
            return
        match event:
            case SessionStartedEvent():
                verb = "Restarted" if event.restarted else "Started"
                self._write(f"# {verb} {' '.join(event.command)} [pid {event.pid}]\n")
            case CommandSentEvent():
                self._write(f"> {event.command}\n")
            case EngineOutputEvent():
                self._write(event.text)
            case EngineExitedEvent():
                self._write(f"\n# Engine exited (code {event.returncode})\n")
            case SessionEndedEvent():
                how = "quit" if event.quit_sent else "killed"
                self._write(
                    f"{_SEP}\n"
                    f"  Session ended ({how}) {event.timestamp.strftime('%H:%M:%S')}\n"
                    f"{_SEP}\n"
                )

    def close(self) -> None:
        self._closed = True

    @property
    def path(self) -> Path:
        return self._path

    # ------------------------------------------------------------------ #
    # Internal                                                             #
    # ------------------------------------------------------------------ #

    def _write(self, text: str) -> None:
        with self._path.open("a", encoding="utf-8") as f:
            f.write(text)


def _safe(name: str) -> str:
    """Strip characters that are problematic in filenames."""
    return "".join(c if c.isalnum() or c in " _-" else "_" for c in name).strip()
