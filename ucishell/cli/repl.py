"""
Interactive command loop.

Reads lines from stdin and hands them to the control surface. Lines starting
with ":" are shell commands; everything else goes to the engine verbatim.

Each input() call runs on its own daemon thread so the event loop keeps
streaming engine output, and so a Ctrl+C (the stop event) ends the loop
without waiting for the user to press Enter.
"""

from __future__ import annotations

import asyncio
import shlex
import threading

from ucishell.cli.display import console, display_error
from ucishell.control import SessionControl
from ucishell.errors import SendPrecondition, SessionError

HELP = (
    "[dim]Type UCI commands to send them to the engine.\n"
    "  :stop              stop the current search\n"
    "  :restart \\[cmd...]  kill and relaunch (optionally with a new command)\n"
    "  :history           show commands from earlier sessions\n"
    "  :quit              shut the engine down and exit[/]"
)


async def run_repl(control: SessionControl, stop_event: asyncio.Event) -> None:
    console.print(HELP)
    stop_waiter = asyncio.ensure_future(stop_event.wait())
    try:
        await _loop(control, stop_event, stop_waiter)
    finally:
        stop_waiter.cancel()


async def _loop(
    control: SessionControl, stop_event: asyncio.Event, stop_waiter: asyncio.Future
) -> None:
    while not stop_event.is_set():
        pending_line = _read_line()
        done, _ = await asyncio.wait(
            {pending_line, stop_waiter}, return_when=asyncio.FIRST_COMPLETED
        )
        if pending_line not in done:
            # Interrupted; the reader thread is abandoned
            pending_line.cancel()
            break
        line = pending_line.result()
        if line is None:
            break

        line = line.strip()
        if not line:
            continue
        if not line.startswith(":"):
            try:
                await control.send([line])
            except SendPrecondition as exc:
                display_error(exc)
            continue

        name, _, rest = line[1:].partition(" ")
        match name:
            case "quit" | "q":
                break
            case "stop":
                try:
                    await control.stop()
                except SendPrecondition as exc:
                    display_error(exc)
            case "restart":
                try:
                    await control.restart(shlex.split(rest) or None)
                except SessionError as exc:
                    display_error(exc)
            case "history":
                _show_history(control)
            case "help":
                console.print(HELP)
            case _:
                console.print(f"[yellow]Unknown command[/] :{name}")


def _show_history(control: SessionControl) -> None:
    session = control.session
    entries = (session.history + session.sent_commands) if session else []
    if not entries:
        console.print("[dim]No history yet.[/]")
        return
    for i, command in enumerate(entries[-20:], 1):
        console.print(f"[dim]{i:>3}[/]  {command}", highlight=False)


def _read_line() -> asyncio.Future[str | None]:
    """Read one line of stdin on a daemon thread; resolves to None at EOF."""
    loop = asyncio.get_running_loop()
    future: asyncio.Future[str | None] = loop.create_future()

    def _settle(value: str | None, exc: Exception | None) -> None:
        if future.done():
            return
        if exc is not None:
            future.set_exception(exc)
        else:
            future.set_result(value)

    def _read() -> None:
        try:
            value, exc = input(), None
        except EOFError:
            value, exc = None, None
        except Exception as e:
            value, exc = None, e
        if not loop.is_closed():
            loop.call_soon_threadsafe(_settle, value, exc)

    threading.Thread(target=_read, name="repl-input", daemon=True).start()
    return future
