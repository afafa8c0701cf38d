"""
UCI Shell — entry point.

Wires together:  config → session control → interactive loop → CLI display
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path

from ucishell.cli.display import console, display_error, display_event
from ucishell.cli.repl import run_repl
from ucishell.config import Config, load_config
from ucishell.control import SessionControl
from ucishell.errors import SessionError


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Interactive shell for UCI chess engines.")
    parser.add_argument("command", nargs="*", help="engine command (overrides config.yaml)")
    parser.add_argument("--config", default="config.yaml", help="path to config.yaml")
    parser.add_argument("--log-level", default="WARNING", help="Python logging level")
    return parser.parse_args(argv)


def _load(path: Path) -> Config:
    if not path.exists():
        console.print(f"[dim]{path} not found, using defaults[/]")
        return Config()
    try:
        return load_config(path)
    except ValueError as exc:
        console.print(f"[red]Config error:[/] {exc}")
        sys.exit(1)


async def _main(args: argparse.Namespace, stop_event: asyncio.Event) -> None:
    config = _load(Path(args.config))
    control = SessionControl(config, sink=display_event)

    try:
        await control.run(args.command or None)
    except SessionError as exc:
        display_error(exc)
        sys.exit(1)

    try:
        await run_repl(control, stop_event)
    finally:
        await control.quit()


def main() -> None:
    args = _parse_args()
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    async def _run() -> None:
        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()

        original_sigint = signal.getsignal(signal.SIGINT)

        def _on_sigint(sig: int, frame: object) -> None:
            # Schedule the event set on the event loop thread (safe on Windows)
            loop.call_soon_threadsafe(stop_event.set)
            # Restore the original handler so a second Ctrl+C force-quits
            signal.signal(signal.SIGINT, original_sigint)

        signal.signal(signal.SIGINT, _on_sigint)
        await _main(args, stop_event)

    asyncio.run(_run())


if __name__ == "__main__":
    main()
