"""
Lifecycle tests against a real child process.

The engine is tests/fake_engine.py run with the current interpreter, so
these exercise actual spawning, piping, killing and reaping.
"""

import asyncio
import os
import sys
import tempfile
import unittest
from pathlib import Path

from ucishell.config import Config, LoggingConfig, SessionConfig, TimingConfig
from ucishell.errors import ProcessNotRunning, SpawnFailed
from ucishell.events import (
    CommandSentEvent,
    EngineOutputEvent,
    SessionEndedEvent,
    SessionStartedEvent,
)
from ucishell.history import load_history
from ucishell.process import spawn
from ucishell.registry import SessionRegistry
from ucishell.session import EngineSession, engine_label

FAKE_ENGINE = str(Path(__file__).with_name("fake_engine.py"))


def _config(*extra_args: str, setup=("uci",), log_dir: str = "", history: str = "") -> Config:
    return Config(
        session=SessionConfig(
            startup_command=(sys.executable, FAKE_ENGINE, *extra_args),
            setup_commands=setup,
        ),
        identity="test",
        timing=TimingConfig(send_delay=0.0, settle_delay=0.05, quit_grace=0.2),
        logging=LoggingConfig(session_log_dir=log_dir, history_path=history),
    )


async def _wait_for(predicate, timeout: float = 5.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.02)


class _Harness:
    """Builds a session that records its events and counts spawns."""

    def __init__(self, config: Config) -> None:
        self.events: list = []
        self.spawned: list = []
        self.registry = SessionRegistry()
        self.session = EngineSession(
            config,
            registry=self.registry,
            sink=self.events.append,
            spawner=self._spawn,
        )

    async def _spawn(self, command):
        process = await spawn(command)
        self.spawned.append(process)
        return process

    def output(self) -> str:
        return "".join(e.text for e in self.events if isinstance(e, EngineOutputEvent))

    def sent(self) -> list[str]:
        return [e.command for e in self.events if isinstance(e, CommandSentEvent)]


class EngineSessionTests(unittest.IsolatedAsyncioTestCase):
    def _harness(self, config: Config) -> _Harness:
        h = _Harness(config)
        self.addAsyncCleanup(h.session.quit)
        return h

    async def test_start_spawns_live_process_and_sends_setup(self) -> None:
        h = self._harness(_config())

        process = await h.session.start()

        self.assertTrue(process.is_alive())
        self.assertEqual(h.session.state, "running")
        self.assertIs(h.registry.get("test"), h.session)
        self.assertEqual(h.sent(), ["uci"])
        await _wait_for(lambda: "uciok" in h.output())
        self.assertIsInstance(h.events[0], SessionStartedEvent)

    async def test_label_comes_from_last_command_element(self) -> None:
        h = self._harness(_config("--flavour", "sharp"))
        await h.session.start()
        self.assertEqual(h.session.label, "sharp")
        self.assertEqual(h.session.label, engine_label(h.session.full_command))

    async def test_start_twice_returns_same_process(self) -> None:
        h = self._harness(_config())
        first = await h.session.start()
        second = await h.session.start()
        self.assertIs(first, second)
        self.assertEqual(len(h.spawned), 1)

    async def test_second_session_with_same_identity_reuses_running_engine(self) -> None:
        h = self._harness(_config())
        first = await h.session.start()
        other = EngineSession(_config(), registry=h.registry, spawner=h._spawn)
        self.assertIs(await other.start(), first)
        self.assertEqual(len(h.spawned), 1)

    async def test_spawn_failure_leaves_session_absent(self) -> None:
        config = Config(
            session=SessionConfig(startup_command=("/nonexistent/dir/engine",)),
            identity="test",
            logging=LoggingConfig(session_log_dir="", history_path=""),
        )
        h = self._harness(config)
        with self.assertRaises(SpawnFailed):
            await h.session.start()
        self.assertEqual(h.session.state, "absent")
        self.assertIsNone(h.session.process)
        self.assertNotIn("test", h.registry)

    async def test_chatter_is_filtered_from_output(self) -> None:
        h = self._harness(_config())
        await h.session.start()
        await h.session.send(["go depth 5"])
        await _wait_for(lambda: "bestmove e2e4" in h.output())

        output = h.output()
        self.assertIn("pv e2e4 e7e5", output)
        self.assertNotIn("currmove", output)
        self.assertNotIn("nodes 12345", output)
        self.assertNotIn("lowerbound", output)

    async def test_commands_reach_engine_in_order(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            record = os.path.join(tmp, "received.txt")
            h = self._harness(_config("--record", record, setup=()))
            await h.session.start()
            await h.session.send(["a", "b", "c", "isready"])
            await _wait_for(lambda: "readyok" in h.output())
            with open(record, encoding="utf-8") as f:
                self.assertEqual(f.read(), "a\nb\nc\nisready\n")
            await h.session.quit()

    async def test_stop_uses_raw_path_and_keeps_running(self) -> None:
        h = self._harness(_config())
        await h.session.start()
        await h.session.stop()
        await _wait_for(lambda: "stopped" in h.output())
        self.assertNotIn("stop", h.sent())
        self.assertTrue(h.session.is_running)
        self.assertEqual(h.session.state, "running")

    async def test_stop_without_engine_raises(self) -> None:
        h = self._harness(_config())
        with self.assertRaises(ProcessNotRunning):
            await h.session.stop()

    async def test_quit_without_process_is_quiet(self) -> None:
        h = self._harness(_config())
        quit_sent = await h.session.quit()
        self.assertFalse(quit_sent)
        self.assertEqual(h.session.state, "absent")
        self.assertIsNone(h.session.process)

    async def test_quit_lets_engine_exit_gracefully(self) -> None:
        h = self._harness(_config())
        process = await h.session.start()

        quit_sent = await h.session.quit()

        self.assertTrue(quit_sent)
        self.assertFalse(process.is_alive())
        self.assertEqual(process.returncode, 0)
        self.assertEqual(h.session.state, "absent")
        self.assertNotIn("test", h.registry)
        self.assertIsInstance(h.events[-1], SessionEndedEvent)
        self.assertTrue(h.events[-1].quit_sent)

    async def test_quit_kills_engine_that_ignores_quit(self) -> None:
        h = self._harness(_config("--ignore-quit"))
        process = await h.session.start()

        quit_sent = await h.session.quit()

        self.assertTrue(quit_sent)
        self.assertFalse(process.is_alive())
        self.assertNotEqual(process.returncode, 0)
        self.assertIsNone(h.session.process)
        self.assertEqual(h.session.state, "absent")

    async def test_quit_after_engine_died_skips_handshake(self) -> None:
        h = self._harness(_config())
        process = await h.session.start()
        process.kill()
        await process.wait(2.0)

        self.assertFalse(await h.session.quit())
        self.assertEqual(h.session.state, "absent")
        self.assertNotIn("test", h.registry)

    async def test_restart_reuses_command_with_new_process(self) -> None:
        h = self._harness(_config("--uci"))
        old = await h.session.start()
        old_pid = old.pid

        new = await h.session.restart()

        self.assertFalse(old.is_alive())
        self.assertTrue(new.is_alive())
        self.assertNotEqual(old_pid, new.pid)
        self.assertEqual(h.session.full_command, (sys.executable, FAKE_ENGINE, "--uci"))
        self.assertEqual(len(h.spawned), 2)
        started = [e for e in h.events if isinstance(e, SessionStartedEvent)]
        self.assertEqual([e.restarted for e in started], [False, True])

    async def test_restart_with_explicit_command(self) -> None:
        h = self._harness(_config())
        await h.session.start()
        command = (sys.executable, FAKE_ENGINE, "--variant")
        await h.session.restart(command)
        self.assertEqual(h.session.full_command, command)
        self.assertEqual(h.session.label, "--variant")

    async def test_restart_without_running_engine_uses_default_command(self) -> None:
        h = self._harness(_config())
        process = await h.session.restart()
        self.assertTrue(process.is_alive())
        self.assertEqual(h.session.full_command, (sys.executable, FAKE_ENGINE))

    async def test_history_saved_on_quit_and_loaded_on_start(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            history = os.path.join(tmp, "history.json")
            h = self._harness(_config(history=history))
            await h.session.start()
            await h.session.send(["position startpos", "go depth 1"])
            await h.session.quit()

            self.assertEqual(
                load_history("test", Path(history)), ["position startpos", "go depth 1"]
            )

            h2 = self._harness(_config(history=history))
            await h2.session.start()
            self.assertEqual(h2.session.history, ["position startpos", "go depth 1"])
            await h2.session.quit()

    async def test_session_log_records_traffic_and_is_released(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            h = self._harness(_config(log_dir=tmp))
            await h.session.start()
            await _wait_for(lambda: "uciok" in h.output())
            log_path = h.session.session_log.path

            await h.session.quit()

            self.assertIsNone(h.session.session_log)
            text = log_path.read_text(encoding="utf-8")
            self.assertIn("> uci\n", text)
            self.assertIn("uciok\n", text)
            self.assertIn("Session ended (quit)", text)

    async def test_engine_exiting_before_setup_ends_session(self) -> None:
        config = Config(
            session=SessionConfig(startup_command=(sys.executable, "-c", "pass"), setup_commands=("uci",)),
            identity="test",
            timing=TimingConfig(send_delay=0.0, settle_delay=1.0, quit_grace=0.2),
            logging=LoggingConfig(session_log_dir="", history_path=""),
        )
        h = self._harness(config)

        with self.assertRaises(ProcessNotRunning):
            await h.session.start()

        self.assertEqual(h.session.state, "absent")
        self.assertIsNone(h.session.process)
        self.assertNotIn("test", h.registry)
        self.assertFalse(any(p.is_alive() for p in h.spawned))
        self.assertEqual(h.sent(), [])

    async def test_failed_restart_saves_history_and_closes_transcript(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            history = os.path.join(tmp, "history.json")
            h = self._harness(_config(log_dir=tmp, history=history))
            old = await h.session.start()
            await h.session.send(["position startpos"])
            log_path = h.session.session_log.path

            with self.assertRaises(SpawnFailed):
                await h.session.restart(("/nonexistent/dir/engine",))

            self.assertFalse(old.is_alive())
            self.assertEqual(h.session.state, "absent")
            self.assertNotIn("test", h.registry)
            self.assertEqual(h.session.sent_commands, [])
            self.assertEqual(load_history("test", Path(history)), ["position startpos"])
            self.assertIsNone(h.session.session_log)
            self.assertIn("Session ended (killed)", log_path.read_text(encoding="utf-8"))

    async def test_restart_from_unbound_session_replaces_the_bound_engine(self) -> None:
        h = self._harness(_config())
        old = await h.session.start()
        other = EngineSession(_config(), registry=h.registry, spawner=h._spawn)

        new = await other.restart()

        self.assertFalse(old.is_alive())
        self.assertTrue(new.is_alive())
        self.assertIs(h.session.process, new)
        self.assertIsNone(other.process)
        self.assertIs(h.registry.live("test"), h.session)
        self.assertEqual([p for p in h.spawned if p.is_alive()], [new])
