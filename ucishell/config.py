"""
Configuration loading from config.yaml.

Uses typed dataclasses throughout so the rest of the app gets IDE
completion and type-checker support without touching raw dicts.
Everything here is read once, when a session is created.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml

from ucishell.output_filter import DEFAULT_SUPPRESS_PATTERNS, OutputFilter, passthrough

DEFAULT_COMMAND: tuple[str, ...] = ("stockfish",)
DEFAULT_SETUP_COMMANDS: tuple[str, ...] = ("uci",)
DEFAULT_IDENTITY = "uci"


@dataclass(frozen=True)
class SessionConfig:
    """What to launch and what to tell the engine straight after launch."""

    startup_command: tuple[str, ...] = DEFAULT_COMMAND
    setup_commands: tuple[str, ...] = DEFAULT_SETUP_COMMANDS

    def __post_init__(self) -> None:
        # Accept lists from callers but store tuples so the config stays immutable
        object.__setattr__(self, "startup_command", tuple(self.startup_command))
        object.__setattr__(self, "setup_commands", tuple(self.setup_commands))
        if not self.startup_command:
            raise ValueError("startup_command must name an executable")


@dataclass(frozen=True)
class TimingConfig:
    send_delay: float = 0.05    # minimum gap between two commands, seconds
    settle_delay: float = 0.5   # wait after spawn before setup commands
    quit_grace: float = 1.0     # wait after "quit" before killing


@dataclass(frozen=True)
class FilterConfig:
    enabled: bool = True
    suppress_patterns: tuple[str, ...] = DEFAULT_SUPPRESS_PATTERNS

    def build(self) -> OutputFilter:
        if not self.enabled:
            return passthrough()
        return OutputFilter(self.suppress_patterns)


@dataclass(frozen=True)
class LoggingConfig:
    session_log_dir: str = "./logs"   # empty string disables transcripts
    history_path: str = ".ucishell_history.json"   # empty string disables history

    @property
    def session_log_path(self) -> Path | None:
        return Path(self.session_log_dir) if self.session_log_dir else None

    @property
    def history_file(self) -> Path | None:
        return Path(self.history_path) if self.history_path else None


@dataclass(frozen=True)
class Config:
    session: SessionConfig = field(default_factory=SessionConfig)
    identity: str = DEFAULT_IDENTITY
    timing: TimingConfig = field(default_factory=TimingConfig)
    filter: FilterConfig = field(default_factory=FilterConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def load_config(path: str | Path = "config.yaml") -> Config:
    """
    Load and validate config.yaml.

    Raises:
        FileNotFoundError: config.yaml is missing.
        ValueError: required fields are absent or invalid.
    """
    cfg_path = Path(path)
    if not cfg_path.exists():
        raise FileNotFoundError(
            f"Config file not found: {cfg_path.resolve()}\n"
            "Copy config.example.yaml to config.yaml and set your engine path."
        )

    with cfg_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    try:
        engine_raw = raw.get("engine") or {}
        command = engine_raw.get("command", list(DEFAULT_COMMAND))
        if isinstance(command, str):
            command = command.split()
        session_cfg = SessionConfig(
            startup_command=tuple(str(c) for c in command),
            setup_commands=tuple(
                str(c) for c in engine_raw.get("setup_commands", DEFAULT_SETUP_COMMANDS)
            ),
        )

        timing_raw = raw.get("timing") or {}
        timing_cfg = TimingConfig(
            send_delay=float(timing_raw.get("send_delay", 0.05)),
            settle_delay=float(timing_raw.get("settle_delay", 0.5)),
            quit_grace=float(timing_raw.get("quit_grace", 1.0)),
        )

        filter_raw = raw.get("filter") or {}
        filter_cfg = FilterConfig(
            enabled=bool(filter_raw.get("enabled", True)),
            suppress_patterns=tuple(
                str(p) for p in filter_raw.get("suppress_patterns", DEFAULT_SUPPRESS_PATTERNS)
            ),
        )

        logging_raw = raw.get("logging") or {}
        logging_cfg = LoggingConfig(
            session_log_dir=str(logging_raw.get("session_log_dir", "./logs") or ""),
            history_path=str(logging_raw.get("history_path", ".ucishell_history.json") or ""),
        )

        config = Config(
            session=session_cfg,
            identity=str(engine_raw.get("identity", DEFAULT_IDENTITY)),
            timing=timing_cfg,
            filter=filter_cfg,
            logging=logging_cfg,
        )
        _validate(config)
        return config

    except (KeyError, TypeError, AttributeError) as exc:
        raise ValueError(f"Invalid config.yaml structure: {exc}") from exc


def _validate(config: Config) -> None:
    for name in ("send_delay", "settle_delay", "quit_grace"):
        if getattr(config.timing, name) < 0:
            raise ValueError(f"timing.{name} must be >= 0")
    if not config.identity:
        raise ValueError("engine.identity must not be empty")
    # Compiles the patterns; raises ValueError on a bad one
    config.filter.build()
