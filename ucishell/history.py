"""Command history store.

Keeps previously sent commands in a local JSON file, one list per session
identity. Loaded when a session starts, appended to when it ends.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Sequence

_HISTORY_PATH = Path('.ucishell_history.json')
MAX_ENTRIES = 500


def _load_all(path: Path) -> dict[str, list[str]]:
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding='utf-8'))
    except json.JSONDecodeError:
        return {}
    return data if isinstance(data, dict) else {}


def load_history(identity: str, path: Path | None = None) -> list[str]:
    entries = _load_all(path or _HISTORY_PATH).get(identity) or []
    return [str(c) for c in entries]


def append_history(identity: str, commands: Sequence[str], path: Path | None = None) -> None:
    if not commands:
        return
    path = path or _HISTORY_PATH
    data = _load_all(path)
    entries = list(data.get(identity) or []) + list(commands)
    data[identity] = entries[-MAX_ENTRIES:]
    path.write_text(json.dumps(data, indent=2), encoding='utf-8')
