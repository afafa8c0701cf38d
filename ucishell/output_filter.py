"""
Chatter filter for engine output.

A search in progress prints far more than anyone wants to read: periodic
node/NPS reports, bound-only lines and per-move progress. OutputFilter strips
those lines out of each chunk of output before it is displayed or logged.

The filter works on one chunk at a time and keeps no state between chunks.
A chatter line split across two chunks is not recognised and passes through
in pieces; that is accepted rather than buffering output.
"""

from __future__ import annotations

import re
from typing import Iterable, Iterator, Sequence

# Each rule matches one complete, newline-terminated line.
DEFAULT_SUPPRESS_PATTERNS: tuple[str, ...] = (
    # node count / NPS reports that carry no principal variation
    r"^info\b(?!.*\bpv\b).*\bnodes\b.*\bnps\b.*\n",
    # bound-only search lines
    r"^info\b.*\b(?:lowerbound|upperbound)\b.*\n",
    # per-move progress
    r"^info\b.*\bcurrmove\b.*\n",
)


class OutputFilter:
    """
    Removes chatter lines from engine output chunks.

    Args:
        patterns: Regular expressions, applied in order. Each is compiled with
                  re.MULTILINE, so ``^`` anchors at every line start.

    Raises:
        ValueError: a pattern does not compile.
    """

    def __init__(self, patterns: Sequence[str] = DEFAULT_SUPPRESS_PATTERNS) -> None:
        compiled: list[re.Pattern[str]] = []
        for pattern in patterns:
            try:
                compiled.append(re.compile(pattern, re.MULTILINE))
            except re.error as exc:
                raise ValueError(f"Invalid suppress pattern {pattern!r}: {exc}") from exc
        self._rules: tuple[re.Pattern[str], ...] = tuple(compiled)

    @property
    def patterns(self) -> tuple[str, ...]:
        return tuple(rule.pattern for rule in self._rules)

    def filter(self, chunk: str) -> str:
        for rule in self._rules:
            chunk = rule.sub("", chunk)
        return chunk

    __call__ = filter

    def filter_chunks(self, chunks: Iterable[str]) -> Iterator[str]:
        """Filter a stream of chunks, dropping those that end up empty."""
        for chunk in chunks:
            filtered = self.filter(chunk)
            if filtered:
                yield filtered


def passthrough() -> OutputFilter:
    """A filter with no rules, for when chatter suppression is switched off."""
    return OutputFilter(patterns=())
