from __future__ import annotations

import sys
from typing import TextIO


class Diagnostics:
    """Stage-tagged, human-readable lines on stderr.

    Lines look like ``[extpack build-archive] WARNING: popup.js not found, skipping``.
    ``lines`` keeps everything emitted so callers (and tests) can inspect it.
    """

    def __init__(self, tag: str, *, stream: TextIO | None = None) -> None:
        self.tag = tag
        self._stream = stream
        self.lines: list[str] = []

    def _emit(self, text: str) -> None:
        line = f"[extpack {self.tag}] {text}"
        self.lines.append(line)
        print(line, file=self._stream if self._stream is not None else sys.stderr)

    def info(self, message: str) -> None:
        self._emit(message)

    def note(self, message: str) -> None:
        self._emit(f"NOTE: {message}")

    def warning(self, message: str) -> None:
        self._emit(f"WARNING: {message}")

    def error(self, message: str) -> None:
        self._emit(f"ERROR: {message}")

    def warnings(self) -> list[str]:
        return [ln for ln in self.lines if "] WARNING: " in ln]
