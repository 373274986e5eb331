"""Crash-safe file writes.

Every final path is produced by writing a sibling temp file and renaming it
into place, so a failure never leaves a truncated file at the final path.
"""

from __future__ import annotations

import json
import os
import stat
import tempfile
from pathlib import Path
from typing import Any, Mapping

from extpack.core.errors import ReleaseIOError


def _final_mode(path: Path) -> int:
    """Mode for the file written at ``path``: keep an existing file's, else honor the umask."""

    try:
        return stat.S_IMODE(path.stat().st_mode)
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        return 0o666 & ~umask


def atomic_write_bytes(path: Path, data: bytes, *, stage: str | None = None) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        # mkstemp creates 0600; the rename would carry that onto the final path.
        os.chmod(tmp, _final_mode(path))
        os.replace(tmp, path)
    except OSError as e:
        tmp.unlink(missing_ok=True)
        raise ReleaseIOError(f"cannot write {path}: {e}", stage=stage) from e


def render_json_document(obj: Mapping[str, Any]) -> bytes:
    """Two-space indented JSON with a trailing LF; key order is preserved."""

    return (json.dumps(obj, indent=2, ensure_ascii=False) + "\n").encode("utf-8", errors="strict")


def render_canonical_json(obj: Any) -> bytes:
    """Sorted keys, compact separators, trailing LF; byte-stable for equal objects."""

    return (json.dumps(obj, ensure_ascii=False, sort_keys=True, separators=(",", ":")) + "\n").encode("utf-8")


def write_all_or_nothing(writes: list[tuple[Path, bytes]], *, stage: str | None = None) -> None:
    """Write every (path, data) pair or leave all paths as they were.

    Previous contents are captured first. If any write fails, files already
    replaced are restored (or removed if they did not exist) and the original
    error propagates.
    """

    previous: list[tuple[Path, bytes | None]] = []
    for path, _ in writes:
        try:
            previous.append((path, path.read_bytes() if path.exists() else None))
        except OSError as e:
            raise ReleaseIOError(f"cannot read {path}: {e}", stage=stage) from e

    done: list[tuple[Path, bytes | None]] = []
    try:
        for (path, data), prev in zip(writes, previous):
            atomic_write_bytes(path, data, stage=stage)
            done.append(prev)
    except ReleaseIOError:
        for path, old in reversed(done):
            if old is None:
                path.unlink(missing_ok=True)
            else:
                atomic_write_bytes(path, old, stage=stage)
        raise


def remove_if_exists(path: Path, *, stage: str | None = None) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        raise ReleaseIOError(f"cannot remove {path}: {e}", stage=stage) from e
