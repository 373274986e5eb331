"""Keep payload names and reported paths inside the repository root."""

from __future__ import annotations

from pathlib import Path


def check_payload_name(raw: str) -> str:
    """Return ``raw`` as a clean POSIX path relative to the extension root.

    Raises ValueError for anything that could name a file outside it:
    absolute or drive-qualified paths, backslashes, ``.``/``..`` segments.
    """

    if not isinstance(raw, str) or not raw:
        raise ValueError("name is missing or empty")
    if "\x00" in raw:
        raise ValueError("name contains NUL")
    if "\\" in raw:
        raise ValueError("name must use '/' separators")
    if raw.startswith("/"):
        raise ValueError("absolute paths are not allowed")
    if ":" in raw:
        raise ValueError("drive letters and URL schemes are not allowed")

    parts = raw.split("/")
    if any(p in ("", ".", "..") for p in parts):
        raise ValueError("empty, '.' and '..' segments are not allowed")
    return "/".join(parts)


def resolve_within(root: Path, rel: str) -> Path:
    """``root / rel``, refusing targets that resolve (e.g. via symlinks) outside ``root``."""

    base = root.resolve()
    target = (root / rel).resolve()
    if target != base and base not in target.parents:
        raise ValueError(f"{rel} resolves outside {base}")
    return root / rel


def safe_relpath(repo_root: Path, p: Path) -> str:
    """``p`` relative to ``repo_root`` for messages; the full path if it lies elsewhere."""

    try:
        return p.resolve().relative_to(repo_root.resolve()).as_posix()
    except ValueError:
        return p.as_posix()
