"""Archive encoder backends.

``probe_archive_encoder()`` picks the richest backend the host offers:
``zipfile`` with deflate (needs zlib), then the platform shell utility, then
manual instructions. A missing rich backend degrades; it is never fatal.
"""

from __future__ import annotations

import importlib.util
import io
import shutil
import subprocess
import sys
import zipfile
from pathlib import Path
from typing import Callable, Protocol, Sequence

from extpack.core.diag import Diagnostics
from extpack.core.errors import PackagingError


class ArchiveEncoder(Protocol):
    name: str

    def write(self, target: Path, source_root: Path, names: Sequence[str]) -> bool:
        """Write ``names`` (relative to ``source_root``) into ``target``.

        Returns False when the backend produced no archive (manual mode).
        """
        ...


def _zipinfo(name: str) -> zipfile.ZipInfo:
    zi = zipfile.ZipInfo(filename=name)
    zi.date_time = (1980, 1, 1, 0, 0, 0)
    zi.external_attr = 0o644 << 16
    return zi


def zip_bytes(source_root: Path, names: Sequence[str], *, compression_level: int = 9) -> bytes:
    """Deterministic in-memory zip of ``names`` (fixed timestamps, given order)."""

    buf = io.BytesIO()
    with zipfile.ZipFile(buf, mode="w", compression=zipfile.ZIP_DEFLATED, compresslevel=compression_level) as zf:
        for name in names:
            zf.writestr(_zipinfo(name), (source_root / name).read_bytes())
    return buf.getvalue()


class ZipfileEncoder:
    name = "zipfile"

    def __init__(self, *, compression_level: int = 9) -> None:
        self.compression_level = compression_level

    def write(self, target: Path, source_root: Path, names: Sequence[str]) -> bool:
        try:
            with zipfile.ZipFile(
                target, mode="w", compression=zipfile.ZIP_DEFLATED, compresslevel=self.compression_level
            ) as zf:
                for name in names:
                    zf.write(source_root / name, arcname=name)
        except (OSError, zipfile.BadZipFile, RuntimeError) as e:
            raise PackagingError(f"zipfile encoder failed: {e}", stage="archive") from e
        return True


class ShellZipEncoder:
    """The platform ``zip`` utility, or PowerShell ``Compress-Archive`` on Windows."""

    def __init__(self, argv0: str, *, powershell: bool = False) -> None:
        self.argv0 = argv0
        self.powershell = powershell
        self.name = "powershell" if powershell else "zip"

    def _argv(self, target: Path, names: Sequence[str]) -> list[str]:
        if self.powershell:
            paths = ",".join(f"'{n}'" for n in names)
            cmd = f"Compress-Archive -Path {paths} -DestinationPath '{target}' -Force"
            return [self.argv0, "-NoProfile", "-Command", cmd]
        return [self.argv0, "-q", "-X", str(target), "--", *names]

    def write(self, target: Path, source_root: Path, names: Sequence[str]) -> bool:
        try:
            cp = subprocess.run(self._argv(target, names), cwd=source_root, capture_output=True, text=True)
        except OSError as e:
            raise PackagingError(f"{self.name} encoder failed to start: {e}", stage="archive") from e
        if cp.returncode != 0:
            detail = (cp.stderr or cp.stdout or "").strip()
            raise PackagingError(f"{self.name} exited with {cp.returncode}: {detail}", stage="archive")
        if not target.exists():
            raise PackagingError(f"{self.name} reported success but produced no archive", stage="archive")
        return True


class ManualInstructionsEncoder:
    """No archiver available: tell the operator what to zip and where."""

    name = "manual"

    def __init__(self, diag: Diagnostics | None = None) -> None:
        self.diag = diag or Diagnostics("build-archive")

    def write(self, target: Path, source_root: Path, names: Sequence[str]) -> bool:
        self.diag.info("Please manually create a zip file with these files:")
        for name in names:
            self.diag.info(f"  - {name}")
        self.diag.info(f"Save as: {target}")
        return False


def _has_zlib() -> bool:
    return importlib.util.find_spec("zlib") is not None


def probe_archive_encoder(
    *,
    compression_level: int = 9,
    diag: Diagnostics | None = None,
    has_zlib: Callable[[], bool] = _has_zlib,
    which: Callable[[str], str | None] = shutil.which,
    platform: str | None = None,
) -> ArchiveEncoder:
    plat = platform if platform is not None else sys.platform
    if has_zlib():
        return ZipfileEncoder(compression_level=compression_level)

    if diag is not None:
        diag.note("zlib not available, falling back to the system archiver")
    zip_exe = which("zip")
    if zip_exe:
        return ShellZipEncoder(zip_exe)
    if plat == "win32":
        ps = which("powershell") or which("pwsh")
        if ps:
            return ShellZipEncoder(ps, powershell=True)
    return ManualInstructionsEncoder(diag)
