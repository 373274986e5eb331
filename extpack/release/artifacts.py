from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


SIGNED_PACKAGE = "signed-package"
ZIP_ARCHIVE = "zip-archive"


@dataclass(frozen=True)
class ReleaseArtifact:
    kind: str
    path: Path
    size_bytes: int
    sha256: str

    @property
    def size_kb(self) -> str:
        return f"{self.size_bytes / 1024:.2f} KB"
