from __future__ import annotations

import os
from dataclasses import dataclass

from extpack.codecs.zip import ArchiveEncoder, probe_archive_encoder
from extpack.core.config import ReleaseConfig
from extpack.core.diag import Diagnostics
from extpack.core.errors import PackagingError, ReleaseError, ReleaseIOError
from extpack.core.fsio import remove_if_exists
from extpack.core.hash import sha256_file
from extpack.core.jail import safe_relpath
from extpack.release.artifacts import ZIP_ARCHIVE, ReleaseArtifact
from extpack.release.staging import PayloadStager
from extpack.release.version import read_current_version


@dataclass(frozen=True)
class ArchiveResult:
    version: str
    target: str
    encoder: str
    artifact: ReleaseArtifact | None  # None when the encoder only printed manual instructions


class ArchiveBuilder:
    """stage -> encode ``releases/<name>-v<version>.zip`` -> release staging."""

    def __init__(
        self,
        config: ReleaseConfig,
        *,
        encoder: ArchiveEncoder | None = None,
        stager: PayloadStager | None = None,
        diag: Diagnostics | None = None,
    ) -> None:
        self.config = config
        self.diag = diag or Diagnostics("build-archive")
        self.encoder = encoder or probe_archive_encoder(compression_level=config.compression_level, diag=self.diag)
        self.stager = stager or PayloadStager(config, diag=self.diag)

    def build(self) -> ArchiveResult:
        version = str(read_current_version(self.config, stage="build-archive"))
        self.diag.info(f"Building release v{version}...")
        if self.encoder.name != "zipfile":
            self.diag.note(f"using {self.encoder.name} archive backend")

        target = self.config.archive_path(version)
        # Encoders write a sibling file that is renamed into place only on success.
        partial = target.with_name(f".{target.stem}.partial.zip")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ReleaseIOError(f"cannot create releases directory: {e}", stage="archive") from e
        remove_if_exists(target, stage="archive")
        remove_if_exists(partial, stage="archive")

        produced = False
        try:
            with self.stager.staged(self.config.base_dir, self.config.payload_files) as area:
                if not area.copied:
                    raise PackagingError("no payload files were staged", stage="stage")
                try:
                    produced = self.encoder.write(partial, area.root, list(area.copied))
                except ReleaseError:
                    raise
                except Exception as e:
                    raise PackagingError(f"{self.encoder.name} encoder failed: {e}", stage="archive") from e
                if produced:
                    if not partial.is_file():
                        raise PackagingError(f"{self.encoder.name} produced no archive", stage="archive")
                    try:
                        os.replace(partial, target)
                    except OSError as e:
                        raise ReleaseIOError(f"cannot move archive into place: {e}", stage="archive") from e
        except ReleaseError:
            partial.unlink(missing_ok=True)
            target.unlink(missing_ok=True)
            raise

        rel = safe_relpath(self.config.base_dir, target)
        if not produced:
            self.diag.warning(f"no archive was produced; create {rel} manually")
            return ArchiveResult(version=version, target=rel, encoder=self.encoder.name, artifact=None)

        artifact = ReleaseArtifact(
            kind=ZIP_ARCHIVE,
            path=target,
            size_bytes=target.stat().st_size,
            sha256=sha256_file(target),
        )
        self.diag.info(f"Created: {rel}")
        self.diag.info(f"Size: {artifact.size_kb}")
        return ArchiveResult(version=version, target=rel, encoder=self.encoder.name, artifact=artifact)
