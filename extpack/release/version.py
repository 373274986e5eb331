from __future__ import annotations

import re
from dataclasses import dataclass, field

from extpack.core.config import ReleaseConfig
from extpack.core.diag import Diagnostics
from extpack.core.errors import ConfigError
from extpack.core.fsio import write_all_or_nothing
from extpack.core.jail import safe_relpath
from extpack.core.time import Clock, utc_now, utc_timestamp_iso_ms_z
from extpack.release.descriptors import (
    PRIMARY_MANIFEST,
    UPDATE_DESCRIPTOR,
    DescriptorRecord,
    apply_release_fields,
    descriptor_paths,
    load_descriptor,
    load_tracked_descriptors,
)


BUMP_KINDS = ("patch", "minor", "major")

_VERSION_RE = re.compile(r"([0-9]+)\.([0-9]+)\.([0-9]+)")


@dataclass(frozen=True, order=True)
class SemanticVersion:
    major: int
    minor: int
    patch: int

    @classmethod
    def parse(cls, raw: object) -> "SemanticVersion":
        if not isinstance(raw, str):
            raise ConfigError(f"version must be a string, got {type(raw).__name__}", stage="bump")
        m = _VERSION_RE.fullmatch(raw)
        if m is None:
            raise ConfigError(f"version {raw!r} is not MAJOR.MINOR.PATCH", stage="bump")
        return cls(int(m.group(1)), int(m.group(2)), int(m.group(3)))

    def bump(self, kind: str) -> "SemanticVersion":
        if kind == "major":
            return SemanticVersion(self.major + 1, 0, 0)
        if kind == "minor":
            return SemanticVersion(self.major, self.minor + 1, 0)
        if kind == "patch":
            return SemanticVersion(self.major, self.minor, self.patch + 1)
        raise ConfigError(f"unknown bump kind {kind!r} (expected one of: {', '.join(BUMP_KINDS)})", stage="bump")

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


def bump_version(version: str, kind: str) -> str:
    """``bump_version("1.2.3", "minor") == "1.3.0"``."""

    return str(SemanticVersion.parse(version).bump(kind))


@dataclass(frozen=True)
class BumpResult:
    old_version: str
    new_version: str
    updated: list[DescriptorRecord] = field(default_factory=list)


def read_current_version(config: ReleaseConfig, *, stage: str = "bump") -> SemanticVersion:
    """Current version from the primary manifest (the source of truth)."""

    primary = load_descriptor(PRIMARY_MANIFEST, config.primary_manifest_path, stage=stage)
    return SemanticVersion.parse(primary.version)


class VersionCoordinator:
    def __init__(
        self,
        config: ReleaseConfig,
        *,
        diag: Diagnostics | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self.config = config
        self.diag = diag or Diagnostics("bump")
        self._clock = clock

    def bump(self, kind: str) -> BumpResult:
        if kind not in BUMP_KINDS:
            raise ConfigError(f"unknown bump kind {kind!r} (expected one of: {', '.join(BUMP_KINDS)})", stage="bump")

        records = load_tracked_descriptors(self.config, stage="bump")
        primary = records[0]
        old = SemanticVersion.parse(primary.version)
        new = str(old.bump(kind))

        present = {r.kind for r in records}
        for k, path in descriptor_paths(self.config):
            if k not in present:
                self.diag.note(f"{safe_relpath(self.config.base_dir, path)} not found, skipping")

        release_date = utc_timestamp_iso_ms_z(self._clock())
        for record in records:
            if record.kind == UPDATE_DESCRIPTOR:
                apply_release_fields(record.data, version=new, release_date=release_date)
            else:
                record.data["version"] = new

        # Every record is rendered before the first write.
        writes = [(r.path, r.render()) for r in records]
        write_all_or_nothing(writes, stage="bump")

        for record in records:
            self.diag.info(f"Updated {safe_relpath(self.config.base_dir, record.path)}: {old} -> {new}")
        return BumpResult(old_version=str(old), new_version=new, updated=records)
