"""Persisted pipeline stage marker.

Stages: unversioned -> bumped -> packaged/archived -> published.

The marker records which version the last bump produced and which builds
have completed for it. Builders refuse to run unless the primary manifest
still carries the bumped version; publish refuses to run until at least one
artifact exists for that version.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from pathlib import Path

from extpack.core.config import ReleaseConfig
from extpack.core.errors import ConfigError, PipelineOrderError
from extpack.core.fsio import atomic_write_bytes, render_canonical_json
from extpack.core.time import utc_timestamp_iso_ms_z


MARKER_FORMAT = "extpack-pipeline"
MARKER_FORMAT_VERSION = 1

UNVERSIONED = "unversioned"
BUMPED = "bumped"
PACKAGED = "packaged"
ARCHIVED = "archived"
PUBLISHED = "published"

BUILD_STAGES = (PACKAGED, ARCHIVED)
_STAGES = frozenset({UNVERSIONED, BUMPED, PACKAGED, ARCHIVED, PUBLISHED})


@dataclass(frozen=True)
class PipelineState:
    stage: str = UNVERSIONED
    release_version: str | None = None
    built: tuple[str, ...] = ()
    artifacts: dict[str, str] = field(default_factory=dict)
    extension_id: str | None = None
    updated_at: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "format": MARKER_FORMAT,
            "format_version": MARKER_FORMAT_VERSION,
            "stage": self.stage,
            "release_version": self.release_version,
            "built": list(self.built),
            "artifacts": dict(self.artifacts),
            "extension_id": self.extension_id,
            "updated_at": self.updated_at,
        }


def _state_from_obj(obj: object, *, source: str) -> PipelineState:
    if not isinstance(obj, dict):
        raise ConfigError(f"{source}: pipeline marker must be a JSON object", stage="pipeline")
    if obj.get("format") != MARKER_FORMAT or obj.get("format_version") != MARKER_FORMAT_VERSION:
        raise ConfigError(f"{source}: unsupported pipeline marker format", stage="pipeline")
    stage = obj.get("stage")
    if stage not in _STAGES:
        raise ConfigError(f"{source}: unknown stage {stage!r}", stage="pipeline")
    built = obj.get("built") or []
    artifacts = obj.get("artifacts") or {}
    if not isinstance(built, list) or any(b not in BUILD_STAGES for b in built):
        raise ConfigError(f"{source}: invalid built list", stage="pipeline")
    if not isinstance(artifacts, dict):
        raise ConfigError(f"{source}: artifacts must be an object", stage="pipeline")
    return PipelineState(
        stage=stage,
        release_version=obj.get("release_version"),
        built=tuple(built),
        artifacts={str(k): str(v) for k, v in artifacts.items()},
        extension_id=obj.get("extension_id"),
        updated_at=obj.get("updated_at"),
    )


class PipelineMarker:
    def __init__(self, config: ReleaseConfig) -> None:
        self.config = config

    @property
    def path(self) -> Path:
        return self.config.marker_path

    def load(self) -> PipelineState:
        if not self.path.exists():
            return PipelineState()
        try:
            obj = json.loads(self.path.read_text(encoding="utf-8", errors="strict"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ConfigError(f"cannot read pipeline marker {self.path}: {e}", stage="pipeline") from e
        return _state_from_obj(obj, source=self.config.marker_rel)

    def _save(self, state: PipelineState) -> PipelineState:
        state = replace(state, updated_at=utc_timestamp_iso_ms_z())
        atomic_write_bytes(self.path, render_canonical_json(state.to_dict()), stage="pipeline")
        return state

    def record_bump(self, version: str) -> PipelineState:
        return self._save(PipelineState(stage=BUMPED, release_version=version))

    def require_buildable(self, current_version: str) -> PipelineState:
        state = self.load()
        if state.stage == UNVERSIONED:
            raise PipelineOrderError("no version bump recorded; run 'bump' first", stage="pipeline")
        if state.stage == PUBLISHED:
            raise PipelineOrderError(
                f"version {state.release_version} is already published; run 'bump' before building again",
                stage="pipeline",
            )
        if state.release_version != current_version:
            raise PipelineOrderError(
                f"manifest version {current_version} does not match the last bump ({state.release_version}); run 'bump' first",
                stage="pipeline",
            )
        return state

    def record_build(
        self,
        kind: str,
        version: str,
        *,
        artifact: str | None = None,
        extension_id: str | None = None,
    ) -> PipelineState:
        if kind not in BUILD_STAGES:
            raise ValueError(f"unknown build stage: {kind}")
        state = self.load()
        if state.release_version != version or state.stage == PUBLISHED:
            # Forced build outside the recorded cycle starts a fresh one for this version.
            state = PipelineState(stage=BUMPED, release_version=version)
        built = tuple(sorted(set(state.built) | {kind}))
        artifacts = dict(state.artifacts)
        if artifact is not None:
            artifacts[kind] = artifact
        return self._save(
            replace(
                state,
                stage=kind,
                built=built,
                artifacts=artifacts,
                extension_id=extension_id or state.extension_id,
            )
        )

    def require_publishable(self, current_version: str) -> PipelineState:
        state = self.load()
        if state.release_version != current_version or not state.built:
            raise PipelineOrderError(
                f"no build recorded for version {current_version}; run 'build-package' or 'build-archive' first",
                stage="pipeline",
            )
        return state

    def record_publish(self, version: str) -> PipelineState:
        state = self.load()
        if state.release_version != version:
            state = PipelineState(release_version=version)
        return self._save(replace(state, stage=PUBLISHED))
