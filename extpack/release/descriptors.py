"""Descriptor records: the JSON documents that carry the release version.

PRIMARY_MANIFEST is the source of truth; PACKAGE_METADATA and
UPDATE_DESCRIPTOR track it and are optional on disk.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from extpack.core.config import ReleaseConfig
from extpack.core.errors import ConfigError
from extpack.core.fsio import render_json_document


PRIMARY_MANIFEST = "primary-manifest"
PACKAGE_METADATA = "package-metadata"
UPDATE_DESCRIPTOR = "update-descriptor"

RELEASE_DATE_FIELD = "release_date"

# Version component of a release URL: "/v1.2.3/" or a trailing "/v1.2.3",
# plus the versioned archive filename "-v1.2.3.zip".
_URL_VERSION_RE = re.compile(r"(?<=/v)[0-9]+\.[0-9]+\.[0-9]+(?=/|$)|(?<=-v)[0-9]+\.[0-9]+\.[0-9]+(?=\.zip(?:$|[?#]))")


@dataclass
class DescriptorRecord:
    kind: str
    path: Path
    data: dict[str, Any]

    @property
    def version(self) -> Any:
        return self.data.get("version")

    def render(self) -> bytes:
        return render_json_document(self.data)


def descriptor_paths(config: ReleaseConfig) -> list[tuple[str, Path]]:
    return [
        (PRIMARY_MANIFEST, config.primary_manifest_path),
        (PACKAGE_METADATA, config.package_metadata_path),
        (UPDATE_DESCRIPTOR, config.update_descriptor_path),
    ]


def load_descriptor(kind: str, path: Path, *, stage: str) -> DescriptorRecord:
    try:
        text = path.read_text(encoding="utf-8", errors="strict")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"cannot read {kind} {path}: {e}", stage=stage) from e
    try:
        obj = json.loads(text)
    except json.JSONDecodeError as e:
        raise ConfigError(f"{kind} {path} is not valid JSON: {e}", stage=stage) from e
    if not isinstance(obj, dict):
        raise ConfigError(f"{kind} {path} must be a JSON object", stage=stage)
    return DescriptorRecord(kind=kind, path=path, data=obj)


def load_tracked_descriptors(config: ReleaseConfig, *, stage: str) -> list[DescriptorRecord]:
    """Load the primary manifest (required) and every optional descriptor present on disk."""

    records: list[DescriptorRecord] = []
    for kind, path in descriptor_paths(config):
        if kind != PRIMARY_MANIFEST and not path.exists():
            continue
        records.append(load_descriptor(kind, path, stage=stage))
    return records


def substitute_url_version(url: str, version: str) -> str:
    """Replace the version component(s) of a release URL, keeping every other character."""

    return _URL_VERSION_RE.sub(version, url)


def apply_release_fields(data: dict[str, Any], *, version: str, release_date: str) -> list[str]:
    """Rewrite the version-dependent fields of an update descriptor in place.

    Returns the names of the fields whose values changed.
    """

    changed: list[str] = []
    if data.get("version") != version:
        changed.append("version")
    data["version"] = version
    if data.get(RELEASE_DATE_FIELD) != release_date:
        changed.append(RELEASE_DATE_FIELD)
    data[RELEASE_DATE_FIELD] = release_date

    for key, value in list(data.items()):
        if not key.endswith("_url") or not isinstance(value, str):
            continue
        new_value = substitute_url_version(value, version)
        if new_value != value:
            data[key] = new_value
            changed.append(key)
    return changed
