from __future__ import annotations

import tomllib
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from extpack.core.errors import ConfigError
from extpack.core.jail import check_payload_name


CONFIG_FILENAME = "extpack.toml"

DEFAULT_ARTIFACT_NAME = "roofr-calendar-scraper"
DEFAULT_CODEBASE_URL = (
    "https://github.com/atravisjones/roofr-calendar-extension/releases/latest/download/roofr-calendar-scraper.crx"
)
DEFAULT_COMPRESSION_LEVEL = 9

# Order matters: files are staged and archived in this order.
DEFAULT_PAYLOAD_FILES = (
    "manifest.json",
    "service_worker.js",
    "content.js",
    "popup.html",
    "popup.js",
    "options.html",
    "options.js",
    "config.js",
    "themes.js",
    "metadata.json",
)

_ALLOWED_KEYS = frozenset({"artifact_name", "codebase_url", "payload_files", "compression_level"})


@dataclass(frozen=True)
class ReleaseConfig:
    """Paths and names for one repository; every component receives one.

    All paths are fixed relative to ``base_dir``.
    """

    base_dir: Path
    artifact_name: str = DEFAULT_ARTIFACT_NAME
    codebase_url: str | None = DEFAULT_CODEBASE_URL
    payload_files: tuple[str, ...] = DEFAULT_PAYLOAD_FILES
    compression_level: int = DEFAULT_COMPRESSION_LEVEL

    primary_manifest_rel: str = "manifest.json"
    package_metadata_rel: str = "package.json"
    update_descriptor_rel: str = "update/manifest.json"
    update_xml_rel: str = "update/updates.xml"
    key_rel: str = "extension.pem"
    releases_rel: str = "releases"
    staging_rel: str = "releases/temp-extension"
    marker_rel: str = ".extpack/pipeline.json"

    @property
    def primary_manifest_path(self) -> Path:
        return self.base_dir / self.primary_manifest_rel

    @property
    def package_metadata_path(self) -> Path:
        return self.base_dir / self.package_metadata_rel

    @property
    def update_descriptor_path(self) -> Path:
        return self.base_dir / self.update_descriptor_rel

    @property
    def update_xml_path(self) -> Path:
        return self.base_dir / self.update_xml_rel

    @property
    def key_path(self) -> Path:
        return self.base_dir / self.key_rel

    @property
    def releases_dir(self) -> Path:
        return self.base_dir / self.releases_rel

    @property
    def staging_dir(self) -> Path:
        return self.base_dir / self.staging_rel

    @property
    def marker_path(self) -> Path:
        return self.base_dir / self.marker_rel

    @property
    def package_path(self) -> Path:
        # Served from a "latest" channel URL, so the name never carries the version.
        return self.releases_dir / f"{self.artifact_name}.crx"

    def archive_path(self, version: str) -> Path:
        return self.releases_dir / f"{self.artifact_name}-v{version}.zip"


def _parse_overrides(obj: dict[str, Any], *, path: Path) -> dict[str, Any]:
    unknown = sorted(set(obj) - _ALLOWED_KEYS)
    if unknown:
        raise ConfigError(f"{path.name}: unknown keys: {', '.join(unknown)}", stage="config")

    out: dict[str, Any] = {}
    if "artifact_name" in obj:
        name = obj["artifact_name"]
        if not isinstance(name, str) or not name or "/" in name or "\\" in name:
            raise ConfigError(f"{path.name}: artifact_name must be a plain file stem", stage="config")
        out["artifact_name"] = name
    if "codebase_url" in obj:
        url = obj["codebase_url"]
        if not isinstance(url, str):
            raise ConfigError(f"{path.name}: codebase_url must be a string", stage="config")
        out["codebase_url"] = url or None
    if "payload_files" in obj:
        raw = obj["payload_files"]
        if not isinstance(raw, list) or not raw or not all(isinstance(x, str) for x in raw):
            raise ConfigError(f"{path.name}: payload_files must be a non-empty list of strings", stage="config")
        names: list[str] = []
        for i, rel in enumerate(raw):
            try:
                names.append(check_payload_name(rel))
            except ValueError as e:
                raise ConfigError(f"{path.name}: payload_files[{i}] invalid: {e}", stage="config") from e
        if len(set(names)) != len(names):
            raise ConfigError(f"{path.name}: payload_files contains duplicates", stage="config")
        out["payload_files"] = tuple(names)
    if "compression_level" in obj:
        level = obj["compression_level"]
        if isinstance(level, bool) or not isinstance(level, int) or not 0 <= level <= 9:
            raise ConfigError(f"{path.name}: compression_level must be an integer 0..9", stage="config")
        out["compression_level"] = level
    return out


def load_config(repo_root: Path) -> ReleaseConfig:
    """Build the ReleaseConfig for ``repo_root``, applying ``extpack.toml`` if present."""

    base = Path(repo_root).resolve()
    if not base.is_dir():
        raise ConfigError(f"repo root is not a directory: {base}", stage="config")

    cfg = ReleaseConfig(base_dir=base)
    cfg_path = base / CONFIG_FILENAME
    if not cfg_path.exists():
        return cfg

    try:
        obj = tomllib.loads(cfg_path.read_text(encoding="utf-8", errors="strict"))
    except (OSError, UnicodeDecodeError, tomllib.TOMLDecodeError) as e:
        raise ConfigError(f"cannot read {cfg_path.name}: {e}", stage="config") from e
    return replace(cfg, **_parse_overrides(obj, path=cfg_path))
