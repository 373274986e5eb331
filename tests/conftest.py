from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest


REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from extpack.core.config import DEFAULT_PAYLOAD_FILES, ReleaseConfig, load_config


def write_json(path: Path, obj: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(obj, indent=2) + "\n", encoding="utf-8")


def read_json(path: Path) -> dict:
    return json.loads(path.read_text(encoding="utf-8"))


def populate_extension_repo(root: Path, *, version: str = "1.2.3", skip: tuple[str, ...] = ()) -> Path:
    """Lay out a minimal extension repository at ``root``."""

    write_json(
        root / "manifest.json",
        {"manifest_version": 3, "name": "Roofr Calendar Scraper", "version": version, "permissions": ["storage"]},
    )
    write_json(root / "package.json", {"name": "roofr-calendar-extension", "version": version, "private": True})
    write_json(
        root / "update" / "manifest.json",
        {
            "version": version,
            "release_date": "2024-01-01T00:00:00.000Z",
            "download_url": f"https://github.com/acme/ext/releases/download/v{version}/roofr-calendar-scraper-v{version}.zip",
            "release_notes_url": f"https://github.com/acme/ext/releases/tag/v{version}",
            "homepage_url": "https://github.com/acme/ext",
            "changelog": [{"version": version, "changes": ["Initial release"]}],
        },
    )
    for name in DEFAULT_PAYLOAD_FILES:
        if name == "manifest.json" or name in skip:
            continue
        (root / name).write_text(f"// {name}\n", encoding="utf-8")
    return root


@pytest.fixture
def ext_repo(tmp_path: Path) -> Path:
    return populate_extension_repo(tmp_path / "repo_root_ext")


@pytest.fixture
def config(ext_repo: Path) -> ReleaseConfig:
    return load_config(ext_repo)
