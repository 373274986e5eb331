"""Update descriptor publishing tests."""
from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from xml.etree import ElementTree

import pytest

from conftest import read_json, write_json

from extpack.core.config import ReleaseConfig
from extpack.core.diag import Diagnostics
from extpack.core.errors import ConfigError
from extpack.release.keys import KeyLifecycleManager, extension_id_from_der
from extpack.release.publish import UpdateDescriptorPublisher, render_update_xml


FIXED_NOW = datetime(2025, 6, 1, 12, 0, 0, 5000, tzinfo=timezone.utc)

GUPDATE_NS = "{http://www.google.com/update2/response}"


def _publisher(config: ReleaseConfig, diag: Diagnostics | None = None) -> UpdateDescriptorPublisher:
    return UpdateDescriptorPublisher(config, diag=diag or Diagnostics("publish"), clock=lambda: FIXED_NOW)


def test_publish_rewrites_version_dependent_fields(config: ReleaseConfig, ext_repo: Path) -> None:
    write_json(ext_repo / "manifest.json", {"name": "x", "version": "1.3.0"})
    before = read_json(ext_repo / "update" / "manifest.json")

    result = _publisher(config).publish()
    after = read_json(ext_repo / "update" / "manifest.json")

    assert result.version == "1.3.0"
    assert after["version"] == "1.3.0"
    assert after["release_date"] == "2025-06-01T12:00:00.005Z"
    assert after["download_url"].endswith("/v1.3.0/roofr-calendar-scraper-v1.3.0.zip")
    assert after["release_notes_url"].endswith("/tag/v1.3.0")
    assert after["changelog"] == before["changelog"]
    assert after["homepage_url"] == before["homepage_url"]
    assert set(result.changed_fields) == {"version", "release_date", "download_url", "release_notes_url"}


def test_publish_is_idempotent_apart_from_release_date(config: ReleaseConfig, ext_repo: Path) -> None:
    _publisher(config).publish()
    first = (ext_repo / "update" / "manifest.json").read_bytes()
    result = _publisher(config).publish()
    assert (ext_repo / "update" / "manifest.json").read_bytes() == first
    assert result.changed_fields == []


def test_publish_without_descriptor_fails(config: ReleaseConfig, ext_repo: Path) -> None:
    (ext_repo / "update" / "manifest.json").unlink()
    with pytest.raises(ConfigError):
        _publisher(config).publish()


def test_publish_without_key_skips_update_xml(config: ReleaseConfig) -> None:
    diag = Diagnostics("publish")
    result = _publisher(config, diag).publish()
    assert result.update_xml_written is False
    assert not config.update_xml_path.exists()
    assert not config.key_path.exists()
    assert any("no signing key yet" in ln for ln in diag.lines)


def test_publish_with_key_writes_update_xml(config: ReleaseConfig) -> None:
    key = KeyLifecycleManager(config, diag=Diagnostics("key")).acquire_key()
    result = _publisher(config).publish()

    ext_id = extension_id_from_der(key.public_der())
    assert result.update_xml_written is True
    assert result.extension_id == ext_id

    root = ElementTree.fromstring(config.update_xml_path.read_bytes())
    app = root.find(f"{GUPDATE_NS}app")
    assert app is not None and app.get("appid") == ext_id
    check = app.find(f"{GUPDATE_NS}updatecheck")
    assert check is not None
    assert check.get("version") == "1.2.3"
    assert check.get("codebase") == config.codebase_url


def test_publish_without_codebase_url_skips_update_xml(config: ReleaseConfig) -> None:
    KeyLifecycleManager(config, diag=Diagnostics("key")).acquire_key()
    cfg = replace(config, codebase_url=None)
    result = _publisher(cfg).publish()
    assert result.update_xml_written is False
    assert not cfg.update_xml_path.exists()


def test_render_update_xml_escapes_attributes() -> None:
    xml = render_update_xml(app_id="abc", codebase="https://h/x.crx?a=1&b='2'", version="1.0.0")
    root = ElementTree.fromstring(xml)
    check = root.find(f"{GUPDATE_NS}app/{GUPDATE_NS}updatecheck")
    assert check is not None
    assert check.get("codebase") == "https://h/x.crx?a=1&b='2'"
