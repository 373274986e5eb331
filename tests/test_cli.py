"""CLI tests: exit codes, pipeline ordering, --force, output."""
from __future__ import annotations

import json
from pathlib import Path

import pytest

from conftest import read_json

from extpack.cli import main
from extpack.codecs.zip import ZipfileEncoder
from extpack.core.errors import ReleaseIOError
from extpack.release.pipeline import PipelineMarker


def _run(repo: Path, *args: str) -> int:
    return main(["--repo", str(repo), *args])


def test_no_subcommand_returns_1(capsys: pytest.CaptureFixture[str]) -> None:
    assert main([]) == 1
    assert "usage:" in capsys.readouterr().err


def test_bump_prints_new_version(ext_repo: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert _run(ext_repo, "bump", "minor") == 0
    out, err = capsys.readouterr()
    assert out.strip() == "1.3.0"
    assert "[extpack bump] Updated manifest.json: 1.2.3 -> 1.3.0" in err
    assert read_json(ext_repo / "package.json")["version"] == "1.3.0"


def test_bump_defaults_to_patch(ext_repo: Path) -> None:
    assert _run(ext_repo, "bump") == 0
    assert read_json(ext_repo / "manifest.json")["version"] == "1.2.4"


def test_bump_unknown_kind_returns_1(ext_repo: Path, capsys: pytest.CaptureFixture[str]) -> None:
    before = (ext_repo / "manifest.json").read_bytes()
    assert _run(ext_repo, "bump", "huge") == 1
    assert "ERROR: usage: extpack bump" in capsys.readouterr().err
    assert (ext_repo / "manifest.json").read_bytes() == before


def test_bump_malformed_version_returns_1(ext_repo: Path, capsys: pytest.CaptureFixture[str]) -> None:
    (ext_repo / "manifest.json").write_text(json.dumps({"version": "one"}) + "\n", encoding="utf-8")
    assert _run(ext_repo, "bump", "patch") == 1
    assert "ERROR: config error (bump):" in capsys.readouterr().err


def test_build_before_bump_is_refused(ext_repo: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert _run(ext_repo, "build-package") == 1
    err = capsys.readouterr().err
    assert "ERROR: order error (pipeline):" in err
    assert not (ext_repo / "releases").exists()
    assert not (ext_repo / "extension.pem").exists()


def test_publish_before_build_is_refused(ext_repo: Path) -> None:
    before = (ext_repo / "update" / "manifest.json").read_bytes()
    assert _run(ext_repo, "bump") == 0
    after_bump = (ext_repo / "update" / "manifest.json").read_bytes()
    assert after_bump != before
    assert _run(ext_repo, "publish") == 1
    assert (ext_repo / "update" / "manifest.json").read_bytes() == after_bump


def test_force_bypasses_ordering(ext_repo: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert _run(ext_repo, "build-archive", "--force") == 0
    out, err = capsys.readouterr()
    assert "NOTE: --force" in err
    assert "artifact=releases/roofr-calendar-scraper-v1.2.3.zip" in out
    assert (ext_repo / "releases" / "roofr-calendar-scraper-v1.2.3.zip").is_file()


def test_full_release_cycle(ext_repo: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert _run(ext_repo, "bump", "patch") == 0
    assert _run(ext_repo, "build-package") == 0
    out = capsys.readouterr().out
    ext_id_line = [ln for ln in out.splitlines() if ln.startswith("extension_id=")]
    assert len(ext_id_line) == 1
    ext_id = ext_id_line[0].split("=", 1)[1]
    assert len(ext_id) == 32

    assert _run(ext_repo, "build-archive") == 0
    assert (ext_repo / "releases" / "roofr-calendar-scraper-v1.2.4.zip").is_file()
    assert _run(ext_repo, "publish") == 0
    assert read_json(ext_repo / "update" / "manifest.json")["version"] == "1.2.4"
    assert (ext_repo / "update" / "updates.xml").is_file()

    capsys.readouterr()
    assert _run(ext_repo, "status") == 0
    status = capsys.readouterr().out
    assert "version: 1.2.4" in status
    assert "stage: published" in status
    assert f"extension_id: {ext_id}" in status

    # A published version cannot be rebuilt without a new bump.
    assert _run(ext_repo, "build-package") == 1


def test_extension_id_command(ext_repo: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert _run(ext_repo, "extension-id") == 1
    assert "crypto error (key)" in capsys.readouterr().err

    assert _run(ext_repo, "build-package", "--force") == 0
    built = [ln for ln in capsys.readouterr().out.splitlines() if ln.startswith("extension_id=")][0]

    assert _run(ext_repo, "extension-id") == 0
    assert capsys.readouterr().out.strip() == built.split("=", 1)[1]


def test_second_package_build_keeps_key(ext_repo: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert _run(ext_repo, "build-package", "--force") == 0
    first_err = capsys.readouterr().err
    assert "WARNING: Keep extension.pem safe and secret!" in first_err
    pem = (ext_repo / "extension.pem").read_bytes()

    assert _run(ext_repo, "build-package", "--force") == 0
    second_err = capsys.readouterr().err
    assert "WARNING:" not in second_err
    assert (ext_repo / "extension.pem").read_bytes() == pem


def test_missing_repo_returns_1(tmp_path: Path) -> None:
    assert _run(tmp_path / "nope", "status") == 1


def test_about(capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["about"]) == 0
    assert "extpack" in capsys.readouterr().out


def test_bump_survives_pipeline_marker_write_failure(
    ext_repo: Path, capsys: pytest.CaptureFixture[str], monkeypatch: pytest.MonkeyPatch
) -> None:
    def failing_record_bump(self: PipelineMarker, version: str) -> None:
        raise ReleaseIOError("disk full", stage="pipeline")

    monkeypatch.setattr(PipelineMarker, "record_bump", failing_record_bump)
    assert _run(ext_repo, "bump") == 0
    out, err = capsys.readouterr()
    assert out.strip() == "1.2.4"
    assert read_json(ext_repo / "manifest.json")["version"] == "1.2.4"
    assert "WARNING: pipeline marker not updated (io error (pipeline): disk full)" in err


def test_encoder_crash_exits_1_with_packaging_error(
    ext_repo: Path, capsys: pytest.CaptureFixture[str], monkeypatch: pytest.MonkeyPatch
) -> None:
    def crash(self: ZipfileEncoder, target: Path, source_root: Path, names: list[str]) -> bool:
        raise ValueError("bad compression parameter")

    monkeypatch.setattr(ZipfileEncoder, "write", crash)
    assert _run(ext_repo, "build-archive", "--force") == 1
    err = capsys.readouterr().err
    assert "packaging error (archive): zipfile encoder failed: bad compression parameter" in err
    assert not list((ext_repo / "releases").glob("*.zip"))
