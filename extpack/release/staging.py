from __future__ import annotations

import contextlib
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Iterator

from extpack.core.config import ReleaseConfig
from extpack.core.diag import Diagnostics
from extpack.core.errors import ConfigError, ReleaseIOError
from extpack.core.jail import check_payload_name, resolve_within


@dataclass
class StagingArea:
    root: Path
    copied: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


def _remove_tree(path: Path) -> None:
    if path.is_symlink():
        raise ReleaseIOError(f"refusing to delete symlink path: {path}", stage="stage")
    if not path.exists():
        return
    try:
        shutil.rmtree(path)
    except OSError as e:
        raise ReleaseIOError(f"cannot remove staging directory {path}: {e}", stage="stage") from e


class PayloadStager:
    """Fresh, isolated copy of the payload files for one build."""

    def __init__(self, config: ReleaseConfig, *, diag: Diagnostics | None = None) -> None:
        self.config = config
        self.diag = diag or Diagnostics("stage")

    def stage(self, source_dir: Path, file_set: Iterable[str]) -> StagingArea:
        root = self.config.staging_dir
        _remove_tree(root)
        try:
            root.mkdir(parents=True)
        except OSError as e:
            raise ReleaseIOError(f"cannot create staging directory {root}: {e}", stage="stage") from e

        area = StagingArea(root=root)
        for raw in file_set:
            try:
                name = check_payload_name(raw)
                src = resolve_within(source_dir, name)
            except ValueError as e:
                raise ConfigError(f"invalid payload file name {raw!r}: {e}", stage="stage") from e

            if not src.is_file():
                self.diag.warning(f"{name} not found, skipping")
                area.skipped.append(name)
                continue
            dst = root / name
            try:
                dst.parent.mkdir(parents=True, exist_ok=True)
                shutil.copyfile(src, dst)
            except OSError as e:
                raise ReleaseIOError(f"cannot copy {name} into staging: {e}", stage="stage") from e
            area.copied.append(name)
        return area

    def release(self, area: StagingArea) -> None:
        _remove_tree(area.root)

    @contextlib.contextmanager
    def staged(self, source_dir: Path, file_set: Iterable[str]) -> Iterator[StagingArea]:
        """Stage for the duration of the block; the staging directory is always removed."""

        area = StagingArea(root=self.config.staging_dir)
        try:
            area = self.stage(source_dir, file_set)
            yield area
        finally:
            self.release(area)
