"""Update descriptor publishing.

Only the version-dependent fields of ``update/manifest.json`` are rewritten;
changelog entries and any other field are the operator's responsibility and
pass through untouched. When a signing key exists, the Chromium autoupdate
document (``update/updates.xml``) is rendered alongside it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from xml.sax.saxutils import quoteattr

from extpack.core.config import ReleaseConfig
from extpack.core.diag import Diagnostics
from extpack.core.errors import ConfigError
from extpack.core.fsio import write_all_or_nothing
from extpack.core.jail import safe_relpath
from extpack.core.time import Clock, utc_now, utc_timestamp_iso_ms_z
from extpack.release.descriptors import UPDATE_DESCRIPTOR, apply_release_fields, load_descriptor
from extpack.release.keys import KeyLifecycleManager, extension_id_from_der
from extpack.release.version import read_current_version


def render_update_xml(*, app_id: str, codebase: str, version: str) -> bytes:
    lines = [
        "<?xml version='1.0' encoding='UTF-8'?>",
        "<gupdate xmlns='http://www.google.com/update2/response' protocol='2.0'>",
        f"  <app appid={quoteattr(app_id)}>",
        f"    <updatecheck codebase={quoteattr(codebase)} version={quoteattr(version)} />",
        "  </app>",
        "</gupdate>",
    ]
    return ("\n".join(lines) + "\n").encode("utf-8")


@dataclass(frozen=True)
class PublishResult:
    version: str
    changed_fields: list[str] = field(default_factory=list)
    extension_id: str | None = None
    update_xml_written: bool = False


class UpdateDescriptorPublisher:
    def __init__(
        self,
        config: ReleaseConfig,
        *,
        keys: KeyLifecycleManager | None = None,
        diag: Diagnostics | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self.config = config
        self.diag = diag or Diagnostics("publish")
        self.keys = keys or KeyLifecycleManager(config, diag=self.diag)
        self._clock = clock

    def publish(self) -> PublishResult:
        version = str(read_current_version(self.config, stage="publish"))
        path = self.config.update_descriptor_path
        if not path.exists():
            raise ConfigError(f"update descriptor not found: {path}", stage="publish")

        record = load_descriptor(UPDATE_DESCRIPTOR, path, stage="publish")
        changed = apply_release_fields(
            record.data,
            version=version,
            release_date=utc_timestamp_iso_ms_z(self._clock()),
        )
        writes = [(record.path, record.render())]

        ext_id: str | None = None
        xml_path = self.config.update_xml_path
        if not self.config.codebase_url:
            self.diag.note("no codebase_url configured; skipping updates.xml")
        elif not self.keys.key_path.exists():
            self.diag.note("no signing key yet; skipping updates.xml (run 'build-package' first)")
        else:
            ext_id = extension_id_from_der(self.keys.load_key().public_der())
            writes.append((xml_path, render_update_xml(app_id=ext_id, codebase=self.config.codebase_url, version=version)))

        write_all_or_nothing(writes, stage="publish")

        self.diag.info(f"Updated {safe_relpath(self.config.base_dir, path)}: {version}")
        if ext_id is not None:
            self.diag.info(f"Wrote {safe_relpath(self.config.base_dir, xml_path)} for {ext_id}")
        self.diag.note("changelog entries are not generated; review them before deploying")
        return PublishResult(
            version=version,
            changed_fields=changed,
            extension_id=ext_id,
            update_xml_written=ext_id is not None,
        )
