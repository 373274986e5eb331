from __future__ import annotations

from dataclasses import dataclass

from extpack.codecs.crx3 import Crx3Signer, PackageSigner, decode_crx3
from extpack.core.config import ReleaseConfig
from extpack.core.diag import Diagnostics
from extpack.core.errors import PackagingError, ReleaseError
from extpack.core.fsio import atomic_write_bytes
from extpack.core.hash import sha256_bytes
from extpack.core.jail import safe_relpath
from extpack.release.artifacts import SIGNED_PACKAGE, ReleaseArtifact
from extpack.release.keys import KeyLifecycleManager, extension_id_from_der
from extpack.release.staging import PayloadStager
from extpack.release.version import read_current_version


@dataclass(frozen=True)
class PackageResult:
    version: str
    artifact: ReleaseArtifact
    extension_id: str
    key_created: bool


class SignedPackageBuilder:
    """acquire key -> stage -> sign -> write ``releases/<name>.crx`` -> release staging."""

    def __init__(
        self,
        config: ReleaseConfig,
        *,
        signer: PackageSigner | None = None,
        keys: KeyLifecycleManager | None = None,
        stager: PayloadStager | None = None,
        diag: Diagnostics | None = None,
    ) -> None:
        self.config = config
        self.diag = diag or Diagnostics("build-package")
        self.signer = signer or Crx3Signer(compression_level=config.compression_level)
        self.keys = keys or KeyLifecycleManager(config, diag=self.diag)
        self.stager = stager or PayloadStager(config, diag=self.diag)

    def build(self) -> PackageResult:
        version = str(read_current_version(self.config, stage="build-package"))
        self.diag.info(f"Building CRX for v{version}...")

        key = self.keys.acquire_key()
        ext_id = extension_id_from_der(key.public_der())
        target = self.config.package_path

        with self.stager.staged(self.config.base_dir, self.config.payload_files) as area:
            if not area.copied:
                raise PackagingError("no payload files were staged", stage="stage")
            try:
                data = self.signer.sign(area.root, list(area.copied), key.private_key)
            except ReleaseError:
                raise
            except Exception as e:
                raise PackagingError(f"{self.signer.name} signer failed: {e}", stage="sign") from e
            if not isinstance(data, (bytes, bytearray)) or not data:
                raise PackagingError(f"{self.signer.name} signer returned no package bytes", stage="sign")
            data = bytes(data)

            if isinstance(self.signer, Crx3Signer):
                # The signed package must verify and carry the identity derived from our key.
                contents = decode_crx3(data)
                if extension_id_from_der(contents.public_key_der) != ext_id:
                    raise PackagingError("signed package identity does not match the signing key", stage="verify")

            atomic_write_bytes(target, data, stage="write")

        artifact = ReleaseArtifact(
            kind=SIGNED_PACKAGE,
            path=target,
            size_bytes=len(data),
            sha256=sha256_bytes(data),
        )
        self.diag.info(f"CRX saved to: {safe_relpath(self.config.base_dir, target)}")
        return PackageResult(version=version, artifact=artifact, extension_id=ext_id, key_created=key.created)
