"""Signing key lifecycle and extension identity.

The extension identity is a pure function of the public key, so the private
key at ``config.key_path`` must survive every release. It is created once and
only ever read afterwards.
"""

from __future__ import annotations

import hashlib
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from extpack.core.config import ReleaseConfig
from extpack.core.diag import Diagnostics
from extpack.core.errors import CryptoError
from extpack.core.jail import safe_relpath


RSA_KEY_SIZE = 2048
RSA_PUBLIC_EXPONENT = 65537

ID_ALPHABET = "abcdefghijklmnop"
ID_LENGTH = 32


@dataclass(frozen=True)
class SigningKey:
    path: Path
    pem: bytes  # exact on-disk bytes
    private_key: Any
    created: bool

    def public_der(self) -> bytes:
        return public_key_der(self.private_key.public_key())


def public_key_der(public_key: Any) -> bytes:
    """DER-encoded SubjectPublicKeyInfo."""

    return public_key.public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def extension_id_from_der(spki_der: bytes) -> str:
    """Browser extension id: sha256(SPKI)[:16], one a-p letter per nibble."""

    digest = hashlib.sha256(spki_der).digest()[: ID_LENGTH // 2]
    return "".join(ID_ALPHABET[b >> 4] + ID_ALPHABET[b & 0x0F] for b in digest)


def extension_id(public_key: Any) -> str:
    return extension_id_from_der(public_key_der(public_key))


def generate_private_key_pem() -> bytes:
    """New RSA-2048 private key as PKCS#1 PEM (``BEGIN RSA PRIVATE KEY``)."""

    try:
        key = rsa.generate_private_key(public_exponent=RSA_PUBLIC_EXPONENT, key_size=RSA_KEY_SIZE)
        return key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.TraditionalOpenSSL,
            encryption_algorithm=serialization.NoEncryption(),
        )
    except (ValueError, UnsupportedAlgorithm) as e:
        raise CryptoError(f"RSA key generation failed: {e}", stage="keygen") from e


def parse_private_key_pem(pem: bytes, *, source: Path) -> Any:
    try:
        key = serialization.load_pem_private_key(pem, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise CryptoError(f"cannot load private key {source}: {e}", stage="key") from e
    if not isinstance(key, rsa.RSAPrivateKey):
        raise CryptoError(f"private key {source} is not an RSA key", stage="key")
    return key


class KeyLifecycleManager:
    def __init__(self, config: ReleaseConfig, *, diag: Diagnostics | None = None) -> None:
        self.config = config
        self.diag = diag or Diagnostics("key")

    @property
    def key_path(self) -> Path:
        return self.config.key_path

    def load_key(self) -> SigningKey:
        """Load the persisted key; never creates one."""

        path = self.key_path
        if not path.exists():
            raise CryptoError(f"signing key not found: {path}", stage="key")
        try:
            pem = path.read_bytes()
        except OSError as e:
            raise CryptoError(f"cannot read signing key {path}: {e}", stage="key") from e
        return SigningKey(path=path, pem=pem, private_key=parse_private_key_pem(pem, source=path), created=False)

    def acquire_key(self) -> SigningKey:
        """Return the persisted key, creating it only when none exists."""

        if self.key_path.exists():
            self.diag.info("Using existing private key...")
            return self.load_key()

        self.diag.info("Generating new private key...")
        pem = generate_private_key_pem()
        self._persist_new(pem)
        rel = safe_relpath(self.config.base_dir, self.key_path)
        self.diag.info(f"Private key saved to: {rel}")
        self.diag.warning(f"Keep {rel} safe and secret!")
        self.diag.warning(
            "The same key is required to sign every future update; installed clients will not accept updates signed with any other key."
        )
        return SigningKey(
            path=self.key_path,
            pem=pem,
            private_key=parse_private_key_pem(pem, source=self.key_path),
            created=True,
        )

    def _persist_new(self, pem: bytes) -> None:
        path = self.key_path
        path.parent.mkdir(parents=True, exist_ok=True)
        # O_EXCL: an existing key is never overwritten, even if it appeared after the check above.
        try:
            fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
        except FileExistsError as e:
            raise CryptoError(f"signing key appeared concurrently, refusing to overwrite: {path}", stage="keygen") from e
        except OSError as e:
            raise CryptoError(f"cannot create signing key {path}: {e}", stage="keygen") from e
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(pem)
                f.flush()
                os.fsync(f.fileno())
        except OSError as e:
            path.unlink(missing_ok=True)
            raise CryptoError(f"cannot write signing key {path}: {e}", stage="keygen") from e
