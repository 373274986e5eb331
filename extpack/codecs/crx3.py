"""CRX3 signed package encoder.

Layout::

    "Cr24" | le32(3) | le32(len(header)) | header | zip

``header`` is a serialized ``crx_file.CrxFileHeader`` (see ``crx3.proto``)
carrying one ``sha256_with_rsa`` proof and ``signed_header_data``, itself a
serialized ``SignedData`` holding the 16-byte crx id. The signature is RSA
PKCS#1 v1.5 over SHA-256 of::

    "CRX3 SignedData\\x00" | le32(len(signed_header_data)) | signed_header_data | zip
"""

from __future__ import annotations

import hashlib
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol, Sequence

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from google.protobuf.message import DecodeError

from extpack.codecs import crx3_pb2
from extpack.codecs.zip import zip_bytes
from extpack.core.errors import PackagingError


CRX_MAGIC = b"Cr24"
CRX_VERSION = 3
SIGNATURE_CONTEXT = b"CRX3 SignedData\x00"


class PackageSigner(Protocol):
    name: str

    def sign(self, source_root: Path, names: Sequence[str], private_key: Any) -> bytes:
        """Return the signed package bytes for ``names`` under ``source_root``."""
        ...


def crx_id_bytes(spki_der: bytes) -> bytes:
    return hashlib.sha256(spki_der).digest()[:16]


def _signed_payload(signed_header_data: bytes, archive: bytes) -> bytes:
    return SIGNATURE_CONTEXT + struct.pack("<I", len(signed_header_data)) + signed_header_data + archive


def encode_crx3(archive: bytes, private_key: Any) -> bytes:
    if not isinstance(private_key, rsa.RSAPrivateKey):
        raise PackagingError("CRX3 signing requires an RSA private key", stage="sign")
    spki = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    signed_header_data = crx3_pb2.SignedData(crx_id=crx_id_bytes(spki)).SerializeToString()
    try:
        signature = private_key.sign(_signed_payload(signed_header_data, archive), padding.PKCS1v15(), hashes.SHA256())
    except (ValueError, UnsupportedAlgorithm) as e:
        raise PackagingError(f"RSA signing failed: {e}", stage="sign") from e

    header = crx3_pb2.CrxFileHeader(signed_header_data=signed_header_data)
    header.sha256_with_rsa.add(public_key=spki, signature=signature)
    header_bytes = header.SerializeToString()
    return CRX_MAGIC + struct.pack("<II", CRX_VERSION, len(header_bytes)) + header_bytes + archive


@dataclass(frozen=True)
class Crx3Contents:
    public_key_der: bytes
    signature: bytes
    crx_id: bytes
    archive: bytes


def decode_crx3(data: bytes) -> Crx3Contents:
    """Parse a CRX3 file and verify its RSA proof against the embedded key."""

    if len(data) < 12 or data[:4] != CRX_MAGIC:
        raise PackagingError("not a CRX file (bad magic)", stage="verify")
    version, header_len = struct.unpack("<II", data[4:12])
    if version != CRX_VERSION:
        raise PackagingError(f"unsupported CRX version {version}", stage="verify")
    header_bytes = data[12 : 12 + header_len]
    if len(header_bytes) != header_len:
        raise PackagingError("truncated CRX header", stage="verify")
    archive = data[12 + header_len :]

    header = crx3_pb2.CrxFileHeader()
    signed = crx3_pb2.SignedData()
    try:
        header.ParseFromString(header_bytes)
        signed.ParseFromString(header.signed_header_data)
    except DecodeError as e:
        raise PackagingError(f"malformed CRX header: {e}", stage="verify") from e
    if len(header.sha256_with_rsa) != 1 or not header.HasField("signed_header_data"):
        raise PackagingError("CRX header must carry exactly one RSA proof and one signed_header_data", stage="verify")
    proof = header.sha256_with_rsa[0]
    if signed.crx_id != crx_id_bytes(proof.public_key):
        raise PackagingError("CRX id does not match the embedded public key", stage="verify")

    try:
        pub = serialization.load_der_public_key(proof.public_key)
        pub.verify(
            proof.signature,
            _signed_payload(header.signed_header_data, archive),
            padding.PKCS1v15(),
            hashes.SHA256(),
        )
    except InvalidSignature:
        raise PackagingError("CRX signature does not verify", stage="verify") from None
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise PackagingError(f"CRX public key unusable: {e}", stage="verify") from e
    return Crx3Contents(
        public_key_der=proof.public_key,
        signature=proof.signature,
        crx_id=signed.crx_id,
        archive=archive,
    )


class Crx3Signer:
    name = "crx3"

    def __init__(self, *, compression_level: int = 9) -> None:
        self.compression_level = compression_level

    def sign(self, source_root: Path, names: Sequence[str], private_key: Any) -> bytes:
        try:
            archive = zip_bytes(source_root, names, compression_level=self.compression_level)
        except OSError as e:
            raise PackagingError(f"cannot read staged file: {e}", stage="sign") from e
        return encode_crx3(archive, private_key)
