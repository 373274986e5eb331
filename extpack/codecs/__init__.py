"""Encoder capabilities the release builders orchestrate.

- crx3: PackageSigner producing signed CRX3 packages
- zip: ArchiveEncoder backends with runtime capability probing
"""

from extpack.codecs.crx3 import Crx3Signer, PackageSigner, decode_crx3, encode_crx3
from extpack.codecs.zip import (
    ArchiveEncoder,
    ManualInstructionsEncoder,
    ShellZipEncoder,
    ZipfileEncoder,
    probe_archive_encoder,
)

__all__ = [
    "ArchiveEncoder",
    "Crx3Signer",
    "ManualInstructionsEncoder",
    "PackageSigner",
    "ShellZipEncoder",
    "ZipfileEncoder",
    "decode_crx3",
    "encode_crx3",
    "probe_archive_encoder",
]
