"""Lowest-level extpack utilities.

Dependency direction rules:
- extpack.core must not import extpack.release.* or extpack.codecs.*
"""

from extpack.core.config import ReleaseConfig, load_config
from extpack.core.diag import Diagnostics
from extpack.core.errors import (
    ConfigError,
    CryptoError,
    PackagingError,
    PipelineOrderError,
    ReleaseError,
    ReleaseIOError,
)
from extpack.core.hash import sha256_bytes, sha256_file

__all__ = [
    "ConfigError",
    "CryptoError",
    "Diagnostics",
    "PackagingError",
    "PipelineOrderError",
    "ReleaseConfig",
    "ReleaseError",
    "ReleaseIOError",
    "load_config",
    "sha256_bytes",
    "sha256_file",
]
