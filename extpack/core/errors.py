from __future__ import annotations


class ReleaseError(RuntimeError):
    """Base class for pipeline failures.

    ``stage`` names the pipeline step that failed (e.g. "bump", "stage",
    "sign"). The CLI dispatcher maps every ReleaseError to exit code 1.
    """

    kind = "release"

    def __init__(self, message: str, *, stage: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.stage = stage

    def format_human(self) -> str:
        if self.stage:
            return f"{self.kind} error ({self.stage}): {self.message}"
        return f"{self.kind} error: {self.message}"


class ConfigError(ReleaseError):
    """Malformed or unreadable descriptor, version string or config file."""

    kind = "config"


class ReleaseIOError(ReleaseError):
    """Copy, write or remove failure on the filesystem."""

    kind = "io"


class CryptoError(ReleaseError):
    """Signing key generation, encoding or loading failure."""

    kind = "crypto"


class PackagingError(ReleaseError):
    """Archive encoder, package encoder or signer failure."""

    kind = "packaging"


class PipelineOrderError(ReleaseError):
    """A command was invoked out of the bump -> build -> publish order."""

    kind = "order"
