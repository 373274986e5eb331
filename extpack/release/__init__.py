"""Release pipeline components.

bump -> build-package / build-archive -> publish; none of them calls another.
"""

from extpack.release.archive import ArchiveBuilder, ArchiveResult
from extpack.release.artifacts import ReleaseArtifact
from extpack.release.keys import KeyLifecycleManager, SigningKey, extension_id
from extpack.release.package import PackageResult, SignedPackageBuilder
from extpack.release.pipeline import PipelineMarker, PipelineState
from extpack.release.publish import PublishResult, UpdateDescriptorPublisher
from extpack.release.staging import PayloadStager, StagingArea
from extpack.release.version import BumpResult, SemanticVersion, VersionCoordinator, bump_version

__all__ = [
    "ArchiveBuilder",
    "ArchiveResult",
    "BumpResult",
    "KeyLifecycleManager",
    "PackageResult",
    "PayloadStager",
    "PipelineMarker",
    "PipelineState",
    "PublishResult",
    "ReleaseArtifact",
    "SemanticVersion",
    "SignedPackageBuilder",
    "SigningKey",
    "StagingArea",
    "UpdateDescriptorPublisher",
    "VersionCoordinator",
    "bump_version",
    "extension_id",
]
