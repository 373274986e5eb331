#!/usr/bin/env python3
"""extpack CLI: release packaging for the browser extension.

This is the installable CLI entrypoint (console_scripts).

Subcommands:
- extpack bump <patch|minor|major>  → Bump the version in every descriptor
- extpack build-package             → Build the signed package (releases/<name>.crx)
- extpack build-archive             → Build the versioned zip (releases/<name>-v<version>.zip)
- extpack publish                   → Rewrite the update descriptor for the current version
- extpack extension-id              → Print the extension id derived from the signing key
- extpack status                    → Show the pipeline stage and current version
- extpack about                     → Print package identity info

Exit codes:
- 0: success
- 1: any pipeline failure (config, io, crypto, packaging, out-of-order)
- 2: command line usage error
"""

from __future__ import annotations

import argparse
import sys
from importlib.metadata import PackageNotFoundError, metadata, version
from pathlib import Path

from extpack.core.config import ReleaseConfig, load_config
from extpack.core.diag import Diagnostics
from extpack.core.errors import ReleaseError
from extpack.core.jail import safe_relpath


ABOUT_REPO_URL = "https://github.com/atravisjones/roofr-calendar-extension"


def _fail(diag: Diagnostics, err: ReleaseError) -> int:
    diag.error(err.format_human())
    return 1


def _config(args: argparse.Namespace) -> ReleaseConfig:
    return load_config(Path(str(args.repo)))


# ---------------------------------------------------------------------------
# bump subcommand
# ---------------------------------------------------------------------------

def cmd_bump(args: argparse.Namespace) -> int:
    from extpack.release.pipeline import PipelineMarker
    from extpack.release.version import BUMP_KINDS, VersionCoordinator

    diag = Diagnostics("bump")
    kind = str(args.kind)
    if kind not in BUMP_KINDS:
        diag.error(f"usage: extpack bump [{'|'.join(BUMP_KINDS)}] (got {kind!r})")
        return 1
    try:
        config = _config(args)
        result = VersionCoordinator(config, diag=diag).bump(kind)
    except ReleaseError as e:
        return _fail(diag, e)

    # The descriptors are already committed; a marker failure must not report the bump as failed.
    try:
        PipelineMarker(config).record_bump(result.new_version)
    except ReleaseError as e:
        diag.warning(f"pipeline marker not updated ({e.format_human()}); builds will need --force")

    diag.info(f"Version bumped: {result.old_version} -> {result.new_version}")
    diag.info("Next steps:")
    diag.info("1. Update the changelog in update/manifest.json")
    diag.info("2. Commit and push changes")
    diag.info(f"3. Create tag: git tag v{result.new_version} && git push --tags")
    print(result.new_version)
    return 0


# ---------------------------------------------------------------------------
# build subcommands
# ---------------------------------------------------------------------------

def cmd_build_package(args: argparse.Namespace) -> int:
    from extpack.release.package import SignedPackageBuilder
    from extpack.release.pipeline import PACKAGED, PipelineMarker
    from extpack.release.version import read_current_version

    diag = Diagnostics("build-package")
    try:
        config = _config(args)
        marker = PipelineMarker(config)
        if args.force:
            diag.note("--force: skipping pipeline order check")
        else:
            marker.require_buildable(str(read_current_version(config, stage="build-package")))
        result = SignedPackageBuilder(config, diag=diag).build()
        marker.record_build(
            PACKAGED,
            result.version,
            artifact=safe_relpath(config.base_dir, result.artifact.path),
            extension_id=result.extension_id,
        )
    except ReleaseError as e:
        return _fail(diag, e)

    diag.info(f"Size: {result.artifact.size_kb}")
    diag.info(f"sha256: {result.artifact.sha256}")
    diag.info(f"Extension ID: {result.extension_id}")
    diag.info("Next steps:")
    diag.info(f"1. Upload {result.artifact.path.name} to the release")
    diag.info("2. Make sure deployment policy / allowlists use the extension ID above")
    diag.info("3. Run 'extpack publish' to update the update descriptor")
    print(f"extension_id={result.extension_id}")
    print(f"artifact={safe_relpath(config.base_dir, result.artifact.path)}")
    return 0


def cmd_build_archive(args: argparse.Namespace) -> int:
    from extpack.release.archive import ArchiveBuilder
    from extpack.release.pipeline import ARCHIVED, PipelineMarker
    from extpack.release.version import read_current_version

    diag = Diagnostics("build-archive")
    try:
        config = _config(args)
        marker = PipelineMarker(config)
        if args.force:
            diag.note("--force: skipping pipeline order check")
        else:
            marker.require_buildable(str(read_current_version(config, stage="build-archive")))
        result = ArchiveBuilder(config, diag=diag).build()
        if result.artifact is not None:
            marker.record_build(ARCHIVED, result.version, artifact=result.target)
    except ReleaseError as e:
        return _fail(diag, e)

    if result.artifact is None:
        return 0
    diag.info(f"sha256: {result.artifact.sha256}")
    diag.info("Next steps:")
    diag.info(f"1. Create a GitHub release with tag v{result.version}")
    diag.info(f"2. Upload {result.artifact.path.name} to the release")
    diag.info("3. Update the changelog in update/manifest.json")
    diag.info("4. Commit and push the update/manifest.json changes")
    print(f"artifact={result.target}")
    return 0


# ---------------------------------------------------------------------------
# publish subcommand
# ---------------------------------------------------------------------------

def cmd_publish(args: argparse.Namespace) -> int:
    from extpack.release.pipeline import PipelineMarker
    from extpack.release.publish import UpdateDescriptorPublisher
    from extpack.release.version import read_current_version

    diag = Diagnostics("publish")
    try:
        config = _config(args)
        marker = PipelineMarker(config)
        if args.force:
            diag.note("--force: skipping pipeline order check")
        else:
            marker.require_publishable(str(read_current_version(config, stage="publish")))
        result = UpdateDescriptorPublisher(config, diag=diag).publish()
        marker.record_publish(result.version)
    except ReleaseError as e:
        return _fail(diag, e)

    changed = ", ".join(result.changed_fields) if result.changed_fields else "none"
    diag.info(f"Changed fields: {changed}")
    return 0


# ---------------------------------------------------------------------------
# extension-id / status / about
# ---------------------------------------------------------------------------

def cmd_extension_id(args: argparse.Namespace) -> int:
    from extpack.release.keys import KeyLifecycleManager, extension_id_from_der

    diag = Diagnostics("extension-id")
    try:
        key = KeyLifecycleManager(_config(args), diag=diag).load_key()
    except ReleaseError as e:
        return _fail(diag, e)
    print(extension_id_from_der(key.public_der()))
    return 0


def cmd_status(args: argparse.Namespace) -> int:
    from extpack.release.pipeline import PipelineMarker
    from extpack.release.version import read_current_version

    diag = Diagnostics("status")
    try:
        config = _config(args)
        current = str(read_current_version(config, stage="status"))
        state = PipelineMarker(config).load()
    except ReleaseError as e:
        return _fail(diag, e)

    print(f"version: {current}")
    print(f"stage: {state.stage}")
    if state.release_version is not None and state.release_version != current:
        print(f"marker_version: {state.release_version} (differs from manifest)")
    if state.built:
        print(f"built: {', '.join(state.built)}")
    for kind in sorted(state.artifacts):
        print(f"artifact.{kind}: {state.artifacts[kind]}")
    if state.extension_id:
        print(f"extension_id: {state.extension_id}")
    return 0


def cmd_about(_: argparse.Namespace) -> int:
    """Print package identity info (human-readable)."""

    try:
        pkg_version = version("extpack")
    except PackageNotFoundError:
        pkg_version = "0.0.0"

    pkg_name = "extpack"
    pkg_summary = ""
    try:
        meta = metadata("extpack")
        pkg_name = str(meta.get("Name") or pkg_name)
        pkg_summary = str(meta.get("Summary") or "")
    except PackageNotFoundError:
        pass

    print(f"{pkg_name} {pkg_version}")
    if pkg_summary:
        print(pkg_summary)
    print(f"Repo: {ABOUT_REPO_URL}")
    return 0


# ---------------------------------------------------------------------------
# Main CLI
# ---------------------------------------------------------------------------

def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="extpack",
        description="extpack CLI: bump versions, build the signed package and zip archive, publish the update descriptor",
    )
    parser.add_argument("--repo", default=".", help="Repository root (default: .)")
    subparsers = parser.add_subparsers(dest="command", help="Subcommand")

    p_bump = subparsers.add_parser("bump", help="Bump the version in manifest.json, package.json and update/manifest.json")
    p_bump.add_argument("kind", nargs="?", default="patch", help="patch (default), minor or major")
    p_bump.set_defaults(func=cmd_bump)

    p_pkg = subparsers.add_parser("build-package", help="Build the signed package under releases/")
    p_pkg.add_argument("--force", action="store_true", help="Skip the bump-before-build order check")
    p_pkg.set_defaults(func=cmd_build_package)

    p_zip = subparsers.add_parser("build-archive", help="Build the versioned zip archive under releases/")
    p_zip.add_argument("--force", action="store_true", help="Skip the bump-before-build order check")
    p_zip.set_defaults(func=cmd_build_archive)

    p_pub = subparsers.add_parser("publish", help="Rewrite version-dependent fields of update/manifest.json")
    p_pub.add_argument("--force", action="store_true", help="Skip the build-before-publish order check")
    p_pub.set_defaults(func=cmd_publish)

    p_id = subparsers.add_parser("extension-id", help="Print the extension id derived from the signing key")
    p_id.set_defaults(func=cmd_extension_id)

    p_status = subparsers.add_parser("status", help="Show the pipeline stage and current version")
    p_status.set_defaults(func=cmd_status)

    p_about = subparsers.add_parser("about", help="Print package identity info")
    p_about.set_defaults(func=cmd_about)

    args = parser.parse_args(argv)
    if getattr(args, "func", None) is None:
        parser.print_help(sys.stderr)
        return 1
    return int(args.func(args))


if __name__ == "__main__":
    sys.exit(main())
