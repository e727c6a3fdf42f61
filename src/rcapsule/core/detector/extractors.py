# Copyright (c) 2026 Yusoku Advisor Godo Kaisha (ゆうそくアドバイザー合同会社)
# Released under the MIT license
# https://opensource.org/licenses/MIT

"""
Manifest extractors.

Each extractor turns one supported input shape into a normalized
Manifest (list of PackageDescriptor):
- structured session snapshots (sessionInfo)
- flattened session snapshots (session_info package tables)
- tabular package manifests (name / version / source)
- parsed DESCRIPTION files
- renv lockfiles
"""

from typing import Dict, List

from rcapsule.core.errors import MissingRequiredFieldError
from rcapsule.utils.reporter import Reporter, WarningKind

from .description import parse_remote
from .provenance import ProvenanceResolver, classify_source, parse_source_field
from .types import (
    ExtractionResult,
    Manifest,
    PackageDescriptor,
    PackageFrame,
    ProjectDescription,
    Provenance,
    RawPackageRecord,
    RenvLock,
    SessionInfo,
    SessionPackages,
)


def extract_from_session_info(
    session: SessionInfo,
    reporter: Reporter,
    include_loaded_only: bool = False,
    include_self_package: bool = False,
    self_package: str = "rcapsule",
) -> ExtractionResult:
    """
    Resolve the attached (and optionally loaded-only) packages of a session.

    Raises:
        MissingRequiredFieldError: If a record carries no package name.
    """
    reporter.debug("Creating from sessionInfo")
    pkgs: Dict[str, RawPackageRecord] = dict(session.other_pkgs)
    if include_loaded_only:
        reporter.debug("Adding 'loadedOnly' packages")
        for name, record in session.loaded_only.items():
            pkgs.setdefault(name, record)

    if not include_self_package and self_package in pkgs:
        reporter.debug("Removing self from the list of packages")
        del pkgs[self_package]

    resolver = ProvenanceResolver(reporter)
    manifest: Manifest = []
    for record in pkgs.values():
        descriptor = resolver.resolve(record, pkgs)
        if descriptor is not None:
            manifest.append(descriptor)

    resolved = {d.name for d in manifest}
    skipped = [name for name in pkgs if name not in resolved]
    reporter.debug("Found %s packages in sessionInfo", len(manifest))
    if skipped:
        reporter.debug("Did not add packages because no source or included in base: %s", ", ".join(skipped))
    return ExtractionResult(manifest=manifest, r_version=session.r_version)


def extract_from_session_packages(
    session: SessionPackages,
    reporter: Reporter,
    include_self_package: bool = False,
    self_package: str = "rcapsule",
) -> ExtractionResult:
    """
    Resolve the package table of a flattened session snapshot.

    GitHub packages get their version replaced by the ``owner/repo@ref``
    found in parentheses of the source column.
    """
    reporter.debug("Creating from session_info")
    manifest: Manifest = []
    for row in session.rows:
        if not row.package:
            raise MissingRequiredFieldError("package", row)
        if not include_self_package and row.package == self_package:
            reporter.debug("Removing self from the list of packages")
            continue

        source = parse_source_field(row.source)
        provenance = classify_source(source.keyword)
        version = row.loadedversion
        if provenance is Provenance.GITHUB:
            version = source.payload
        if provenance is Provenance.UNRESOLVABLE or (provenance is Provenance.GITHUB and not version):
            reporter.warning(
                WarningKind.UNRESOLVABLE_PROVENANCE,
                "Failed to identify a source for package %s (source '%s'). "
                "Therefore the package cannot be installed in the Docker image.",
                row.package, row.source,
            )
            continue
        manifest.append(PackageDescriptor(row.package, version, provenance))

    reporter.debug("Found %s packages in session_info", len(manifest))
    return ExtractionResult(manifest=manifest, r_version=session.r_version)


def extract_from_frame(frame: PackageFrame, reporter: Reporter) -> ExtractionResult:
    """
    Normalize a name/version/source table.

    GitHub rows take their ``owner/repo@ref`` from the parentheses of the
    source column, else from the version column. Rows where neither holds
    a GitHub reference are reported and dropped.
    """
    reporter.debug("Creating from package table with %s rows", len(frame.rows))
    manifest: Manifest = []
    for row in frame.rows:
        if not row.name:
            raise MissingRequiredFieldError("name", row)
        source = parse_source_field(row.source)
        provenance = classify_source(source.keyword)
        if provenance is Provenance.UNRESOLVABLE:
            reporter.warning(
                WarningKind.UNRESOLVABLE_PROVENANCE,
                "Unsupported source '%s' for package %s, the package cannot be installed in the Docker image.",
                row.source, row.name,
            )
            continue

        version = row.version or None
        if provenance is Provenance.GITHUB:
            remote = parse_remote(source.payload or version or "")
            if remote is None:
                reporter.warning(
                    WarningKind.UNRESOLVABLE_PROVENANCE,
                    "No GitHub reference (owner/repo@ref) for package %s, version '%s'. "
                    "Therefore the package cannot be installed in the Docker image.",
                    row.name, row.version,
                )
                continue
            version = remote.version_string
        manifest.append(PackageDescriptor(row.name, version, provenance))
    return ExtractionResult(manifest=manifest)


def extract_from_description(description: ProjectDescription, reporter: Reporter) -> ExtractionResult:
    """
    Build a manifest from the ``Imports`` of a DESCRIPTION.

    The described package itself is only added when it is published on
    CRAN. GitHub remotes are added with their ``owner/repo@ref``; other
    remote kinds are reported and dropped.
    """
    reporter.debug("Creating from description of package %s", description.package)
    names: List[str] = list(description.imports)
    if description.repository and description.repository.strip().upper() == "CRAN":
        names.insert(0, description.package)

    manifest: Manifest = []
    for name in names:
        version = description.version if name == description.package else None
        manifest.append(PackageDescriptor(name, version, Provenance.CRAN))

    for entry in description.remotes:
        remote = parse_remote(entry)
        if remote is None:
            reporter.warning(
                WarningKind.UNSUPPORTED_REMOTE_KIND,
                "Unsupported remote found in DESCRIPTION file: %s", entry,
            )
            continue
        manifest.append(PackageDescriptor(remote.package_name, remote.version_string, Provenance.GITHUB))

    reporter.debug("Found %s packages in DESCRIPTION", len(manifest))
    return ExtractionResult(manifest=manifest, r_version=description.r_version, r_version_minimum=True)


def extract_from_lockfile(
    lock: RenvLock,
    reporter: Reporter,
    include_self_package: bool = False,
    self_package: str = "rcapsule",
) -> ExtractionResult:
    """Resolve every package pinned in an renv lockfile."""
    reporter.debug("Creating from renv lockfile with %s packages", len(lock.packages))
    pkgs: Dict[str, RawPackageRecord] = dict(lock.packages)
    if not include_self_package and self_package in pkgs:
        reporter.debug("Removing self from the list of packages")
        del pkgs[self_package]

    resolver = ProvenanceResolver(reporter)
    manifest: Manifest = []
    for record in pkgs.values():
        descriptor = resolver.resolve(record, pkgs)
        if descriptor is not None:
            manifest.append(descriptor)

    reporter.debug("Found %s packages in renv lockfile", len(manifest))
    return ExtractionResult(manifest=manifest, r_version=lock.r_version)
