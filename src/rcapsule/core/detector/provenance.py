# Copyright (c) 2026 Yusoku Advisor Godo Kaisha (ゆうそくアドバイザー合同会社)
# Released under the MIT license
# https://opensource.org/licenses/MIT

"""
Provenance resolution for R packages.

This module decides where a package has to be installed from:
- CRAN, GitHub or Bioconductor, based on the package's description fields
- base packages bundled with R are skipped
- anything else cannot be installed and is reported
"""

import re
from dataclasses import dataclass
from typing import Mapping, Optional

from rcapsule.core.errors import MissingRequiredFieldError
from rcapsule.utils.reporter import Reporter, WarningKind

from .types import PackageDescriptor, Provenance, RawPackageRecord

# keyword [ "(" payload ")" ], e.g. "Github (owner/repo@ref)", "CRAN (R 4.3.1)", "local"
_KEYWORD_PATTERN = re.compile(r"^\s*(?P<keyword>[A-Za-z][\w.\-]*)")
_PAYLOAD_PATTERN = re.compile(r"\((?P<payload>.*)\)")

_KEYWORDS = {
    "cran": Provenance.CRAN,
    "github": Provenance.GITHUB,
    "bioconductor": Provenance.BIOCONDUCTOR,
    "bioc": Provenance.BIOCONDUCTOR,
}


@dataclass(frozen=True)
class SourceField:
    keyword: str
    payload: Optional[str] = None


def parse_source_field(text: Optional[str]) -> SourceField:
    """
    Split a combined source string into its keyword and parenthesized payload.

    >>> parse_source_field("Github (alice/tool@v2)")
    SourceField(keyword='Github', payload='alice/tool@v2')
    >>> parse_source_field("CRAN")
    SourceField(keyword='CRAN', payload=None)
    """
    if not text:
        return SourceField("")
    keyword_match = _KEYWORD_PATTERN.match(text)
    payload_match = _PAYLOAD_PATTERN.search(text)
    keyword = keyword_match.group("keyword") if keyword_match else ""
    payload = payload_match.group("payload").strip() if payload_match else None
    return SourceField(keyword, payload or None)


def classify_source(keyword: Optional[str]) -> Provenance:
    """Map a source keyword to a provenance, case-insensitively."""
    if not keyword:
        return Provenance.UNRESOLVABLE
    return _KEYWORDS.get(keyword.strip().lower(), Provenance.UNRESOLVABLE)


def _matches(value: Optional[str], pattern: str) -> bool:
    return value is not None and re.search(pattern, value, re.IGNORECASE) is not None


class ProvenanceResolver:
    """
    Classifies raw package records into PackageDescriptors.

    Rules are evaluated in order, first match wins:
    priority "base" (skipped), CRAN repository, GitHub remote,
    Bioconductor views, otherwise unresolvable (warned and dropped).
    """

    def __init__(self, reporter: Reporter):
        self.reporter = reporter

    def resolve(
        self,
        record: RawPackageRecord,
        known: Optional[Mapping[str, RawPackageRecord]] = None,
    ) -> Optional[PackageDescriptor]:
        """
        Resolve one record. Returns None when the package is rejected.

        Args:
            record: The package record to classify.
            known: All records of the session by package name, used to look
                   up the remote declaration of GitHub packages.
        """
        name = record.package
        if not name:
            raise MissingRequiredFieldError("Package", record)

        if _matches(record.priority, r"base"):
            self.reporter.debug("Skipping priority package %s, is included with R", name)
            return None

        if _matches(record.repository, r"CRAN"):
            return PackageDescriptor(name, record.version, Provenance.CRAN)

        github = _matches(record.remote_type, r"github")
        if github:
            ref = self.github_ref(name, record, known or {})
            if ref is not None:
                return PackageDescriptor(name, ref, Provenance.GITHUB)

        if record.bioc_views is not None:
            return PackageDescriptor(name, record.version, Provenance.BIOCONDUCTOR)

        if github:
            self.reporter.warning(
                WarningKind.UNRESOLVABLE_PROVENANCE,
                "Package %s is installed from GitHub but has no RemoteUsername. "
                "Therefore the package cannot be installed in the Docker image.",
                name,
            )
            return None

        self.reporter.warning(
            WarningKind.UNRESOLVABLE_PROVENANCE,
            "Failed to identify a source for package %s. "
            "Therefore the package cannot be installed in the Docker image.",
            name,
        )
        return None

    def github_ref(
        self,
        name: str,
        record: RawPackageRecord,
        known: Mapping[str, RawPackageRecord],
    ) -> Optional[str]:
        """Build ``owner/repo@ref`` from the remote declaration of ``name``."""
        companion = known.get(name, record)
        username = companion.remote_username
        repo = companion.remote_repo or name
        if not username:
            return None
        ref = companion.remote_ref or companion.remote_sha or "HEAD"
        return f"{username}/{repo}@{ref}"
