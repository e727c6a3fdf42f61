from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional


class Provenance(str, Enum):
    CRAN = "CRAN"
    GITHUB = "GitHub"
    BIOCONDUCTOR = "Bioconductor"
    UNRESOLVABLE = "Unresolvable"


@dataclass(frozen=True)
class PackageDescriptor:
    """Canonical record of one R package dependency."""
    name: str
    version: Optional[str]
    provenance: Provenance


Manifest = List[PackageDescriptor]


@dataclass
class RawPackageRecord:
    """
    One entry of an R session's package list, as returned by
    ``utils::packageDescription``. Only the fields used for provenance
    resolution are kept.
    """
    package: Optional[str] = None
    version: Optional[str] = None
    priority: Optional[str] = None
    repository: Optional[str] = None
    remote_type: Optional[str] = None
    remote_username: Optional[str] = None
    remote_repo: Optional[str] = None
    remote_ref: Optional[str] = None
    remote_sha: Optional[str] = None
    bioc_views: Optional[str] = None

    FIELD_NAMES = {
        "Package": "package",
        "Version": "version",
        "Priority": "priority",
        "Repository": "repository",
        "RemoteType": "remote_type",
        "RemoteUsername": "remote_username",
        "RemoteRepo": "remote_repo",
        "RemoteRef": "remote_ref",
        "RemoteSha": "remote_sha",
        "biocViews": "bioc_views",
    }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RawPackageRecord":
        values = {}
        for key, attr in cls.FIELD_NAMES.items():
            value = data.get(key)
            if isinstance(value, list):
                value = ", ".join(str(v) for v in value)
            values[attr] = None if value is None else str(value)
        return cls(**values)


@dataclass
class SessionInfo:
    """Structured session snapshot (``utils::sessionInfo()`` shape)."""
    r_version: Optional[str] = None
    other_pkgs: Dict[str, RawPackageRecord] = field(default_factory=dict)
    loaded_only: Dict[str, RawPackageRecord] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SessionInfo":
        def records(section) -> Dict[str, RawPackageRecord]:
            # jsonlite serialises an empty named list as []
            if not section:
                return {}
            return {name: RawPackageRecord.from_dict(rec) for name, rec in section.items()}

        return cls(
            r_version=data.get("r_version"),
            other_pkgs=records(data.get("otherPkgs")),
            loaded_only=records(data.get("loadedOnly")),
        )


@dataclass
class SessionPackageRow:
    package: Optional[str]
    loadedversion: Optional[str]
    source: Optional[str]


@dataclass
class SessionPackages:
    """Flattened session snapshot (``sessioninfo::session_info()`` shape)."""
    r_version: Optional[str] = None
    rows: List[SessionPackageRow] = field(default_factory=list)


@dataclass
class PackageRow:
    name: Optional[str]
    version: Optional[str]
    source: Optional[str]


@dataclass
class PackageFrame:
    """Tabular package manifest with name/version/source columns."""
    rows: List[PackageRow] = field(default_factory=list)

    @classmethod
    def from_records(cls, records: List[Mapping[str, Any]]) -> "PackageFrame":
        return cls(rows=[PackageRow(r.get("name"), r.get("version"), r.get("source")) for r in records])


@dataclass
class ProjectDescription:
    """Parsed R package DESCRIPTION file."""
    package: str
    version: Optional[str] = None
    repository: Optional[str] = None
    imports: List[str] = field(default_factory=list)
    remotes: List[str] = field(default_factory=list)
    r_version: Optional[str] = None


@dataclass
class SessionExpression:
    """R expressions to evaluate in a clean session."""
    expressions: List[str] = field(default_factory=list)


@dataclass
class ExtractionResult:
    manifest: Manifest = field(default_factory=list)
    target_file: Optional[Path] = None
    r_version: Optional[str] = None
    # r_version is a lower bound, e.g. from "Depends: R (>= x.y)"
    r_version_minimum: bool = False


@dataclass
class RenvLock:
    """Package lockfile (``renv.lock``), records keyed by package name."""
    r_version: Optional[str] = None
    packages: Dict[str, RawPackageRecord] = field(default_factory=dict)
