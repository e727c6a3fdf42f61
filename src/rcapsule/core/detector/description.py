# Copyright (c) 2026 Yusoku Advisor Godo Kaisha (ゆうそくアドバイザー合同会社)
# Released under the MIT license
# https://opensource.org/licenses/MIT

"""
Reader for R package DESCRIPTION files.

DESCRIPTION files use the Debian control file format, so parsing is
delegated to python-debian's Deb822 reader. This module adds the
R specific parts on top: dependency lists with version constraints
and the ``Remotes`` field.
"""

import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

from debian.deb822 import Deb822

from rcapsule.core.errors import MissingRequiredFieldError

from .types import ProjectDescription

DESCRIPTION_FILENAME = "DESCRIPTION"

_DEPENDENCY = re.compile(r"^\s*(?P<name>[A-Za-z][\w.]*)\s*(?:\((?P<constraint>[^)]*)\))?\s*$")
_CONSTRAINT_VERSION = re.compile(r"(?P<version>\d+(?:[.\-]\d+)*)")
_GITHUB_REMOTE = re.compile(
    r"^(?P<username>[\w.\-]+)/(?P<repo>[\w.\-]+)"
    r"(?:/(?P<subdir>[^@#]+))?"
    r"(?:@(?P<ref>[^@#]+))?$"
)


@dataclass(frozen=True)
class GitHubRemote:
    username: str
    repo: str
    ref: str = "HEAD"
    subdir: Optional[str] = None
    name: Optional[str] = None

    @property
    def package_name(self) -> str:
        """Explicit ``pkgname=`` prefix, else the last subdir component, else the repository."""
        if self.name:
            return self.name
        if self.subdir:
            return self.subdir.rstrip("/").rsplit("/", 1)[-1]
        return self.repo

    @property
    def version_string(self) -> str:
        path = f"{self.username}/{self.repo}"
        if self.subdir:
            path = f"{path}/{self.subdir}"
        return f"{path}@{self.ref}"


def parse_dependency_field(value: Optional[str]) -> List[Tuple[str, Optional[str]]]:
    """
    Split a dependency field into (name, constraint) pairs.

    >>> parse_dependency_field("R (>= 3.3.0), sf,\\n  dplyr (>= 1.0)")
    [('R', '>= 3.3.0'), ('sf', None), ('dplyr', '>= 1.0')]
    """
    if not value:
        return []
    deps = []
    for entry in value.split(","):
        match = _DEPENDENCY.match(entry)
        if match:
            deps.append((match.group("name"), match.group("constraint")))
    return deps


def minimum_r_version(depends: List[Tuple[str, Optional[str]]]) -> Optional[str]:
    """Extract the version from an ``R (>= x.y.z)`` entry, if any."""
    for name, constraint in depends:
        if name == "R" and constraint:
            match = _CONSTRAINT_VERSION.search(constraint)
            if match:
                return match.group("version")
    return None


def split_remotes(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [r.strip() for r in value.split(",") if r.strip()]


def parse_remote(entry: str) -> Optional[GitHubRemote]:
    """
    Parse one ``Remotes`` entry. Only GitHub remotes are supported:
    ``owner/repo``, ``owner/repo@ref``, ``owner/repo/subdir@ref``, each
    optionally prefixed with ``github::`` and/or ``pkgname=``.

    Returns None for every other remote kind.
    """
    text = entry.strip()
    name = None
    name_prefix = re.match(r"^(?P<name>[A-Za-z][\w.]*)=(?P<rest>.*)$", text)
    if name_prefix:
        name = name_prefix.group("name")
        text = name_prefix.group("rest").strip()

    kind = "github"
    if "::" in text:
        kind, text = text.split("::", 1)
    if kind.strip().lower() != "github":
        return None

    match = _GITHUB_REMOTE.match(text.strip())
    if not match:
        return None
    return GitHubRemote(
        username=match.group("username"),
        repo=match.group("repo"),
        ref=match.group("ref") or "HEAD",
        subdir=match.group("subdir"),
        name=name,
    )


def _names(deps: List[Tuple[str, Optional[str]]]) -> List[str]:
    return [name for name, _ in deps]


def load_description(path) -> ProjectDescription:
    """
    Load a DESCRIPTION file into a ProjectDescription.

    Args:
        path: Path to the DESCRIPTION file.

    Raises:
        FileNotFoundError: If the file does not exist.
        MissingRequiredFieldError: If the file has no ``Package`` field.
    """
    path = Path(path)
    with open(path, "r", encoding="utf-8") as f:
        fields = Deb822(f)

    package = fields.get("Package")
    if not package:
        raise MissingRequiredFieldError("Package", str(path))

    depends = parse_dependency_field(fields.get("Depends"))
    return ProjectDescription(
        package=package.strip(),
        version=(fields.get("Version") or "").strip() or None,
        repository=(fields.get("Repository") or "").strip() or None,
        imports=_names(parse_dependency_field(fields.get("Imports"))),
        remotes=split_remotes(fields.get("Remotes")),
        r_version=minimum_r_version(depends),
    )
