# Copyright (c) 2026 Yusoku Advisor Godo Kaisha (ゆうそくアドバイザー合同会社)
# Released under the MIT license
# https://opensource.org/licenses/MIT

"""
Workspace inspection: choosing the file to package from a directory and
classifying files by how a session can be obtained from them.
"""

from enum import Enum
from pathlib import Path
from typing import List

from rcapsule.core.errors import NoPackageableFileFoundError
from rcapsule.utils.reporter import Reporter, WarningKind

SCRIPT_SUFFIXES = (".r",)
DOCUMENT_SUFFIXES = (".rmd",)
SNAPSHOT_SUFFIXES = (".rdata",)


class FileKind(str, Enum):
    SCRIPT = "script"
    DOCUMENT = "document"
    SNAPSHOT = "snapshot"


def file_kind(path, reporter: Reporter) -> FileKind:
    """Classify a file by extension; unknown extensions are treated as scripts."""
    suffix = Path(path).suffix.lower()
    if suffix in SCRIPT_SUFFIXES:
        return FileKind.SCRIPT
    if suffix in DOCUMENT_SUFFIXES:
        return FileKind.DOCUMENT
    if suffix in SNAPSHOT_SUFFIXES:
        return FileKind.SNAPSHOT
    reporter.info("The supplied file %s has no known extension, handling it as an R script for packaging.", path)
    return FileKind.SCRIPT


def _find(directory: Path, suffixes) -> List[Path]:
    # Sorted by relative POSIX path so the choice does not depend on the
    # host's directory listing order.
    matches = [p for p in directory.rglob("*") if p.is_file() and p.suffix.lower() in suffixes]
    return sorted(matches, key=lambda p: p.relative_to(directory).as_posix())


def find_packageable_file(directory, reporter: Reporter) -> Path:
    """
    Select the single file to package from a project directory.

    Documents (.Rmd) take priority over scripts (.R). When several files of
    the chosen kind exist, the first in lexicographic path order is used.

    Raises:
        NoPackageableFileFoundError: If neither kind of file exists.
    """
    directory = Path(directory)
    scripts = _find(directory, SCRIPT_SUFFIXES)
    documents = _find(directory, DOCUMENT_SUFFIXES)
    reporter.debug("Found %s scripts and %s documents", len(scripts), len(documents))

    if scripts and documents:
        target = documents[0]
        reporter.warning(
            WarningKind.IGNORED_SCRIPTS,
            "Found both scripts and weaved documents (Rmd) in the given directory. "
            "Using the first document for packaging: %s",
            target,
        )
    elif documents:
        target = documents[0]
        if len(documents) > 1:
            reporter.warning(
                WarningKind.MULTIPLE_CANDIDATES,
                "Found %s document files in the workspace, using '%s'", len(documents), target,
            )
    elif scripts:
        target = scripts[0]
        if len(scripts) > 1:
            reporter.warning(
                WarningKind.MULTIPLE_CANDIDATES,
                "Found %s script files in the workspace, using '%s'", len(scripts), target,
            )
    else:
        raise NoPackageableFileFoundError(directory)

    reporter.info("Found file for packaging in workspace: %s", target)
    return target
