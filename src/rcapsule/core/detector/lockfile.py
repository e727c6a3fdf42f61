# Copyright (c) 2026 Yusoku Advisor Godo Kaisha (ゆうそくアドバイザー合同会社)
# Released under the MIT license
# https://opensource.org/licenses/MIT

"""
Reader for renv lockfiles.

An ``renv.lock`` is a JSON document with the R version under ``R`` and one
entry per package under ``Packages``. Entries carry the same fields as a
package's DESCRIPTION, plus a ``Source`` that names where renv got the
package from. That source is folded into the fields the provenance
resolver looks at.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Mapping

from rcapsule.core.errors import InvalidLockfileError

from .types import RawPackageRecord, RenvLock

logger = logging.getLogger(__name__)

LOCKFILE_NAME = "renv.lock"

# repositories renv records for CRAN and its Posit mirrors
CRAN_REPOSITORIES = ("CRAN", "RSPM", "PPM", "P3M")


def record_from_lock_entry(name: str, entry: Mapping[str, Any]) -> RawPackageRecord:
    """Map one ``Packages`` entry onto a RawPackageRecord."""
    record = RawPackageRecord.from_dict(entry)
    if not record.package:
        record.package = name

    source = str(entry.get("Source") or "").strip().lower()
    if source == "cran" or (source == "repository" and (record.repository or "").upper() in CRAN_REPOSITORIES):
        record.repository = "CRAN"
    elif source == "github" and record.remote_type is None:
        record.remote_type = "github"
    elif source == "bioconductor" and record.bioc_views is None:
        record.bioc_views = ""
    return record


def load_lockfile(path) -> RenvLock:
    """
    Load an renv lockfile.

    Raises:
        FileNotFoundError: If the file does not exist.
        InvalidLockfileError: If the file is not JSON or has no package table.
    """
    path = Path(path)
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise InvalidLockfileError(str(path), e) from e

    packages = data.get("Packages") if isinstance(data, dict) else None
    if not isinstance(packages, dict):
        raise InvalidLockfileError(str(path), "no 'Packages' table")

    records: Dict[str, RawPackageRecord] = {}
    for name, entry in packages.items():
        if not isinstance(entry, dict):
            raise InvalidLockfileError(str(path), f"entry '{name}' is not an object")
        records[name] = record_from_lock_entry(name, entry)

    r_section = data.get("R")
    r_version = r_section.get("Version") if isinstance(r_section, dict) else None
    logger.debug("Read %s packages from %s", len(records), path)
    return RenvLock(r_version=r_version, packages=records)
