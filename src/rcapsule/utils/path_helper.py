# Copyright (c) 2026 Yusoku Advisor Godo Kaisha (ゆうそくアドバイザー合同会社)
# Released under the MIT license
# https://opensource.org/licenses/MIT

"""
Path resolution helpers.

Provides utilities to locate bundled resources (templates, definitions,
mappings) and to turn host paths into build-context-relative POSIX paths
suitable for Dockerfile instructions.
"""

import os
from pathlib import Path, PurePosixPath
from typing import Union

PathInput = Union[str, "os.PathLike[str]"]


def get_resource_path(relative_path: str) -> Path:
    """
    Get absolute path to a bundled resource file or directory.

    Resources are read-only assets shipped inside the package
    (templates, definitions, mappings).

    Args:
        relative_path: Path relative to the resources root.
                      Example: 'container/templates', 'container/definitions/images.json'

    Returns:
        Absolute Path object pointing to the resource.

    Example:
        >>> get_resource_path('container/templates')
        # .../site-packages/rcapsule/core/container/templates
    """
    # path_helper.py -> utils -> rcapsule
    package_root = Path(__file__).resolve().parents[1]
    return package_root / "core" / relative_path


def normalize_path(path: PathInput) -> Path:
    """Absolute, symlink-free version of ``path``."""
    return Path(path).expanduser().resolve()


def is_descendant(path: PathInput, parent: PathInput) -> bool:
    """Check whether ``path`` lies inside ``parent`` (both normalized)."""
    child = normalize_path(path)
    root = normalize_path(parent)
    return child == root or root in child.parents


def to_posix(path: PathInput) -> str:
    """Convert host path separators to forward slashes."""
    return str(path).replace("\\", "/")


def relative_posix_path(path: PathInput, context: PathInput) -> str:
    """
    Compute the path of ``path`` relative to ``context`` in POSIX notation.

    Unlike ``Path.relative_to`` this never fails: a path outside the
    context yields a ``..``-prefixed result. Callers that care about
    escaping the context check ``is_descendant`` first.
    """
    rel = os.path.relpath(normalize_path(path), normalize_path(context))
    return PurePosixPath(to_posix(rel)).as_posix()
