# Copyright (c) 2026 Yusoku Advisor Godo Kaisha (ゆうそくアドバイザー合同会社)
# Released under the MIT license
# https://opensource.org/licenses/MIT

"""Copy path resolution: COPY instructions relative to the build context."""

from pathlib import Path
from typing import List, Optional

from rcapsule.core.errors import NoTargetFileError
from rcapsule.utils.path_helper import is_descendant, normalize_path, relative_posix_path
from rcapsule.utils.reporter import Reporter, WarningKind

from .instructions import Copy
from .types import CopySelector


def _context_relative(path: Path, context: Path, reporter: Reporter) -> str:
    if not is_descendant(path, context):
        reporter.warning(
            WarningKind.CONTEXT_ESCAPE,
            "The file %s is not inside the build context %s, COPY instructions may be incorrect",
            path, context,
        )
    return relative_posix_path(path, context)


def resolve_copy_instructions(
    selector: CopySelector,
    context,
    target_file: Optional[Path],
    reporter: Reporter,
) -> List[Copy]:
    """
    Compute the COPY instructions for ``selector``.

    Sources and destinations are the same context-relative POSIX path, so
    the copied files land below the container working directory with the
    layout they have in the build context.

    Args:
        selector: Parsed copy option.
        context: Build context directory.
        target_file: The packaged file, if the input was a file or directory.
        reporter: Diagnostics sink.

    Raises:
        NoTargetFileError: ``script`` or ``script_dir`` without a packaged file.
    """
    context = normalize_path(context)
    reporter.debug("Creating COPY with build context %s using: %s", context, selector)

    if selector.mode == "none":
        return []

    if selector.mode in ("script", "script_dir"):
        if target_file is None:
            raise NoTargetFileError(selector.mode)
        target = normalize_path(target_file)
        if selector.mode == "script_dir":
            target = target.parent
        rel_path = _context_relative(target, context, reporter)
        return [Copy(rel_path, rel_path)]

    instructions: List[Copy] = []
    for entry in selector.paths:
        path = Path(entry).expanduser()
        if not path.is_absolute():
            path = context / path
        if not path.exists():
            reporter.warning(
                WarningKind.MISSING_COPY_TARGET,
                "The file %s, provided in 'copy', does not exist!", entry,
            )
            continue
        rel_path = _context_relative(normalize_path(path), context, reporter)
        reporter.debug("Adding COPY instruction for file %s", rel_path)
        instructions.append(Copy(rel_path, rel_path))
    return instructions
