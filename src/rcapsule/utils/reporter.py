# Copyright (c) 2026 Yusoku Advisor Godo Kaisha (ゆうそくアドバイザー合同会社)
# Released under the MIT license
# https://opensource.org/licenses/MIT

"""
Diagnostics reporting for a single pipeline invocation.

A Reporter is created per call of the pipeline entry point and handed down
to every extractor and builder. It forwards messages to a standard library
logger and keeps the non-fatal warnings so callers can inspect what was
dropped from the generated Dockerfile.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class WarningKind(str, Enum):
    UNRESOLVABLE_PROVENANCE = "unresolvable_provenance"
    UNSUPPORTED_REMOTE_KIND = "unsupported_remote_kind"
    MISSING_COPY_TARGET = "missing_copy_target"
    CONTEXT_ESCAPE = "context_escape"
    IGNORED_SCRIPTS = "ignored_scripts"
    MULTIPLE_CANDIDATES = "multiple_candidates"
    UNSUPPORTED_BASE_IMAGE = "unsupported_base_image"
    NEAREST_IMAGE_TAG = "nearest_image_tag"


@dataclass(frozen=True)
class ReportedWarning:
    kind: WarningKind
    message: str


@dataclass
class Reporter:
    """
    Collects warnings and routes log messages for one invocation.

    Attributes:
        logger: Target logger. Defaults to the ``rcapsule`` logger.
        silent: Suppress debug and info messages. Warnings are always
                recorded and logged.
    """
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("rcapsule"))
    silent: bool = False
    warnings: List[ReportedWarning] = field(default_factory=list)

    def debug(self, msg: str, *args) -> None:
        if not self.silent:
            self.logger.debug(msg, *args)

    def info(self, msg: str, *args) -> None:
        if not self.silent:
            self.logger.info(msg, *args)

    def warning(self, kind: WarningKind, msg: str, *args) -> None:
        message = msg % args if args else msg
        self.warnings.append(ReportedWarning(kind, message))
        self.logger.warning("[%s] %s", kind.value, message)

    def warnings_of(self, kind: WarningKind) -> List[ReportedWarning]:
        return [w for w in self.warnings if w.kind == kind]


def ensure_reporter(reporter: Optional[Reporter], silent: bool = False) -> Reporter:
    """Return ``reporter`` or a fresh one honouring ``silent``."""
    if reporter is None:
        return Reporter(silent=silent)
    return reporter
