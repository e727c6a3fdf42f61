# Copyright (c) 2026 Yusoku Advisor Godo Kaisha (ゆうそくアドバイザー合同会社)
# Released under the MIT license
# https://opensource.org/licenses/MIT

"""Fatal error conditions raised by the Dockerfile pipeline."""


class RCapsuleError(Exception):
    """Base class for all errors that abort a pipeline invocation."""
    pass


class UnsupportedInputKindError(RCapsuleError):
    """Raised when the given source matches no supported input shape."""

    def __init__(self, value):
        self.value = value
        super().__init__(
            f"Unsupported 'from' value of type {type(value).__name__}: {value!r} "
            "(not a session, package table, DESCRIPTION, existing file or directory)"
        )


class MissingRequiredFieldError(RCapsuleError):
    """Raised when a raw package record has no package name."""

    def __init__(self, field_name: str, record):
        self.field_name = field_name
        self.record = record
        super().__init__(f"Package name cannot be determined, field '{field_name}' missing in {record!r}")


class NoPackageableFileFoundError(RCapsuleError):
    """Raised when a directory contains no R script or R Markdown document."""

    def __init__(self, path):
        self.path = path
        super().__init__(f"Workspace '{path}' does not contain any R file that can be packaged.")


class NoTargetFileError(RCapsuleError):
    """Raised when a file-based copy mode is requested without a packaged file."""

    def __init__(self, mode: str):
        self.mode = mode
        super().__init__(
            f"Copy mode '{mode}' requires the 'from' input to be a supported file or directory"
        )


class UnreachableRegistryError(RCapsuleError):
    """Raised when a remote lookup service cannot be reached."""

    def __init__(self, url: str, reason=None):
        self.url = url
        self.reason = reason
        super().__init__(f"Could not retrieve data from {url} (offline?), error: {reason}")


class InvalidOptionError(RCapsuleError, ValueError):
    """Raised when a Dockerfile option has an unsupported value."""
    pass


class SessionExecutionError(RCapsuleError):
    """Raised when executing an R script, document or expression fails."""
    pass


class MissingCollaboratorError(RCapsuleError):
    """Raised when an input needs an external service that was not supplied."""
    pass


class InvalidLockfileError(RCapsuleError):
    """Raised when an renv.lock file cannot be read as a package lockfile."""

    def __init__(self, path, reason=None):
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid renv lockfile '{path}': {reason}")
