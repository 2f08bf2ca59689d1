"""
Error taxonomy for the edit pipeline.

Only ``InputError`` subclasses are fatal.  The others are recorded by the
component that hits them, counted, and surfaced in the run summary.
"""


class MandarkError(Exception):
    """Base class for all pipeline errors."""


class InputError(MandarkError):
    """The file set could not be compiled into a document."""


class NoFilesFound(InputError):
    """Raised when path resolution yields no readable text files."""


class PathNotFound(InputError):
    """Raised when an explicitly named path does not exist."""

    def __init__(self, path: str):
        super().__init__(f"Path not found: {path}")
        self.path = path


class StreamParseError(MandarkError):
    """A streamed edit record could not be parsed."""


class VerificationError(MandarkError):
    """The verification call failed or returned an unreadable verdict."""


class ApplyError(MandarkError):
    """A file could not be rewritten."""

    def __init__(self, path: str, message: str):
        super().__init__(f"{path}: {message}")
        self.path = path


class RevertError(MandarkError):
    """A file could not be restored from history."""

    def __init__(self, path: str, message: str):
        super().__init__(f"{path}: {message}")
        self.path = path
