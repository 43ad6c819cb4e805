"""
Error taxonomy for log-to-source correlation.

Configuration and emptiness errors are raised to the caller.  Per-path
problems, matcher capacity problems and cache problems are returned as
warnings so a single bad file never aborts a run.
"""

from pathlib import Path
from typing import Optional


class LogSourceError(Exception):
    """Base exception for all logsource errors."""


# Configuration errors (fatal)

class InvalidLogFormatError(LogSourceError):
    """Raised when the log format is not a valid regular expression."""

    def __init__(self, pattern: str, reason: str):
        self.pattern = pattern
        self.reason = reason
        super().__init__(f"invalid log format {pattern!r}: {reason}")


class UnknownCaptureError(LogSourceError):
    """Raised when the log format declares a named group that is not recognized."""

    def __init__(self, name: str, recognized):
        self.name = name
        self.recognized = tuple(recognized)
        super().__init__(
            f"unknown named capture group '{name}' in log format, "
            f"expected one of: {', '.join(self.recognized)}"
        )


class MissingCaptureError(LogSourceError):
    """Raised when a required named group is absent from the log format."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"log format is missing the required named capture group '{name}'")


class RootOverlapError(LogSourceError):
    """Raised when a source root overlaps a root that was already added."""

    def __init__(self, path: Path, existing: Path):
        self.path = path
        self.existing = existing
        super().__init__(f"source root {path} overlaps the existing source root {existing}")


# Per-path warnings

class SourceAccessError(LogSourceError):
    """A file or directory in a source tree could not be accessed."""

    def __init__(self, path: Path, cause: Optional[BaseException] = None):
        self.path = Path(path)
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"cannot access path {self.path}{detail}")

    def __reduce__(self):
        return (self.__class__, (self.path, self.cause))


class SourceReadError(LogSourceError):
    """A source file could not be read or parsed."""

    def __init__(self, path: Path, cause: Optional[BaseException] = None):
        self.path = Path(path)
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"cannot read source file {self.path}{detail}")

    def __reduce__(self):
        return (self.__class__, (self.path, self.cause))


class MatcherCapacityError(LogSourceError):
    """The combined matcher for a file could not be built."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"cannot build combined matcher for {path}: {reason}")

    def __reduce__(self):
        return (self.__class__, (self.path, self.reason))


# Emptiness errors (fatal once everything has been scanned)

class NoLogStatementsError(LogSourceError):
    """No logging statements were found in any source root."""

    def __init__(self):
        super().__init__("no log statements found in the given source roots")


class NoLogMessagesError(LogSourceError):
    """A log format was supplied but never matched an input line."""

    def __init__(self):
        super().__init__("the log format did not match any line of the log")


# Per-line errors

class UnreadableLineError(LogSourceError):
    """A single line of the log stream could not be decoded."""

    def __init__(self, line: int, cause: Optional[BaseException] = None):
        self.line = line
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"unable to read line {line}{detail}")


# Cache errors

class CacheError(LogSourceError):
    """Base class for persistent cache problems."""


class CacheMissError(CacheError):
    """There is no cache entry for a source root."""

    def __init__(self, root: Path):
        self.root = root
        super().__init__(f"no cached state for {root}")


class CacheLoadError(CacheError):
    """A cache entry exists but could not be loaded."""

    def __init__(self, root: Path, reason: str):
        self.root = root
        self.reason = reason
        super().__init__(f"cannot load cached state for {root}: {reason}")


class CacheSaveError(CacheError):
    """A cache entry could not be written."""

    def __init__(self, root: Path, reason: str):
        self.root = root
        self.reason = reason
        super().__init__(f"cannot save cached state for {root}: {reason}")
