"""Analysis-related exceptions: parsing, comment grammar, cache, backend."""

from pathlib import Path
from typing import Optional

from .base import FlashdocError


class AnalysisError(FlashdocError):
    """Base class for analysis-related errors."""
    pass


class ParseError(AnalysisError):
    """Raised when the native backend cannot produce a translation unit."""

    def __init__(self, filepath: Path, reason: str):
        super().__init__(
            f"Failed to parse {filepath}",
            details={"filepath": str(filepath), "reason": reason},
        )
        self.filepath = filepath
        self.reason = reason


class TagGrammarError(AnalysisError):
    """Raised when a documentation comment violates the tag grammar.

    ``line`` is relative to the start of the comment (1-indexed).
    """

    def __init__(self, marker: str, reason: str, line: Optional[int] = None):
        details = {"marker": marker, "reason": reason}
        if line is not None:
            details["line"] = str(line)

        super().__init__(f"Malformed {marker} tag", details=details)
        self.marker = marker
        self.reason = reason
        self.line = line


class CacheCorruptionError(AnalysisError):
    """Raised when a stored cache entry cannot be deserialized."""

    def __init__(self, key: str, reason: str):
        super().__init__(
            f"Corrupt cache entry {key[:16]}",
            details={"key": key, "reason": reason},
        )
        self.key = key
        self.reason = reason


class BackendUnavailableError(AnalysisError):
    """Raised when the native parsing backend cannot be loaded at all."""

    def __init__(self, backend: str, reason: str):
        super().__init__(
            f"Parsing backend unavailable: {backend}",
            details={"backend": backend, "reason": reason},
        )
        self.backend = backend
        self.reason = reason


class JobTimeoutError(AnalysisError):
    """Raised when a single parse job exceeds its time budget."""

    def __init__(self, filepath: Path, timeout_seconds: float):
        super().__init__(
            f"Parsing {filepath} timed out",
            details={"filepath": str(filepath), "timeout_seconds": str(timeout_seconds)},
        )
        self.filepath = filepath
        self.timeout_seconds = timeout_seconds
