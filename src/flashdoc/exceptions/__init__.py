"""Exception hierarchy for flashdoc."""

from .analysis import (
    AnalysisError,
    BackendUnavailableError,
    CacheCorruptionError,
    JobTimeoutError,
    ParseError,
    TagGrammarError,
)
from .base import FlashdocError
from .config import (
    ConfigurationError,
    InvalidConfigError,
    InvalidPathError,
)
from .taxonomy import Diagnostic, ErrorCode, Severity

__all__ = [
    "FlashdocError",
    "AnalysisError",
    "ParseError",
    "TagGrammarError",
    "CacheCorruptionError",
    "BackendUnavailableError",
    "JobTimeoutError",
    "ConfigurationError",
    "InvalidPathError",
    "InvalidConfigError",
    "Diagnostic",
    "ErrorCode",
    "Severity",
]
