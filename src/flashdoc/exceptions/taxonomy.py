"""Diagnostic taxonomy with error codes.

Error Code Convention:
    FD1xx - Parse errors (native backend, file access)
    FD2xx - Tag grammar errors
    FD3xx - Reference resolution
    FD4xx - Cache errors
    FD5xx - Entity model merge errors
    FD6xx - Scheduling errors

Per-file and per-entity problems never abort a run. They are recorded as
Diagnostic records and aggregated into the final DiagnosticsReport.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class ErrorCode(Enum):
    """Structured error codes for diagnostics and logging."""

    # Parse errors (FD1xx)
    FD100 = "FD100"  # File read error
    FD101 = "FD101"  # Backend parse failed
    FD102 = "FD102"  # Syntax error recovered (non-strict mode)

    # Tag grammar errors (FD2xx)
    FD200 = "FD200"  # Missing required tag field
    FD201 = "FD201"  # Unterminated code block

    # Resolution (FD3xx)
    FD300 = "FD300"  # Unresolved reference
    FD301 = "FD301"  # Inheritance cycle

    # Cache errors (FD4xx)
    FD400 = "FD400"  # Cache entry corrupt
    FD401 = "FD401"  # Cache storage unavailable

    # Merge errors (FD5xx)
    FD500 = "FD500"  # Conflicting definitions
    FD501 = "FD501"  # Template parameter mismatch

    # Scheduling errors (FD6xx)
    FD600 = "FD600"  # Job timed out
    FD601 = "FD601"  # Job cancelled
    FD602 = "FD602"  # Unexpected job failure


class Severity(Enum):
    """How loudly a diagnostic is surfaced."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Diagnostic:
    """A contained problem recorded during a run.

    Attributes:
        code: Structured error code for categorization
        message: Human-readable description
        path: Source file the problem belongs to, if any
        entity_id: Entity the problem belongs to, if any
        severity: How the problem is surfaced in the summary
    """

    code: ErrorCode
    message: str
    path: str | None = None
    entity_id: str | None = None
    severity: Severity = Severity.WARNING

    def __str__(self) -> str:
        where = self.entity_id or self.path
        if where:
            return f"[{self.code.value}] {where}: {self.message}"
        return f"[{self.code.value}] {self.message}"

    def to_json(self) -> dict[str, Any]:
        """Structured logging / cache format."""
        return {
            "code": self.code.value,
            "message": self.message,
            "path": self.path,
            "entity_id": self.entity_id,
            "severity": self.severity.value,
        }

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> Diagnostic:
        return cls(
            code=ErrorCode(data["code"]),
            message=data["message"],
            path=data.get("path"),
            entity_id=data.get("entity_id"),
            severity=Severity(data.get("severity", Severity.WARNING.value)),
        )
