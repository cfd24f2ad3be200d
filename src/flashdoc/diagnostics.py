"""DiagnosticsReport: every contained problem of one build, grouped.

Groups follow the error code families:

    failed_files      FD100, FD101, FD600, FD601, FD602
    recovered_syntax  FD102
    grammar_errors    FD200, FD201
    unresolved        FD300
    cycles            FD301
    cache             FD400, FD401
    merge_conflicts   FD500, FD501
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Iterable

from .exceptions import Diagnostic, ErrorCode, Severity

_GROUPS: dict[ErrorCode, str] = {
    ErrorCode.FD100: "failed_files",
    ErrorCode.FD101: "failed_files",
    ErrorCode.FD600: "failed_files",
    ErrorCode.FD601: "failed_files",
    ErrorCode.FD602: "failed_files",
    ErrorCode.FD102: "recovered_syntax",
    ErrorCode.FD200: "grammar_errors",
    ErrorCode.FD201: "grammar_errors",
    ErrorCode.FD300: "unresolved",
    ErrorCode.FD301: "cycles",
    ErrorCode.FD400: "cache",
    ErrorCode.FD401: "cache",
    ErrorCode.FD500: "merge_conflicts",
    ErrorCode.FD501: "merge_conflicts",
}


@dataclass
class DiagnosticsReport:
    """Aggregated diagnostics, de-duplicated and in a stable order."""

    failed_files: list[Diagnostic] = field(default_factory=list)
    recovered_syntax: list[Diagnostic] = field(default_factory=list)
    grammar_errors: list[Diagnostic] = field(default_factory=list)
    unresolved: list[Diagnostic] = field(default_factory=list)
    cycles: list[Diagnostic] = field(default_factory=list)
    cache: list[Diagnostic] = field(default_factory=list)
    merge_conflicts: list[Diagnostic] = field(default_factory=list)

    @classmethod
    def collect(cls, *sources: Iterable[Diagnostic]) -> DiagnosticsReport:
        report = cls()
        seen: set[Diagnostic] = set()
        for source in sources:
            for diagnostic in source:
                if diagnostic in seen:
                    continue
                seen.add(diagnostic)
                getattr(report, _GROUPS[diagnostic.code]).append(diagnostic)
        for name in report.group_names():
            getattr(report, name).sort(key=_order)
        return report

    @staticmethod
    def group_names() -> list[str]:
        return list(dict.fromkeys(_GROUPS.values()))

    def all(self) -> list[Diagnostic]:
        return [d for name in self.group_names() for d in getattr(self, name)]

    def __len__(self) -> int:
        return len(self.all())

    @property
    def failed_paths(self) -> list[str]:
        return sorted({d.path for d in self.failed_files if d.path})

    @property
    def has_errors(self) -> bool:
        return any(d.severity is Severity.ERROR for d in self.all())

    def counts(self) -> dict[str, int]:
        return {name: len(getattr(self, name)) for name in self.group_names()}

    def by_code(self) -> dict[str, int]:
        return dict(sorted(Counter(d.code.value for d in self.all()).items()))

    def to_json(self) -> dict[str, Any]:
        return {name: [d.to_json() for d in getattr(self, name)] for name in self.group_names()}


def _order(diagnostic: Diagnostic) -> tuple[str, str, str, str]:
    return (
        diagnostic.path or "",
        diagnostic.entity_id or "",
        diagnostic.code.value,
        diagnostic.message,
    )
