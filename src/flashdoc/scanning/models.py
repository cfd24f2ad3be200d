"""Data models for the scanning layer.

TranslationUnit is what the native backend hands back for one file;
SourceUnit is the adapter's output: every entity the file contributes plus
the diagnostics produced while adapting it. SourceUnits are what the cache
stores and what the entity model merges.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ..exceptions import Diagnostic
from ..model.entities import Entity


@dataclass(frozen=True)
class CompileArgs:
    """Parse arguments shared by every file in one build.

    ``defines`` is a sorted tuple of (name, value) pairs so the record is
    hashable and compares independently of definition order.
    """

    include_paths: tuple[str, ...] = ()
    defines: tuple[tuple[str, str], ...] = ()
    standard: str = "c++17"
    strict: bool = False


@dataclass
class TranslationUnit:
    """A parsed file as returned by the backend.

    Attributes:
        path: Source path as given to the backend
        source: Source bytes after define substitution (node offsets index this)
        tree: Backend syntax tree
        content_hash: sha256 of the raw bytes on disk
        error_count: Number of syntax-error nodes in the tree
    """

    path: str
    source: bytes
    tree: Any
    content_hash: str
    error_count: int = 0

    @property
    def root(self) -> Any:
        return self.tree.root_node


@dataclass(frozen=True)
class SourceUnit:
    """Everything one translation unit contributes to the model."""

    path: str
    content_hash: str
    fingerprint: str
    entities: tuple[Entity, ...] = ()
    diagnostics: tuple[Diagnostic, ...] = field(default=())

    def to_json(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "content_hash": self.content_hash,
            "fingerprint": self.fingerprint,
            "entities": [e.to_json() for e in self.entities],
            "diagnostics": [d.to_json() for d in self.diagnostics],
        }

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> SourceUnit:
        return cls(
            path=data["path"],
            content_hash=data["content_hash"],
            fingerprint=data["fingerprint"],
            entities=tuple(Entity.from_json(e) for e in data.get("entities", [])),
            diagnostics=tuple(Diagnostic.from_json(d) for d in data.get("diagnostics", [])),
        )
