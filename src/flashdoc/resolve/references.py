"""Cross-reference records produced by the resolver."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from ..exceptions import Diagnostic


class RefOrigin(Enum):
    """Where a mention was found."""

    SIGNATURE = "signature"
    BASE = "base"
    SEE = "see"
    THROWS = "throws"


@dataclass(frozen=True)
class CrossReference:
    """A mention mapped to its target.

    Exactly one of ``target`` (an entity id) and ``url`` (an external
    library link) is set for a resolved reference; neither for an
    unresolved one.
    """

    source: str
    text: str
    origin: RefOrigin
    target: Optional[str] = None
    url: Optional[str] = None

    @property
    def resolved(self) -> bool:
        return self.target is not None or self.url is not None

    @property
    def is_external(self) -> bool:
        return self.target is None and self.url is not None

    def to_json(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "text": self.text,
            "origin": self.origin.value,
            "target": self.target,
            "url": self.url,
        }


@dataclass(frozen=True)
class InheritedMember:
    """``member`` is reachable from a derived class through base ``via``."""

    member: str
    via: str


@dataclass
class CrossReferenceIndex:
    """Write-once result of a resolver pass.

    Attributes:
        refs: Entity id -> references found in that entity, in mention order
        bases: Class id -> resolved base class ids, declaration order
        derived: Class id -> ids of classes that list it as a direct base
        inherited: Class id -> inherited members in lookup order
        diagnostics: Resolution problems other than unresolved mentions
    """

    refs: dict[str, tuple[CrossReference, ...]] = field(default_factory=dict)
    bases: dict[str, tuple[str, ...]] = field(default_factory=dict)
    derived: dict[str, tuple[str, ...]] = field(default_factory=dict)
    inherited: dict[str, tuple[InheritedMember, ...]] = field(default_factory=dict)
    diagnostics: tuple[Diagnostic, ...] = ()

    def references(self, entity_id: str) -> tuple[CrossReference, ...]:
        return self.refs.get(entity_id, ())

    def link(self, entity_id: str, text: str) -> Optional[CrossReference]:
        """The reference for a given mention text, if it was resolved."""
        for ref in self.refs.get(entity_id, ()):
            if ref.text == text and ref.resolved:
                return ref
        return None

    def resolved_bases(self, entity_id: str) -> tuple[str, ...]:
        return self.bases.get(entity_id, ())

    def derived_classes(self, entity_id: str) -> tuple[str, ...]:
        return self.derived.get(entity_id, ())

    def inherited_members(self, entity_id: str) -> tuple[InheritedMember, ...]:
        return self.inherited.get(entity_id, ())

    def unresolved(self) -> list[CrossReference]:
        return [
            ref
            for entity_id in sorted(self.refs)
            for ref in self.refs[entity_id]
            if not ref.resolved
        ]

    def to_json(self) -> dict[str, Any]:
        return {
            "refs": {k: [r.to_json() for r in self.refs[k]] for k in sorted(self.refs)},
            "bases": {k: list(self.bases[k]) for k in sorted(self.bases)},
            "derived": {k: list(self.derived[k]) for k in sorted(self.derived)},
            "inherited": {
                k: [[m.member, m.via] for m in self.inherited[k]] for k in sorted(self.inherited)
            },
        }
