"""EntityModel: the merged, cross-file view of every SourceUnit.

The model has two phases:

    - Accumulation: ``EntityModel`` collects SourceUnits from worker
      threads. ``add_unit`` replaces everything a path contributed before,
      so re-parsing a file never leaves stale entities behind.
    - Frozen: ``freeze()`` merges all units into a read-only
      ``FrozenModel`` that the resolver and renderer query.

Merging colliding ids is a pure function of the set of units, never of
the order they arrived in:

    1. Records sharing an id are ranked: definitions first (has a body),
       then the record with more members, then documented ones; remaining
       ties go to the lowest (unit path, span).
    2. The winner is canonical, the rest are aliases. A canonical record
       without a doc comment adopts the first documented alias's comment;
       an out-of-line definition adopts the in-class access level.
    3. Two definitions with bodies in different units, or template
       parameter lists of different arity, are reported as merge conflicts.

Usage:
    model = EntityModel()
    model.add_unit(unit)
    frozen = model.freeze()
    frozen.get("ns::Foo")
"""

from __future__ import annotations

import json
import threading
from dataclasses import replace
from typing import TYPE_CHECKING, Any, Iterator, Optional

from ..exceptions import Diagnostic, ErrorCode
from ..logging_config import get_logger
from .entities import SCOPE_SEPARATOR, Entity, EntityKind

if TYPE_CHECKING:
    from ..scanning.models import SourceUnit

logger = get_logger(__name__)

# Kinds for which two bodies in different units are a conflict.
_DEFINITION_KINDS = frozenset(
    {EntityKind.CLASS, EntityKind.STRUCT, EntityKind.ENUM, EntityKind.FUNCTION}
)


def _sort_key(entity: Entity) -> tuple[Any, ...]:
    span = entity.span.sort_key if entity.span else ("", 0, 0)
    return (entity.unit or "", span[1], span[2], entity.id)


class EntityModel:
    """Thread-safe accumulation of SourceUnits keyed by path."""

    def __init__(self) -> None:
        self._units: dict[str, SourceUnit] = {}
        self._lock = threading.Lock()

    def add_unit(self, unit: SourceUnit) -> None:
        """Add a unit, atomically replacing any previous unit for the same path."""
        with self._lock:
            replaced = unit.path in self._units
            self._units[unit.path] = unit
        if replaced:
            logger.debug(f"Replaced unit {unit.path}")

    def remove_unit(self, path: str) -> bool:
        with self._lock:
            return self._units.pop(path, None) is not None

    def unit_paths(self) -> list[str]:
        with self._lock:
            return sorted(self._units)

    def __len__(self) -> int:
        with self._lock:
            return len(self._units)

    def freeze(self) -> FrozenModel:
        """Merge every unit into an immutable FrozenModel."""
        with self._lock:
            units = [self._units[path] for path in sorted(self._units)]
        return FrozenModel.build(units)


class FrozenModel:
    """Read-only merged entity graph."""

    def __init__(
        self,
        entities: dict[str, Entity],
        aliases: dict[str, tuple[Entity, ...]],
        children: dict[Optional[str], tuple[str, ...]],
        unit_paths: tuple[str, ...],
        diagnostics: tuple[Diagnostic, ...],
    ) -> None:
        self._entities = entities
        self._aliases = aliases
        self._children = children
        self.unit_paths = unit_paths
        self.diagnostics = diagnostics

        self._by_path: dict[str, list[Entity]] = {}
        self._by_name: dict[str, list[Entity]] = {}
        for entity_id in sorted(entities):
            entity = entities[entity_id]
            self._by_path.setdefault(entity.qualified_name, []).append(entity)
            self._by_name.setdefault(entity.name, []).append(entity)

    # ── Construction ─────────────────────────────────────────────

    @classmethod
    def build(cls, units: list[SourceUnit]) -> FrozenModel:
        groups: dict[str, list[Entity]] = {}
        members: dict[tuple[str, str], set[str]] = {}
        diagnostics: list[Diagnostic] = []

        for unit in sorted(units, key=lambda u: u.path):
            diagnostics.extend(unit.diagnostics)
            for entity in unit.entities:
                groups.setdefault(entity.id, []).append(entity)
                if entity.parent is not None:
                    members.setdefault((entity.parent, entity.unit or ""), set()).add(entity.id)

        entities: dict[str, Entity] = {}
        aliases: dict[str, tuple[Entity, ...]] = {}
        for entity_id in sorted(groups):
            canonical, rest, conflicts = _merge(groups[entity_id], members)
            entities[entity_id] = canonical
            if rest:
                aliases[entity_id] = tuple(rest)
            diagnostics.extend(conflicts)

        _synthesize_scopes(entities)

        children: dict[Optional[str], list[Entity]] = {}
        for entity in entities.values():
            children.setdefault(entity.parent, []).append(entity)
        frozen_children = {
            parent: tuple(e.id for e in sorted(kids, key=_sort_key))
            for parent, kids in children.items()
        }

        logger.debug(
            f"Froze model: {len(entities)} entities, {len(aliases)} merged ids, "
            f"{len(units)} units"
        )
        return cls(
            entities,
            aliases,
            frozen_children,
            tuple(sorted(u.path for u in units)),
            tuple(diagnostics),
        )

    # ── Lookups ──────────────────────────────────────────────────

    def get(self, entity_id: str) -> Optional[Entity]:
        return self._entities.get(entity_id)

    def __getitem__(self, entity_id: str) -> Entity:
        return self._entities[entity_id]

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._entities

    def __len__(self) -> int:
        return len(self._entities)

    def __iter__(self) -> Iterator[Entity]:
        for entity_id in sorted(self._entities):
            yield self._entities[entity_id]

    def ids(self) -> list[str]:
        return sorted(self._entities)

    def children(self, entity_id: Optional[str]) -> tuple[Entity, ...]:
        """Direct children in (unit path, span) order; None gives the roots."""
        return tuple(self._entities[c] for c in self._children.get(entity_id, ()))

    def roots(self) -> tuple[Entity, ...]:
        return self.children(None)

    def by_path(self, qualified_name: str) -> tuple[Entity, ...]:
        """All entities with this qualified name (function overloads share one)."""
        return tuple(self._by_path.get(qualified_name, ()))

    def by_name(self, name: str) -> tuple[Entity, ...]:
        return tuple(self._by_name.get(name, ()))

    def aliases(self, entity_id: str) -> tuple[Entity, ...]:
        return self._aliases.get(entity_id, ())

    # ── Serialization ────────────────────────────────────────────

    def to_json(self) -> dict[str, Any]:
        return {
            "units": list(self.unit_paths),
            "entities": [self._entities[i].to_json() for i in sorted(self._entities)],
            "aliases": {
                i: [a.to_json() for a in self._aliases[i]] for i in sorted(self._aliases)
            },
            "children": {
                (parent or ""): list(kids)
                for parent, kids in sorted(self._children.items(), key=lambda kv: kv[0] or "")
            },
            "diagnostics": [d.to_json() for d in self.diagnostics],
        }

    def dumps(self) -> str:
        """Deterministic JSON dump; identical for identical input sets."""
        return json.dumps(self.to_json(), sort_keys=True, indent=2)


def _merge(
    group: list[Entity], members: dict[tuple[str, str], set[str]]
) -> tuple[Entity, list[Entity], list[Diagnostic]]:
    def rank(entity: Entity) -> tuple[Any, ...]:
        member_count = len(members.get((entity.id, entity.unit or ""), ()))
        span = entity.span.sort_key if entity.span else ("", 0, 0)
        return (
            not entity.has_body,
            -member_count,
            not entity.is_documented,
            entity.unit or "",
            span[1],
            span[2],
            entity.kind.value,
            entity.signature,
        )

    ordered = sorted(group, key=rank)
    canonical, rest = ordered[0], ordered[1:]
    if not rest:
        return canonical, [], []

    if not canonical.is_documented:
        donor = next((e for e in rest if e.is_documented), None)
        if donor is not None:
            canonical = replace(canonical, doc=donor.doc)

    if canonical.out_of_line:
        declared = next((e for e in rest if not e.out_of_line), None)
        if declared is not None:
            canonical = replace(canonical, access=declared.access)

    return canonical, rest, _conflicts(canonical, ordered)


def _conflicts(canonical: Entity, ordered: list[Entity]) -> list[Diagnostic]:
    if canonical.kind is EntityKind.NAMESPACE:
        return []
    found: list[Diagnostic] = []

    bodies = [
        e for e in ordered if e.has_body and e.kind in _DEFINITION_KINDS and e.kind is canonical.kind
    ]
    units = sorted({e.unit or "" for e in bodies})
    if len(units) > 1:
        found.append(
            Diagnostic(
                ErrorCode.FD500,
                f"conflicting definitions in {', '.join(units)}; using {canonical.unit}",
                path=canonical.unit,
                entity_id=canonical.id,
            )
        )

    arities = sorted({len(e.template_names) for e in ordered if e.template_params is not None})
    if len(arities) > 1:
        found.append(
            Diagnostic(
                ErrorCode.FD501,
                f"template parameter lists disagree (arities {', '.join(map(str, arities))})",
                path=canonical.unit,
                entity_id=canonical.id,
            )
        )
    return found


def _synthesize_scopes(entities: dict[str, Entity]) -> None:
    """Create implicit namespaces for scopes that have no declaration."""
    missing: dict[str, tuple[str, ...]] = {}
    for entity in list(entities.values()):
        scope = entity.scope
        while scope:
            scope_id = SCOPE_SEPARATOR.join(scope)
            if scope_id in entities or scope_id in missing:
                break
            missing[scope_id] = scope
            scope = scope[:-1]

    for scope_id, scope in missing.items():
        entities[scope_id] = Entity(
            id=scope_id,
            kind=EntityKind.NAMESPACE,
            name=scope[-1],
            scope=scope[:-1],
            signature=f"namespace {scope_id}",
            implicit=True,
        )
