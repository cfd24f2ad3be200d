"""Reference resolver: one whole-graph pass over a FrozenModel.

Lookup order for every mention:

    1. the mentioning entity's scope, working outward
       (``Foo`` inside ``ns::detail`` tries ``ns::detail::Foo``, ``ns::Foo``)
    2. the global path (``Foo``); a leading ``::`` goes straight here
    3. external library rules (``std::`` goes to cppreference by default)
    4. unresolved

Typedef chains are followed when a base class names an alias. Inherited
members are collected depth-first, left to right over the resolved bases.
Every walk that can meet a cycle (alias chains, inheritance) carries its
own visited set, so cyclic graphs terminate after visiting each node once.

The pass never mutates entities. Per-entity reference resolution is
independent and can run on a thread pool; results are assembled in
sorted id order so the index is the same either way.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, Optional, Sequence

from ..comments.models import TagKind
from ..config import DEFAULT_EXTERNAL_LIBS, ExternalLib
from ..exceptions import Diagnostic, ErrorCode, Severity
from ..logging_config import get_logger
from ..model.entities import SCOPE_SEPARATOR, Access, Entity, EntityKind, strip_template_args
from ..model.store import FrozenModel
from .references import CrossReference, CrossReferenceIndex, InheritedMember, RefOrigin

logger = get_logger(__name__)


def _normalize_mention(text: str) -> tuple[str, bool]:
    """Strip template arguments, call parens and a leading ``::``."""
    name = strip_template_args(text)
    if name.endswith("()"):
        name = name[:-2]
    absolute = name.startswith("::")
    return (name[2:] if absolute else name), absolute


class ReferenceResolver:
    """Resolves every mention in a FrozenModel into a CrossReferenceIndex."""

    def __init__(
        self,
        model: FrozenModel,
        external_libs: Sequence[ExternalLib] = DEFAULT_EXTERNAL_LIBS,
        max_workers: Optional[int] = None,
    ) -> None:
        self.model = model
        self.external_libs = tuple(external_libs)
        self.max_workers = max_workers

    # ── Public API ───────────────────────────────────────────────

    def resolve(self) -> CrossReferenceIndex:
        entities = list(self.model)

        if self.max_workers and self.max_workers > 1 and len(entities) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                results = list(executor.map(self.resolve_entity, entities))
        else:
            results = [self.resolve_entity(e) for e in entities]

        refs = {e.id: r for e, r in zip(entities, results) if r}

        bases: dict[str, tuple[str, ...]] = {}
        for entity in entities:
            if entity.kind.is_class_like and entity.bases:
                resolved = self._resolve_bases(entity, refs.get(entity.id, ()))
                if resolved:
                    bases[entity.id] = resolved

        derived: dict[str, list[str]] = {}
        for class_id in sorted(bases):
            for base in bases[class_id]:
                derived.setdefault(base, []).append(class_id)

        diagnostics: list[Diagnostic] = []
        inherited: dict[str, tuple[InheritedMember, ...]] = {}
        for class_id in sorted(bases):
            members, cyclic = self.inherited_members(class_id, bases)
            if members:
                inherited[class_id] = members
            if cyclic:
                diagnostics.append(
                    Diagnostic(
                        ErrorCode.FD301,
                        "class inherits from itself through its bases",
                        path=self.model[class_id].unit,
                        entity_id=class_id,
                    )
                )

        index = CrossReferenceIndex(
            refs=refs,
            bases=bases,
            derived={k: tuple(v) for k, v in derived.items()},
            inherited=inherited,
            diagnostics=tuple(diagnostics),
        )
        logger.debug(
            f"Resolved {sum(len(r) for r in refs.values())} references, "
            f"{len(index.unresolved())} unresolved"
        )
        return index

    def resolve_entity(self, entity: Entity) -> tuple[CrossReference, ...]:
        """All references mentioned by one entity, in mention order."""
        refs: list[CrossReference] = []
        for text, origin in self._mentions(entity):
            target, url = self.lookup(text, entity, origin)
            refs.append(CrossReference(entity.id, text, origin, target=target, url=url))
        return tuple(refs)

    def lookup(
        self, text: str, entity: Entity, origin: RefOrigin = RefOrigin.SIGNATURE
    ) -> tuple[Optional[str], Optional[str]]:
        """Return (entity id, None), (None, url) or (None, None)."""
        name, absolute = _normalize_mention(text)
        if not name:
            return None, None
        prefer_types = origin in (RefOrigin.SIGNATURE, RefOrigin.BASE, RefOrigin.THROWS)

        # Innermost scope first; the global path is the outermost scope.
        scopes = () if absolute else tuple(self._enclosing_scopes(entity, origin))
        for scope in (*scopes, ()):
            path = SCOPE_SEPARATOR.join((*scope, name))
            if scope and scope[-1] == name and self._is_class_path(scope):
                # Injected class name: the class, not its constructors.
                path = SCOPE_SEPARATOR.join(scope)
            target = self._pick(self.model.by_path(path), prefer_types)
            if target is not None:
                return target, None

        for lib in self.external_libs:
            if lib.matches(name):
                return None, lib.format(name)
        return None, None

    def inherited_members(
        self, class_id: str, bases: dict[str, tuple[str, ...]]
    ) -> tuple[tuple[InheritedMember, ...], bool]:
        """Depth-first, left-to-right inherited member walk.

        Members are excluded when a more-derived class already declares a
        member with the same name, when they are private, and when they
        are constructors or destructors. Returns the members and whether
        the walk ran into ``class_id`` again (an inheritance cycle).
        """
        hidden = {child.name for child in self.model.children(class_id)}
        visited = {class_id}
        cyclic = False
        members: list[InheritedMember] = []

        stack = list(reversed(bases.get(class_id, ())))
        while stack:
            base_id = stack.pop()
            if base_id == class_id:
                cyclic = True
            if base_id in visited:
                continue
            visited.add(base_id)

            base = self.model.get(base_id)
            if base is None:
                continue
            children = self.model.children(base_id)
            for member in children:
                if member.access is Access.PRIVATE or member.name in hidden:
                    continue
                if member.kind is EntityKind.FUNCTION and member.name in (base.name, f"~{base.name}"):
                    continue
                members.append(InheritedMember(member.id, base_id))
            hidden.update(child.name for child in children)
            stack.extend(reversed(bases.get(base_id, ())))

        return tuple(members), cyclic

    # ── Internals ────────────────────────────────────────────────

    def _mentions(self, entity: Entity) -> Iterable[tuple[str, RefOrigin]]:
        for text in entity.references:
            yield text, RefOrigin.SIGNATURE
        for text in entity.bases:
            yield text, RefOrigin.BASE
        if entity.doc is not None:
            for tag in entity.doc.tags:
                if tag.kind is TagKind.SEE and tag.name:
                    yield tag.name, RefOrigin.SEE
                elif tag.kind is TagKind.THROWS and tag.name:
                    yield tag.name, RefOrigin.THROWS

    def _enclosing_scopes(self, entity: Entity, origin: RefOrigin) -> Iterable[tuple[str, ...]]:
        scope = entity.scope
        if origin is not RefOrigin.BASE and (
            entity.kind.is_class_like or entity.kind is EntityKind.NAMESPACE
        ):
            scope = (*scope, entity.name)
        for depth in range(len(scope), 0, -1):
            yield scope[:depth]

    def _is_class_path(self, scope: tuple[str, ...]) -> bool:
        return any(e.kind.is_class_like for e in self.model.by_path(SCOPE_SEPARATOR.join(scope)))

    def _pick(self, candidates: Sequence[Entity], prefer_types: bool) -> Optional[str]:
        if not candidates:
            return None

        def rank(entity: Entity) -> tuple[bool, bool, str]:
            is_function = entity.kind is EntityKind.FUNCTION
            return (entity.implicit, prefer_types and is_function, entity.id)

        return min(candidates, key=rank).id

    def _resolve_bases(
        self, entity: Entity, refs: Sequence[CrossReference]
    ) -> tuple[str, ...]:
        resolved: list[str] = []
        for ref in refs:
            if ref.origin is not RefOrigin.BASE or ref.target is None:
                continue
            target = self._follow_typedefs(ref.target)
            if target is not None and target not in resolved:
                resolved.append(target)
        return tuple(resolved)

    def _follow_typedefs(self, entity_id: str) -> Optional[str]:
        """Follow an alias chain to a class-like entity; None on cycles or dead ends."""
        visited: set[str] = set()
        current: Optional[str] = entity_id
        while current is not None:
            if current in visited:
                logger.debug(f"Alias cycle through {current}")
                return None
            visited.add(current)
            entity = self.model.get(current)
            if entity is None:
                return None
            if entity.kind.is_class_like:
                return current
            if entity.kind is not EntityKind.TYPEDEF or not entity.references:
                return None
            current, _ = self.lookup(entity.references[0], entity, RefOrigin.BASE)
        return None


def unresolved_diagnostics(index: CrossReferenceIndex, model: FrozenModel) -> list[Diagnostic]:
    """One FD300 diagnostic per unresolved mention."""
    found = []
    for ref in index.unresolved():
        entity = model.get(ref.source)
        found.append(
            Diagnostic(
                ErrorCode.FD300,
                f"unresolved {ref.origin.value} reference '{ref.text}'",
                path=entity.unit if entity else None,
                entity_id=ref.source,
                severity=Severity.INFO,
            )
        )
    return found
