"""Entity records for the documentation model.

Entities are the documentable declarations of a C++ codebase. They form a
containment forest derived from qualified scope paths:

    Namespace
        ├── Class / Struct
        │       ├── Function (member)
        │       ├── Field
        │       └── Typedef
        ├── Enum
        │       └── Field (enumerator)
        ├── Function
        └── Variable

Each entity has a stable identifier: the qualified scope path plus, for
functions, an overload discriminator built from the parameter types
(``ns::Foo::bar(int, const char *) const``).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..comments.models import DocComment

SCOPE_SEPARATOR = "::"
ANONYMOUS = "(anonymous)"


class EntityKind(Enum):
    """The closed set of entity kinds."""

    NAMESPACE = "namespace"
    CLASS = "class"
    STRUCT = "struct"
    ENUM = "enum"
    FUNCTION = "function"
    TYPEDEF = "typedef"
    FIELD = "field"
    VARIABLE = "variable"

    @property
    def is_class_like(self) -> bool:
        return self in (EntityKind.CLASS, EntityKind.STRUCT)

    @property
    def is_type(self) -> bool:
        return self in (EntityKind.CLASS, EntityKind.STRUCT, EntityKind.ENUM, EntityKind.TYPEDEF)


class Access(Enum):
    PUBLIC = "public"
    PROTECTED = "protected"
    PRIVATE = "private"


@dataclass(frozen=True)
class SourceSpan:
    """Location of a declaration. Lines and columns are 1-indexed."""

    path: str
    start_line: int
    start_column: int
    end_line: int
    end_column: int

    @property
    def sort_key(self) -> tuple[str, int, int]:
        return (self.path, self.start_line, self.start_column)

    def __str__(self) -> str:
        return f"{self.path}:{self.start_line}:{self.start_column}"

    def to_json(self) -> list[Any]:
        return [self.path, self.start_line, self.start_column, self.end_line, self.end_column]

    @classmethod
    def from_json(cls, data: list[Any]) -> SourceSpan:
        path, start_line, start_column, end_line, end_column = data
        return cls(path, start_line, start_column, end_line, end_column)


@dataclass(frozen=True)
class Entity:
    """A documentable declaration.

    Attributes:
        id: Unique identifier (qualified path + overload discriminator)
        kind: Entity kind
        name: Unqualified name
        scope: Enclosing scope names, outermost first
        signature: Whitespace-normalized declaration text without body
        span: Where the declaration is written
        unit: Path of the SourceUnit that produced the entity (None if synthesized)
        references: Referenced-type text fragments found in the signature
        bases: Base-class text fragments, in declaration order
        doc: Attached documentation comment (None means undocumented)
        has_body: True for definitions (class body, function body, enumerator list)
        access: Member access level (PUBLIC for non-members)
        template_params: Template parameter list text, if templated
        template_names: Names declared by the template parameter list
        implicit: True for scopes synthesized from qualified names
        out_of_line: True for definitions written outside their class (void Foo::bar())
    """

    id: str
    kind: EntityKind
    name: str
    scope: tuple[str, ...] = ()
    signature: str = ""
    span: SourceSpan | None = None
    unit: str | None = None
    references: tuple[str, ...] = ()
    bases: tuple[str, ...] = ()
    doc: DocComment | None = None
    has_body: bool = False
    access: Access = Access.PUBLIC
    template_params: str | None = None
    template_names: tuple[str, ...] = ()
    implicit: bool = False
    out_of_line: bool = False

    @property
    def qualified_name(self) -> str:
        return SCOPE_SEPARATOR.join((*self.scope, self.name))

    @property
    def parent(self) -> str | None:
        """Containment parent id, derived from the scope path."""
        return SCOPE_SEPARATOR.join(self.scope) if self.scope else None

    @property
    def is_documented(self) -> bool:
        return self.doc is not None and not self.doc.is_empty

    @property
    def is_anonymous(self) -> bool:
        return self.name == ANONYMOUS or ANONYMOUS in self.scope

    def to_json(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "name": self.name,
            "scope": list(self.scope),
            "signature": self.signature,
            "span": self.span.to_json() if self.span else None,
            "unit": self.unit,
            "references": list(self.references),
            "bases": list(self.bases),
            "doc": self.doc.to_json() if self.doc else None,
            "has_body": self.has_body,
            "access": self.access.value,
            "template_params": self.template_params,
            "template_names": list(self.template_names),
            "implicit": self.implicit,
            "out_of_line": self.out_of_line,
        }

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> Entity:
        return cls(
            id=data["id"],
            kind=EntityKind(data["kind"]),
            name=data["name"],
            scope=tuple(data.get("scope", ())),
            signature=data.get("signature", ""),
            span=SourceSpan.from_json(data["span"]) if data.get("span") else None,
            unit=data.get("unit"),
            references=tuple(data.get("references", ())),
            bases=tuple(data.get("bases", ())),
            doc=DocComment.from_json(data["doc"]) if data.get("doc") else None,
            has_body=data.get("has_body", False),
            access=Access(data.get("access", Access.PUBLIC.value)),
            template_params=data.get("template_params"),
            template_names=tuple(data.get("template_names", ())),
            implicit=data.get("implicit", False),
            out_of_line=data.get("out_of_line", False),
        )


def split_qualified(name: str) -> list[str]:
    """Split ``a::b<c::d>::e`` on top-level ``::`` only."""
    parts: list[str] = []
    depth = 0
    current = []
    i = 0
    while i < len(name):
        ch = name[i]
        if ch in "<(":
            depth += 1
        elif ch in ">)":
            depth -= 1
        elif ch == ":" and depth == 0 and name.startswith("::", i):
            parts.append("".join(current))
            current = []
            i += 2
            continue
        current.append(ch)
        i += 1
    parts.append("".join(current))
    return [p.strip() for p in parts]


def strip_template_args(name: str) -> str:
    """``ns::Vec<int>::iterator`` -> ``ns::Vec::iterator``."""
    out = []
    depth = 0
    for ch in name:
        if ch == "<":
            depth += 1
        elif ch == ">":
            depth = max(depth - 1, 0)
        elif depth == 0:
            out.append(ch)
    return "".join(out).replace(" ", "")
