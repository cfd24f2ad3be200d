"""Mapping from tree-sitter-cpp node types to entity kinds.

The native grammar has hundreds of node types; only a handful produce
entities. Anything not listed here is dropped by the adapter.
"""

from __future__ import annotations

from ..model.entities import EntityKind

# Containers whose children are visited as if they were in the parent scope.
TRANSPARENT: frozenset[str] = frozenset(
    {
        "linkage_specification",
        "declaration_list",
        "preproc_if",
        "preproc_ifdef",
        "preproc_else",
        "preproc_elif",
        "preproc_elifdef",
    }
)

TEMPLATE = "template_declaration"

NAMESPACE = "namespace_definition"

CLASS_SPECIFIERS: dict[str, EntityKind] = {
    "class_specifier": EntityKind.CLASS,
    "struct_specifier": EntityKind.STRUCT,
    "union_specifier": EntityKind.STRUCT,
}

ENUM_SPECIFIER = "enum_specifier"
ENUMERATOR = "enumerator"

TYPE_SPECIFIERS: frozenset[str] = frozenset({*CLASS_SPECIFIERS, ENUM_SPECIFIER})

# Declarations that become functions, fields or variables depending on
# their declarator.
DECLARATIONS: frozenset[str] = frozenset({"function_definition", "declaration", "field_declaration"})

TYPEDEFS: frozenset[str] = frozenset({"type_definition", "alias_declaration"})

# Nodes that can name a declared entity at the bottom of a declarator chain.
NAME_NODES: frozenset[str] = frozenset(
    {
        "identifier",
        "field_identifier",
        "type_identifier",
        "qualified_identifier",
        "destructor_name",
        "operator_name",
        "template_function",
        "operator_cast",
    }
)

# Type-name nodes collected as references from signatures.
TYPE_REFERENCE_NODES: frozenset[str] = frozenset(
    {"type_identifier", "qualified_identifier", "template_type"}
)

ACCESS_SPECIFIER = "access_specifier"
BASE_CLAUSE = "base_class_clause"


def classify(node_type: str) -> EntityKind | None:
    """Entity kind produced directly by a node type, if fixed.

    Declarations (whose kind depends on the declarator) and containers
    return None; so does every unknown node type.
    """
    if node_type == NAMESPACE:
        return EntityKind.NAMESPACE
    if node_type in CLASS_SPECIFIERS:
        return CLASS_SPECIFIERS[node_type]
    if node_type == ENUM_SPECIFIER:
        return EntityKind.ENUM
    if node_type in TYPEDEFS:
        return EntityKind.TYPEDEF
    if node_type == ENUMERATOR:
        return EntityKind.FIELD
    return None


def declarator_kind(is_function: bool, in_class: bool) -> EntityKind:
    """Kind for a declarator inside a declaration node."""
    if is_function:
        return EntityKind.FUNCTION
    return EntityKind.FIELD if in_class else EntityKind.VARIABLE


def is_handled(node_type: str) -> bool:
    return (
        node_type in TRANSPARENT
        or node_type == TEMPLATE
        or node_type in DECLARATIONS
        or classify(node_type) is not None
    )
