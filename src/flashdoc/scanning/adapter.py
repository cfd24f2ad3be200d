"""AST adapter: turns a tree-sitter translation unit into entities.

The adapter walks the syntax tree once, carrying the enclosing scope path
down the recursion. For every declaration that maps to an entity kind it
computes the qualified id, the whitespace-normalized signature, the types
referenced by that signature and the attached documentation comment.

Comment association rules:
    - ``///``, ``//!``, ``/** */`` and ``/*! */`` are documentation comments;
      plain ``//`` and ``/* */`` comments are not and break a pending block.
    - Consecutive doc comments with no blank line between them form one
      block. The block attaches to the next named node when no blank line
      separates them.
    - ``///<`` / ``/**<`` trailing comments on the last line of a
      declaration attach to that declaration when it has no doc yet.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from typing import Any, Optional

from ..comments import parse_doc_comment
from ..comments.models import DocComment
from ..exceptions import Diagnostic, ErrorCode
from ..model.entities import (
    ANONYMOUS,
    SCOPE_SEPARATOR,
    Access,
    Entity,
    EntityKind,
    SourceSpan,
    split_qualified,
    strip_template_args,
)
from . import kinds
from .models import SourceUnit, TranslationUnit

_DOC_PREFIXES = ("///", "//!", "/**", "/*!")
_TRAILING_PREFIXES = ("///<", "//!<", "/**<", "/*!<")

_WS_RE = re.compile(r"\s+")
_POINTER_RE = re.compile(r"\s*([*&]+)\s*")

_SKIP_FIELDS = ("body", "default_value", "value")


def is_doc_comment(text: str) -> bool:
    if text.startswith("////") or text.startswith("/**/"):
        return False
    return text.startswith(_DOC_PREFIXES)


def is_trailing_comment(text: str) -> bool:
    return text.startswith(_TRAILING_PREFIXES)


def squash(text: str) -> str:
    """Collapse whitespace and tidy spacing around punctuation."""
    text = _WS_RE.sub(" ", text).strip()
    text = re.sub(r"\(\s+", "(", text)
    text = re.sub(r"\s+\)", ")", text)
    text = re.sub(r"\s+,", ",", text)
    text = re.sub(r"\s*::\s*", "::", text)
    return text


@dataclass(frozen=True)
class _Scope:
    path: tuple[str, ...] = ()
    access: Access = Access.PUBLIC
    in_class: bool = False
    template_names: tuple[str, ...] = ()


@dataclass(frozen=True)
class _Template:
    params: str
    names: tuple[str, ...]


class EntityAdapter:
    """Converts TranslationUnits into SourceUnits.

    Stateless; one instance can be shared by every worker thread.
    """

    def adapt(self, tu: TranslationUnit, fingerprint: str) -> SourceUnit:
        builder = _UnitBuilder(tu)
        builder.walk_container(tu.root, _Scope())

        diagnostics = list(builder.diagnostics)
        if tu.error_count:
            diagnostics.insert(
                0,
                Diagnostic(
                    ErrorCode.FD102,
                    f"recovered from {tu.error_count} syntax error(s); "
                    "declarations inside erroneous regions were dropped",
                    path=tu.path,
                ),
            )

        return SourceUnit(
            path=tu.path,
            content_hash=tu.content_hash,
            fingerprint=fingerprint,
            entities=tuple(builder.entities),
            diagnostics=tuple(diagnostics),
        )


class _UnitBuilder:
    """Single-use walker collecting the entities of one translation unit."""

    def __init__(self, tu: TranslationUnit) -> None:
        self.tu = tu
        self.source = tu.source
        self.entities: list[Entity] = []
        self.diagnostics: list[Diagnostic] = []

    # ── Helpers ──────────────────────────────────────────────────

    def text(self, node: Any, start: Optional[int] = None, end: Optional[int] = None) -> str:
        s = node.start_byte if start is None else start
        e = node.end_byte if end is None else end
        return self.source[s:e].decode("utf-8", errors="replace")

    def span(self, node: Any) -> SourceSpan:
        return SourceSpan(
            path=self.tu.path,
            start_line=node.start_point[0] + 1,
            start_column=node.start_point[1] + 1,
            end_line=node.end_point[0] + 1,
            end_column=node.end_point[1] + 1,
        )

    def parse_doc(self, raw: Optional[str], entity_id: str) -> Optional[DocComment]:
        if raw is None:
            return None
        doc = parse_doc_comment(raw)
        if doc.error is not None:
            code = ErrorCode.FD201 if doc.error == "unterminated code block" else ErrorCode.FD200
            self.diagnostics.append(
                Diagnostic(code, doc.error, path=self.tu.path, entity_id=entity_id)
            )
        return doc

    def emit(self, entity: Entity) -> int:
        self.entities.append(entity)
        return len(self.entities) - 1

    # ── Containers ───────────────────────────────────────────────

    def walk_container(self, container: Any, scope: _Scope) -> list[int]:
        """Visit the children of a scope, tracking comments and access."""
        produced: list[int] = []
        pending: list[Any] = []
        last: list[int] = []
        last_end_row = -1
        access = scope.access

        for child in container.children:
            if child.type == "comment":
                text = self.text(child)
                if is_trailing_comment(text):
                    if last and child.start_point[0] == last_end_row:
                        self._attach_trailing(last, text)
                    pending = []
                    continue
                if is_doc_comment(text):
                    if pending and child.start_point[0] > pending[-1].end_point[0] + 1:
                        pending = []
                    pending.append(child)
                else:
                    pending = []
                continue

            if not child.is_named:
                continue

            if child.type == kinds.ACCESS_SPECIFIER:
                access = Access(self.text(child).rstrip(":").strip())
                pending, last = [], []
                continue

            doc_raw = None
            if pending and pending[-1].end_point[0] >= child.start_point[0] - 1:
                doc_raw = "\n".join(self.text(c) for c in pending)
            pending = []

            # ERROR subtrees are dropped; the unit-level diagnostic covers them
            if child.type == "ERROR":
                last = []
                continue

            last = self.visit(child, replace(scope, access=access), doc_raw, None)
            last_end_row = child.end_point[0]
            produced.extend(last)

        return produced

    def _attach_trailing(self, indices: list[int], raw: str) -> None:
        for i in indices:
            entity = self.entities[i]
            if entity.doc is None:
                self.entities[i] = replace(entity, doc=self.parse_doc(raw, entity.id))

    # ── Dispatch ─────────────────────────────────────────────────

    def visit(
        self, node: Any, scope: _Scope, doc_raw: Optional[str], template: Optional[_Template]
    ) -> list[int]:
        t = node.type

        if t in kinds.TRANSPARENT:
            if t == "linkage_specification":
                body = node.child_by_field_name("body")
                if body is None:
                    return []
                if body.type == "declaration_list":
                    return self.walk_container(body, scope)
                return self.visit(body, scope, doc_raw, None)
            return self.walk_container(node, scope)

        if t == kinds.TEMPLATE:
            return self._template(node, scope, doc_raw)
        if t == kinds.NAMESPACE:
            return self._namespace(node, scope, doc_raw)
        if t in kinds.CLASS_SPECIFIERS:
            return self._class(node, scope, doc_raw, template)
        if t == kinds.ENUM_SPECIFIER:
            return self._enum(node, scope, doc_raw)
        if t == kinds.ENUMERATOR:
            return self._enumerator(node, scope, doc_raw)
        if t in kinds.TYPEDEFS:
            return self._typedef(node, scope, doc_raw, template)
        if t in kinds.DECLARATIONS:
            return self._declaration(node, scope, doc_raw, template)
        return []

    # ── Entity kinds ─────────────────────────────────────────────

    def _template(self, node: Any, scope: _Scope, doc_raw: Optional[str]) -> list[int]:
        params = node.child_by_field_name("parameters")
        template = _Template(
            params=squash("template" + self.text(params)) if params is not None else "template<>",
            names=self._template_names(params),
        )
        for child in node.named_children:
            if child == params or child.type == "comment":
                continue
            if kinds.is_handled(child.type):
                return self.visit(child, scope, doc_raw, template)
        return []

    def _template_names(self, params: Any) -> tuple[str, ...]:
        if params is None:
            return ()
        names: list[str] = []
        for param in params.named_children:
            node = param.child_by_field_name("name")
            if node is None:
                node = param.child_by_field_name("declarator")
            if node is None:
                idents = [c for c in param.named_children if c.type in ("type_identifier", "identifier")]
                node = idents[-1] if idents else None
            if node is not None:
                name = self._innermost_name(node)
                if name is not None:
                    names.append(self.text(name))
        return tuple(names)

    def _namespace(self, node: Any, scope: _Scope, doc_raw: Optional[str]) -> list[int]:
        name_node = node.child_by_field_name("name")
        names = split_qualified(self.text(name_node)) if name_node is not None else [ANONYMOUS]
        body = node.child_by_field_name("body")

        produced: list[int] = []
        path = scope.path
        for i, name in enumerate(names):
            is_last = i == len(names) - 1
            entity_id = SCOPE_SEPARATOR.join((*path, name))
            produced.append(
                self.emit(
                    Entity(
                        id=entity_id,
                        kind=EntityKind.NAMESPACE,
                        name=name,
                        scope=path,
                        signature=f"namespace {SCOPE_SEPARATOR.join((*path, name))}",
                        span=self.span(node),
                        unit=self.tu.path,
                        doc=self.parse_doc(doc_raw, entity_id) if is_last else None,
                        has_body=body is not None,
                    )
                )
            )
            path = (*path, name)

        if body is not None:
            self.walk_container(body, _Scope(path=path))
        return produced

    def _class(
        self, node: Any, scope: _Scope, doc_raw: Optional[str], template: Optional[_Template]
    ) -> list[int]:
        kind = kinds.CLASS_SPECIFIERS[node.type]
        name_node = node.child_by_field_name("name")
        body = node.child_by_field_name("body")

        if name_node is None:
            # anonymous struct/union: members belong to the enclosing scope
            if body is None:
                return []
            return self.walk_container(body, replace(scope, access=Access.PUBLIC))

        *qualifier, name = split_qualified(squash(self.text(name_node)))
        qualifier = [strip_template_args(q) for q in qualifier]
        path = (*scope.path, *qualifier)
        entity_id = SCOPE_SEPARATOR.join((*path, name))
        template_names = (*scope.template_names, *(template.names if template else ()))

        end = body.start_byte if body is not None else node.end_byte
        signature = squash(self.text(node, end=end))
        if template is not None:
            signature = f"{template.params} {signature}"

        bases = self._bases(node)
        references = self._references(
            node, exclude={name, *template_names}, skip=[name_node, body]
        )

        index = self.emit(
            Entity(
                id=entity_id,
                kind=kind,
                name=name,
                scope=path,
                signature=signature,
                span=self.span(node),
                unit=self.tu.path,
                references=tuple(r for r in references if r not in bases),
                bases=bases,
                doc=self.parse_doc(doc_raw, entity_id),
                has_body=body is not None,
                access=scope.access if scope.in_class else Access.PUBLIC,
                template_params=template.params if template else None,
                template_names=template.names if template else (),
                out_of_line=bool(qualifier) and not scope.in_class,
            )
        )

        if body is not None:
            member_scope = _Scope(
                path=(*path, name),
                access=Access.PRIVATE if kind is EntityKind.CLASS else Access.PUBLIC,
                in_class=True,
                template_names=template_names,
            )
            self.walk_container(body, member_scope)
        return [index]

    def _bases(self, node: Any) -> tuple[str, ...]:
        for child in node.named_children:
            if child.type == kinds.BASE_CLAUSE:
                return tuple(
                    squash(self.text(base))
                    for base in child.named_children
                    if base.type in kinds.TYPE_REFERENCE_NODES
                )
        return ()

    def _enum(self, node: Any, scope: _Scope, doc_raw: Optional[str]) -> list[int]:
        name_node = node.child_by_field_name("name")
        body = node.child_by_field_name("body")
        if name_node is None:
            if body is None:
                return []
            return self.walk_container(body, replace(scope, in_class=False, access=Access.PUBLIC))

        *qualifier, name = split_qualified(squash(self.text(name_node)))
        qualifier = [strip_template_args(q) for q in qualifier]
        path = (*scope.path, *qualifier)
        entity_id = SCOPE_SEPARATOR.join((*path, name))
        end = body.start_byte if body is not None else node.end_byte

        index = self.emit(
            Entity(
                id=entity_id,
                kind=EntityKind.ENUM,
                name=name,
                scope=path,
                signature=squash(self.text(node, end=end)),
                span=self.span(node),
                unit=self.tu.path,
                references=self._references(node, exclude={name}, skip=[name_node, body]),
                doc=self.parse_doc(doc_raw, entity_id),
                has_body=body is not None,
                access=scope.access if scope.in_class else Access.PUBLIC,
            )
        )
        if body is not None:
            self.walk_container(body, _Scope(path=(*path, name), in_class=True))
        return [index]

    def _enumerator(self, node: Any, scope: _Scope, doc_raw: Optional[str]) -> list[int]:
        name_node = node.child_by_field_name("name")
        if name_node is None:
            return []
        name = self.text(name_node)
        entity_id = SCOPE_SEPARATOR.join((*scope.path, name))
        return [
            self.emit(
                Entity(
                    id=entity_id,
                    kind=EntityKind.FIELD,
                    name=name,
                    scope=scope.path,
                    signature=squash(self.text(node)),
                    span=self.span(node),
                    unit=self.tu.path,
                    doc=self.parse_doc(doc_raw, entity_id),
                    has_body=True,
                )
            )
        ]

    def _typedef(
        self, node: Any, scope: _Scope, doc_raw: Optional[str], template: Optional[_Template]
    ) -> list[int]:
        produced: list[int] = []
        type_node = node.child_by_field_name("type")
        access = scope.access if scope.in_class else Access.PUBLIC

        if node.type == "alias_declaration":
            name_nodes = [node.child_by_field_name("name")]
        else:
            name_nodes = [self._innermost_name(d) for d in node.children_by_field_name("declarator")]
            if type_node is not None and type_node.type in kinds.TYPE_SPECIFIERS:
                if type_node.child_by_field_name("body") is not None and type_node.child_by_field_name("name") is not None:
                    produced.extend(self.visit(type_node, scope, doc_raw, None))

        signature = self._signature_without_body(node, type_node)
        if template is not None:
            signature = f"{template.params} {signature}"

        for name_node in name_nodes:
            if name_node is None:
                continue
            name = self.text(name_node)
            entity_id = SCOPE_SEPARATOR.join((*scope.path, name))
            exclude = {name, *scope.template_names, *(template.names if template else ())}
            produced.append(
                self.emit(
                    Entity(
                        id=entity_id,
                        kind=EntityKind.TYPEDEF,
                        name=name,
                        scope=scope.path,
                        signature=signature,
                        span=self.span(node),
                        unit=self.tu.path,
                        references=self._references(node, exclude=exclude, skip=[name_node]),
                        doc=self.parse_doc(doc_raw, entity_id),
                        has_body=True,
                        access=access,
                        template_params=template.params if template else None,
                        template_names=template.names if template else (),
                    )
                )
            )
        return produced

    def _signature_without_body(self, node: Any, type_node: Any) -> str:
        body = type_node.child_by_field_name("body") if type_node is not None else None
        if body is None:
            text = self.text(node)
        else:
            text = self.text(node, end=body.start_byte) + "{ ... }" + self.text(node, start=body.end_byte)
        return squash(text).rstrip(";").strip()

    def _declaration(
        self, node: Any, scope: _Scope, doc_raw: Optional[str], template: Optional[_Template]
    ) -> list[int]:
        produced: list[int] = []
        type_node = node.child_by_field_name("type")
        declarators = node.children_by_field_name("declarator")

        if type_node is not None and type_node.type in kinds.TYPE_SPECIFIERS:
            has_body = type_node.child_by_field_name("body") is not None
            if has_body or not declarators:
                produced.extend(self.visit(type_node, scope, doc_raw, template if not declarators else None))

        for declarator in declarators:
            function = _function_declarator(declarator)
            if function is not None:
                index = self._function(node, declarator, function, scope, doc_raw, template)
            else:
                index = self._variable(node, type_node, declarator, scope, doc_raw, template)
            if index is not None:
                produced.append(index)
        return produced

    def _function(
        self,
        node: Any,
        declarator: Any,
        function: Any,
        scope: _Scope,
        doc_raw: Optional[str],
        template: Optional[_Template],
    ) -> Optional[int]:
        name_node = function.child_by_field_name("declarator")
        if name_node is None:
            return None
        *qualifier, name = split_qualified(_normalize_operator(squash(self.text(name_node))))
        qualifier = [strip_template_args(q) for q in qualifier]
        path = (*scope.path, *qualifier)
        discriminator = self._discriminator(function)
        entity_id = SCOPE_SEPARATOR.join((*path, name)) + discriminator

        body = node.child_by_field_name("body")
        has_body = body is not None or any(
            c.type in ("default_method_clause", "delete_method_clause") for c in node.children
        )
        end = node.end_byte
        for child in node.children:
            if child == body or child.type == "field_initializer_list":
                end = child.start_byte
                break
        signature = squash(self.text(node, end=end)).rstrip(";").strip()
        if template is not None:
            signature = f"{template.params} {signature}"

        template_names = (*scope.template_names, *(template.names if template else ()))
        exclude = {name, *template_names, *qualifier}
        if qualifier:
            exclude.add(SCOPE_SEPARATOR.join(qualifier))

        return self.emit(
            Entity(
                id=entity_id,
                kind=EntityKind.FUNCTION,
                name=name,
                scope=path,
                signature=signature,
                span=self.span(node),
                unit=self.tu.path,
                references=self._references(node, exclude=exclude, skip=[name_node, body]),
                doc=self.parse_doc(doc_raw, entity_id),
                has_body=has_body,
                access=scope.access if scope.in_class else Access.PUBLIC,
                template_params=template.params if template else None,
                template_names=template.names if template else (),
                out_of_line=bool(qualifier) and not scope.in_class,
            )
        )

    def _discriminator(self, function: Any) -> str:
        params = function.child_by_field_name("parameters")
        types: list[str] = []
        if params is not None:
            for param in params.named_children:
                if param.type == "comment":
                    continue
                types.append(self._param_type(param))
        if types == ["void"]:
            types = []

        qualifiers = [
            squash(self.text(c))
            for c in function.children
            if c.type in ("type_qualifier", "ref_qualifier")
        ]
        suffix = " " + " ".join(qualifiers) if qualifiers else ""
        return "(" + ", ".join(types) + ")" + suffix

    def _param_type(self, param: Any) -> str:
        if param.type == "variadic_parameter" or self.text(param).strip() == "...":
            return "..."
        end = param.end_byte
        for child in param.children:
            if child.type == "=":
                end = child.start_byte
                break

        declarator = param.child_by_field_name("declarator")
        name = self._innermost_name(declarator) if declarator is not None else None
        if name is not None and name.type == "identifier":
            text = self.text(param, end=name.start_byte) + self.text(param, start=name.end_byte, end=end)
        else:
            text = self.text(param, end=end)
        return _POINTER_RE.sub(r" \1", squash(text)).strip()

    def _variable(
        self,
        node: Any,
        type_node: Any,
        declarator: Any,
        scope: _Scope,
        doc_raw: Optional[str],
        template: Optional[_Template],
    ) -> Optional[int]:
        name_node = self._innermost_name(declarator)
        if name_node is None:
            return None
        *qualifier, name = split_qualified(squash(self.text(name_node)))
        qualifier = [strip_template_args(q) for q in qualifier]
        path = (*scope.path, *qualifier)
        entity_id = SCOPE_SEPARATOR.join((*path, name))

        inner = declarator
        if declarator.type == "init_declarator":
            inner = declarator.child_by_field_name("declarator") or declarator
        prefix_end = type_node.end_byte if type_node is not None else declarator.start_byte
        prefix = self.text(node, end=prefix_end)
        if type_node is not None and type_node.child_by_field_name("body") is not None:
            prefix = self.text(node, end=type_node.child_by_field_name("body").start_byte) + "{ ... }"
        signature = squash(f"{prefix} {self.text(inner)}")
        if template is not None:
            signature = f"{template.params} {signature}"

        kind = kinds.declarator_kind(is_function=False, in_class=scope.in_class or bool(qualifier))
        exclude = {name, *scope.template_names, *(template.names if template else ()), *qualifier}
        return self.emit(
            Entity(
                id=entity_id,
                kind=kind,
                name=name,
                scope=path,
                signature=signature,
                span=self.span(node),
                unit=self.tu.path,
                references=self._references(node, exclude=exclude, skip=[name_node]),
                doc=self.parse_doc(doc_raw, entity_id),
                has_body=True,
                access=scope.access if scope.in_class else Access.PUBLIC,
                template_params=template.params if template else None,
                template_names=template.names if template else (),
                out_of_line=bool(qualifier) and not scope.in_class,
            )
        )

    # ── Declarator helpers ───────────────────────────────────────

    def _innermost_name(self, node: Any) -> Optional[Any]:
        while node is not None:
            if node.type in kinds.NAME_NODES:
                return node
            inner = node.child_by_field_name("declarator")
            if inner is None:
                named = [c for c in node.named_children if c.type != "comment"]
                inner = named[-1] if named else None
            node = inner
        return None

    def _references(self, node: Any, exclude: set[str], skip: list[Any]) -> tuple[str, ...]:
        """Type-name fragments in ``node``, in source order, deduplicated."""
        found: dict[str, None] = {}
        skip_nodes = [s for s in skip if s is not None]

        def collect(current: Any) -> None:
            if any(current == s for s in skip_nodes):
                return
            if current.type in kinds.TYPE_REFERENCE_NODES:
                if current.type == "template_type":
                    name = current.child_by_field_name("name")
                    if name is not None:
                        _add(squash(self.text(name)))
                    args = current.child_by_field_name("arguments")
                    if args is not None:
                        collect(args)
                    return
                _add(squash(self.text(current)))
                collect_arguments(current)
                return

            skipped = [current.child_by_field_name(f) for f in _SKIP_FIELDS]
            for child in current.named_children:
                if any(child == s for s in skipped if s is not None):
                    continue
                collect(child)

        def collect_arguments(current: Any) -> None:
            for child in current.named_children:
                if child.type == "template_argument_list":
                    collect(child)
                else:
                    collect_arguments(child)

        def _add(text: str) -> None:
            if text and text not in exclude:
                found[text] = None

        collect(node)
        return tuple(found)


def _function_declarator(node: Any) -> Optional[Any]:
    """Find the function_declarator in a declarator chain, if any."""
    while node is not None:
        if node.type == "function_declarator":
            return node
        if node.type in kinds.NAME_NODES:
            return None
        inner = node.child_by_field_name("declarator")
        if inner is None:
            named = [c for c in node.named_children if c.type != "comment"]
            inner = named[-1] if named and node.type in ("reference_declarator", "pointer_declarator") else None
        node = inner
    return None


def _normalize_operator(name: str) -> str:
    return re.sub(r"\boperator\s+(?=[^\w\s])", "operator", name)
