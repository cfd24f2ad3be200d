"""Page documents for documentation-eligible entities.

A Page is a structured, template-agnostic description of one entity's
documentation: title, breadcrumbs, URL, body blocks and navigation. The
page sink (JSON in the CLI, an HTML template engine elsewhere) decides
how to write it.

URL scheme:
    <category>/<scope>/<name>[-<overload index>]

    namespaces/ns/detail
    classes/ns/Foo
    enums/ns/Color
    functions/ns/Foo/bar        first overload (declaration order)
    functions/ns/Foo/bar-1      second overload

Each path segment is percent-encoded, so operators and template
specializations (``operator%3D%3D``, ``Vec%3Cbool%3E``) are safe.
"""

from __future__ import annotations

import html
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, Optional, Sequence
from urllib.parse import quote

from ..comments.models import DocComment, Tag, TagKind
from ..config import EntityFilter
from ..logging_config import get_logger
from ..model.entities import Access, Entity, EntityKind
from ..model.store import FrozenModel
from ..resolve.references import CrossReference, CrossReferenceIndex, RefOrigin
from .markdown import MarkdownRenderer, expand_emoji, plain_text
from .nav import NavItem

logger = get_logger(__name__)

PAGE_KINDS: dict[EntityKind, str] = {
    EntityKind.NAMESPACE: "namespaces",
    EntityKind.CLASS: "classes",
    EntityKind.STRUCT: "classes",
    EntityKind.ENUM: "enums",
    EntityKind.FUNCTION: "functions",
}


class BlockKind(Enum):
    SIGNATURE = "signature"
    BRIEF = "brief"
    DESCRIPTION = "description"
    TEMPLATE_PARAMETERS = "template_parameters"
    PARAMETERS = "parameters"
    RETURNS = "returns"
    THROWS = "throws"
    DEPRECATED = "deprecated"
    NOTES = "notes"
    SEE_ALSO = "see_also"
    BASES = "bases"
    DERIVED = "derived"
    MEMBERS = "members"
    INHERITED = "inherited"
    UNKNOWN_TAGS = "unknown_tags"


@dataclass(frozen=True)
class BodyBlock:
    """One section of a page. ``rows`` hold HTML cells for table blocks."""

    kind: BlockKind
    title: str
    html: str = ""
    rows: tuple[tuple[str, ...], ...] = ()

    def to_json(self) -> dict[str, Any]:
        data: dict[str, Any] = {"kind": self.kind.value, "title": self.title}
        if self.html:
            data["html"] = self.html
        if self.rows:
            data["rows"] = [list(row) for row in self.rows]
        return data


@dataclass(frozen=True)
class Breadcrumb:
    title: str
    url: Optional[str] = None


@dataclass(frozen=True)
class Page:
    """Structured documentation for one entity."""

    id: str
    url: str
    title: str
    kind: EntityKind
    description: str
    breadcrumbs: tuple[Breadcrumb, ...]
    include_path: Optional[str]
    blocks: tuple[BodyBlock, ...]
    source_url: Optional[str] = None
    repository: Optional[str] = None
    children: tuple[NavItem, ...] = ()
    siblings: tuple[NavItem, ...] = ()
    undocumented: bool = False
    deprecated: bool = False

    def block(self, kind: BlockKind) -> Optional[BodyBlock]:
        for block in self.blocks:
            if block.kind is kind:
                return block
        return None

    def to_json(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "url": self.url,
            "title": self.title,
            "kind": self.kind.value,
            "description": self.description,
            "breadcrumbs": [{"title": b.title, "url": b.url} for b in self.breadcrumbs],
            "include_path": self.include_path,
            "source_url": self.source_url,
            "repository": self.repository,
            "blocks": [b.to_json() for b in self.blocks],
            "children": [n.to_json() for n in self.children],
            "siblings": [n.to_json() for n in self.siblings],
            "undocumented": self.undocumented,
            "deprecated": self.deprecated,
        }


def include_path_for(path: str, include_dirs: Sequence[Path], root: Path) -> str:
    """Header path as a user would ``#include`` it."""
    source = Path(path)
    if not source.is_absolute():
        source = root / source
    source = source.resolve()
    for include_dir in include_dirs:
        try:
            return source.relative_to(include_dir.resolve()).as_posix()
        except ValueError:
            continue
    try:
        return source.relative_to(root.resolve()).as_posix()
    except ValueError:
        return Path(path).as_posix()


@dataclass
class PageRenderer:
    """Builds Pages and the site navigation tree from a resolved model."""

    model: FrozenModel
    index: CrossReferenceIndex
    project_name: str = "Project"
    include_dirs: Sequence[Path] = ()
    root: Path = Path(".")
    repository: Optional[str] = None
    tree: Optional[str] = None
    ignore: Optional[EntityFilter] = None
    include: Optional[EntityFilter] = None
    markdown: MarkdownRenderer = field(default_factory=MarkdownRenderer)

    def __post_init__(self) -> None:
        self._urls = self._assign_urls()

    # ── URLs and eligibility ─────────────────────────────────────

    def is_eligible(self, entity: Entity) -> bool:
        """Whether ``entity`` gets a page.

        Pages go to named namespaces, classes, enums and functions that are
        not private, not inside a private entity, and not caught by an
        ``ignore`` pattern (on the entity or any enclosing scope) unless an
        ``include`` pattern matches the same entity.
        """
        if entity.kind not in PAGE_KINDS or entity.implicit or entity.is_anonymous:
            return False
        current: Optional[Entity] = entity
        while current is not None:
            if current.access is Access.PRIVATE or self._ignored(current):
                return False
            current = self.model.get(current.parent) if current.parent else None
        return True

    def _ignored(self, entity: Entity) -> bool:
        if self.ignore is None or not self.ignore.matches(entity.qualified_name, entity.name):
            return False
        return self.include is None or not self.include.matches(entity.qualified_name, entity.name)

    def _assign_urls(self) -> dict[str, str]:
        urls: dict[str, str] = {}
        overloads: dict[str, list[Entity]] = {}
        for entity in self.model:
            if not self.is_eligible(entity):
                continue
            if entity.kind is EntityKind.FUNCTION:
                overloads.setdefault(entity.qualified_name, []).append(entity)
            else:
                urls[entity.id] = self._base_url(entity)

        for group in overloads.values():
            group.sort(key=_declaration_order)
            for i, entity in enumerate(group):
                url = self._base_url(entity)
                urls[entity.id] = url if i == 0 else f"{url}-{i}"
        return urls

    @staticmethod
    def _base_url(entity: Entity) -> str:
        parts = (*entity.scope, entity.name)
        return PAGE_KINDS[entity.kind] + "/" + "/".join(quote(p, safe="") for p in parts)

    def url_for(self, entity_id: str) -> Optional[str]:
        return self._urls.get(entity_id)

    def href(self, ref: CrossReference) -> Optional[str]:
        if ref.target is not None:
            url = self.url_for(ref.target)
            return f"/{url}" if url else None
        return ref.url

    # ── Pages ────────────────────────────────────────────────────

    def render_all(self) -> list[Page]:
        pages = []
        for entity_id in sorted(self._urls):
            pages.append(self.render(self.model[entity_id]))
        logger.debug(f"Rendered {len(pages)} pages")
        return pages

    def render(self, entity: Entity) -> Page:
        url = self._urls.get(entity.id)
        if url is None:
            raise KeyError(f"{entity.id} has no page")
        doc = entity.doc
        blocks = [self._signature_block(entity)]
        if doc is not None:
            blocks.extend(self._doc_blocks(entity, doc))
        blocks.extend(self._relation_blocks(entity))

        return Page(
            id=entity.id,
            url=url,
            title=expand_emoji(entity.name),
            kind=entity.kind,
            description=(
                f"Documentation for the {entity.name} {entity.kind.value} in {self.project_name}"
            ),
            breadcrumbs=self._breadcrumbs(entity),
            include_path=self._include_path(entity),
            source_url=self._source_url(entity),
            repository=self.repository,
            blocks=tuple(b for b in blocks if b.html or b.rows),
            children=tuple(self._nav_items(self.model.children(entity.id))),
            siblings=tuple(self._nav_items(self.model.children(entity.parent))),
            undocumented=not entity.is_documented,
            deprecated=doc is not None and doc.deprecated is not None,
        )

    def _breadcrumbs(self, entity: Entity) -> tuple[Breadcrumb, ...]:
        crumbs = []
        for depth in range(1, len(entity.scope) + 1):
            scope_id = "::".join(entity.scope[:depth])
            scope_url = self.url_for(scope_id)
            crumbs.append(Breadcrumb(entity.scope[depth - 1], f"/{scope_url}" if scope_url else None))
        crumbs.append(Breadcrumb(entity.name))
        return tuple(crumbs)

    def _include_path(self, entity: Entity) -> Optional[str]:
        if entity.kind is EntityKind.NAMESPACE or entity.span is None:
            return None
        return include_path_for(entity.span.path, self.include_dirs, self.root)

    def _source_url(self, entity: Entity) -> Optional[str]:
        """Link into the browsable source tree at the declaration line."""
        if not self.tree or entity.kind is EntityKind.NAMESPACE or entity.span is None:
            return None
        source = Path(entity.span.path)
        if not source.is_absolute():
            source = self.root / source
        try:
            relative = source.resolve().relative_to(self.root.resolve())
        except ValueError:
            return None
        path = quote(relative.as_posix())
        return f"{self.tree.rstrip('/')}/{path}#L{entity.span.start_line}"

    def _nav_items(self, entities: Iterable[Entity]) -> Iterable[NavItem]:
        for entity in entities:
            url = self.url_for(entity.id)
            if url is not None:
                yield NavItem.link(entity.name, f"/{url}", entity.id)

    # ── Blocks ───────────────────────────────────────────────────

    def _signature_block(self, entity: Entity) -> BodyBlock:
        refs = [
            r
            for r in self.index.references(entity.id)
            if r.origin in (RefOrigin.SIGNATURE, RefOrigin.BASE)
        ]
        code = self.link_signature(entity.signature, refs)
        return BodyBlock(BlockKind.SIGNATURE, "Signature", f"<pre><code>{code}</code></pre>")

    def link_signature(self, signature: str, refs: Sequence[CrossReference]) -> str:
        """Escape a signature and wrap resolved mentions in links."""
        links: dict[str, str] = {}
        for ref in refs:
            href = self.href(ref)
            if href is not None:
                links.setdefault(ref.text, href)
        if not links:
            return html.escape(signature, quote=False)

        alternatives = "|".join(re.escape(t) for t in sorted(links, key=len, reverse=True))
        pattern = re.compile(rf"(?<![\w:])({alternatives})(?![\w])")
        pieces = []
        end = 0
        for match in pattern.finditer(signature):
            pieces.append(html.escape(signature[end : match.start()], quote=False))
            text = html.escape(match.group(1), quote=False)
            pieces.append(f'<a href="{html.escape(links[match.group(1)])}">{text}</a>')
            end = match.end()
        pieces.append(html.escape(signature[end:], quote=False))
        return "".join(pieces)

    def _doc_blocks(self, entity: Entity, doc: DocComment) -> list[BodyBlock]:
        md = self.markdown
        blocks = [
            BodyBlock(BlockKind.BRIEF, "Brief", md.render(doc.brief)),
            BodyBlock(BlockKind.DESCRIPTION, "Description", md.render(doc.detailed)),
        ]
        deprecated = doc.deprecated
        if deprecated is not None:
            blocks.append(
                BodyBlock(BlockKind.DEPRECATED, "Deprecated", md.render(deprecated.text or "Deprecated."))
            )
        blocks.append(
            BodyBlock(
                BlockKind.TEMPLATE_PARAMETERS,
                "Template parameters",
                rows=tuple(
                    (html.escape(t.name or ""), md.render_inline(t.text))
                    for t in doc.of_kind(TagKind.TPARAM)
                ),
            )
        )
        blocks.append(
            BodyBlock(
                BlockKind.PARAMETERS,
                "Parameters",
                rows=tuple(
                    (html.escape(t.name or ""), t.direction or "", md.render_inline(t.text))
                    for t in doc.params
                ),
            )
        )
        blocks.append(
            BodyBlock(
                BlockKind.RETURNS,
                "Returns",
                md.render(doc.returns),
                rows=tuple(
                    (f"<code>{html.escape(t.name or '')}</code>", md.render_inline(t.text))
                    for t in doc.of_kind(TagKind.RETVAL)
                ),
            )
        )
        blocks.append(
            BodyBlock(
                BlockKind.THROWS,
                "Throws",
                rows=tuple(
                    (self._mention(entity, t, RefOrigin.THROWS), md.render_inline(t.text))
                    for t in doc.of_kind(TagKind.THROWS)
                ),
            )
        )
        notes = [t for t in doc.tags if t.kind in (TagKind.NOTE, TagKind.WARNING, TagKind.SINCE)]
        blocks.append(
            BodyBlock(
                BlockKind.NOTES,
                "Notes",
                rows=tuple((t.kind.value.capitalize(), md.render_inline(t.text)) for t in notes),
            )
        )
        blocks.append(
            BodyBlock(
                BlockKind.SEE_ALSO,
                "See also",
                rows=tuple(
                    (self._mention(entity, t, RefOrigin.SEE), md.render_inline(t.text))
                    for t in doc.see_also
                ),
            )
        )
        blocks.append(
            BodyBlock(
                BlockKind.UNKNOWN_TAGS,
                "Other",
                rows=tuple(
                    (html.escape(f"@{t.marker}"), md.render_inline(t.text))
                    for t in doc.of_kind(TagKind.UNKNOWN)
                ),
            )
        )
        return blocks

    def _mention(self, entity: Entity, tag: Tag, origin: RefOrigin) -> str:
        text = tag.name or ""
        label = f"<code>{html.escape(text)}</code>"
        for ref in self.index.references(entity.id):
            if ref.origin is origin and ref.text == text:
                href = self.href(ref)
                if href is not None:
                    return f'<a href="{html.escape(href)}">{label}</a>'
        return label

    def _relation_blocks(self, entity: Entity) -> list[BodyBlock]:
        blocks = []
        if entity.kind.is_class_like:
            blocks.append(
                BodyBlock(
                    BlockKind.BASES,
                    "Base classes",
                    rows=tuple(self._entity_row(i) for i in self.index.resolved_bases(entity.id)),
                )
            )
            blocks.append(
                BodyBlock(
                    BlockKind.DERIVED,
                    "Derived classes",
                    rows=tuple(self._entity_row(i) for i in self.index.derived_classes(entity.id)),
                )
            )

        if entity.kind is not EntityKind.FUNCTION:
            members = [m for m in self.model.children(entity.id) if m.access is not Access.PRIVATE]
            blocks.append(
                BodyBlock(
                    BlockKind.MEMBERS,
                    "Members",
                    rows=tuple(self._member_row(m) for m in members if not m.is_anonymous),
                )
            )

        if entity.kind.is_class_like:
            rows = []
            for inherited in self.index.inherited_members(entity.id):
                member = self.model.get(inherited.member)
                base = self.model.get(inherited.via)
                if member is None or base is None:
                    continue
                rows.append((*self._member_row(member), self._entity_link(base)))
            blocks.append(BodyBlock(BlockKind.INHERITED, "Inherited members", rows=tuple(rows)))
        return blocks

    def _entity_link(self, entity: Entity) -> str:
        label = f"<code>{html.escape(entity.qualified_name)}</code>"
        url = self.url_for(entity.id)
        return f'<a href="/{html.escape(url)}">{label}</a>' if url else label

    def _entity_row(self, entity_id: str) -> tuple[str, ...]:
        entity = self.model.get(entity_id)
        if entity is None:
            return (html.escape(entity_id), "")
        brief = entity.doc.brief if entity.doc else ""
        return (self._entity_link(entity), self.markdown.render_inline(brief))

    def _member_row(self, member: Entity) -> tuple[str, ...]:
        name = f"<code>{html.escape(member.name)}</code>"
        url = self.url_for(member.id)
        if url:
            name = f'<a href="/{html.escape(url)}">{name}</a>'
        brief = member.doc.brief if member.doc else ""
        return (
            name,
            member.kind.value,
            f"<code>{html.escape(member.signature)}</code>",
            self.markdown.render_inline(brief),
        )

    # ── Navigation ───────────────────────────────────────────────

    def nav_tree(self) -> NavItem:
        """Scope tree of every page.

        Namespaces are dirs (implicit ones without a url). Classes that
        contain nested class or enum pages are dirs with their own url;
        other classes are links. Member functions are left to class pages.
        """
        root = NavItem.root()
        self._fill_nav(root, None)
        return root

    def _fill_nav(self, parent: NavItem, entity_id: Optional[str]) -> None:
        for child in self.model.children(entity_id):
            if child.is_anonymous:
                continue
            url = self.url_for(child.id)
            href = f"/{url}" if url else None
            if child.kind is EntityKind.NAMESPACE:
                item = NavItem.dir(child.name, href, child.id)
                self._fill_nav(item, child.id)
                if item.children or url:
                    parent.children.append(item)
                continue
            if href is None or (child.kind is EntityKind.FUNCTION and self._in_class(child)):
                continue
            if child.kind.is_class_like:
                item = NavItem.dir(child.name, href, child.id)
                self._fill_nav(item, child.id)
                if item.children:
                    parent.children.append(item)
                    continue
            parent.children.append(NavItem.link(child.name, href, child.id))

    def _in_class(self, entity: Entity) -> bool:
        parent = self.model.get(entity.parent) if entity.parent else None
        return parent is not None and parent.kind.is_class_like


def _declaration_order(entity: Entity) -> tuple[Any, ...]:
    span = entity.span.sort_key if entity.span else ("", 0, 0)
    return (entity.unit or "", span[1], span[2], entity.id)


def plain_brief(page: Page) -> str:
    """Plain-text brief of a rendered page, for summaries and search indexes."""
    block = page.block(BlockKind.BRIEF)
    return plain_text(block.html) if block is not None else ""


__all__ = [
    "BlockKind",
    "BodyBlock",
    "Breadcrumb",
    "Page",
    "PageRenderer",
    "PAGE_KINDS",
    "include_path_for",
    "plain_brief",
]
