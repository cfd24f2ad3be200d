"""Rendering: markdown conversion, page documents and site navigation."""

from .markdown import EmojiExtension, MarkdownRenderer, expand_emoji, plain_text
from .nav import NavItem, NavKind
from .pages import (
    PAGE_KINDS,
    BlockKind,
    BodyBlock,
    Breadcrumb,
    Page,
    PageRenderer,
    include_path_for,
    plain_brief,
)

__all__ = [
    "EmojiExtension",
    "MarkdownRenderer",
    "expand_emoji",
    "plain_text",
    "NavItem",
    "NavKind",
    "PAGE_KINDS",
    "BlockKind",
    "BodyBlock",
    "Breadcrumb",
    "Page",
    "PageRenderer",
    "include_path_for",
    "plain_brief",
]
