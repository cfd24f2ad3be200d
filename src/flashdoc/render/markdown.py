"""Markdown-to-HTML conversion for documentation text.

Uses Python-Markdown with fenced code, tables and heading ids (toc).
Emoji shortcodes such as ``:rocket:`` are expanded by an inline processor.
Inline processors never see the contents of code spans or fenced blocks,
so shortcodes inside code stay literal.
"""

from __future__ import annotations

import html
import re
import threading

import emoji
import markdown
from markdown.extensions import Extension
from markdown.inlinepatterns import InlineProcessor

EMOJI_PATTERN = r":([a-zA-Z0-9_+\-]+):"

_TAG_RE = re.compile(r"<[^>]+>")
_WS_RE = re.compile(r"\s+")


class EmojiInlineProcessor(InlineProcessor):
    """Replace a known ``:shortcode:`` with its emoji; leave unknown ones alone."""

    def handleMatch(self, m, data):  # type: ignore[override]
        shortcode = m.group(0)
        expanded = emoji.emojize(shortcode, language="alias")
        if expanded == shortcode:
            return None, None, None
        return expanded, m.start(0), m.end(0)


class EmojiExtension(Extension):
    def extendMarkdown(self, md):  # type: ignore[override]
        # below backticks (190) and escapes (180)
        md.inlinePatterns.register(EmojiInlineProcessor(EMOJI_PATTERN, md), "emoji", 15)


class MarkdownRenderer:
    """Converts doc text to HTML.

    A markdown.Markdown instance keeps state between conversions, so each
    thread gets its own.
    """

    def __init__(self) -> None:
        self._local = threading.local()

    def _md(self) -> markdown.Markdown:
        md = getattr(self._local, "md", None)
        if md is None:
            md = markdown.Markdown(
                extensions=["fenced_code", "tables", "toc", EmojiExtension()],
            )
            self._local.md = md
        return md

    def render(self, text: str) -> str:
        """Convert a markdown block to HTML."""
        if not text:
            return ""
        md = self._md()
        md.reset()
        return md.convert(text)

    def render_inline(self, text: str) -> str:
        """Convert a single paragraph, without the enclosing ``<p>``."""
        rendered = self.render(text)
        if rendered.startswith("<p>") and rendered.endswith("</p>") and rendered.count("<p>") == 1:
            return rendered[3:-4]
        return rendered


def expand_emoji(text: str) -> str:
    """Expand shortcodes in plain text (titles, descriptions)."""
    return emoji.emojize(text, language="alias")


def plain_text(rendered: str) -> str:
    """Strip tags from rendered HTML and unescape entities."""
    return _WS_RE.sub(" ", html.unescape(_TAG_RE.sub("", rendered))).strip()
