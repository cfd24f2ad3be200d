"""Tokenizer for documentation comment text.

The lexer works in two passes:

    1. ``strip_comment_markers`` removes ``///``, ``//!``, ``/**``, ``*/``
       and leading ``*`` per line, then removes the indentation common to
       all non-blank lines.
    2. ``CommentLexer`` turns the cleaned lines into TAG / TEXT / NEWLINE /
       BLANK tokens. Runs of blank lines collapse into one BLANK token.
       Inside fenced code blocks (``` or @code/@endcode) lines are emitted
       verbatim and no tag markers are recognized.

Inline formatting commands (@c, @p, @b, @e, @em, @a, @ref) are rewritten
to markdown inside TEXT tokens instead of becoming tags.
"""

from __future__ import annotations

import re
import textwrap
from dataclasses import dataclass
from enum import Enum
from typing import Iterator

_LINE_PREFIXES = ("///<", "//!<", "///", "//!", "//")
_BLOCK_OPENERS = ("/**<", "/*!<", "/**", "/*!", "/*")

# A marker is @name or \name at line start or after whitespace, with an
# optional [direction] suffix glued to it (@param[in]).
_TAG_RE = re.compile(r"(?:(?<=\s)|^)[@\\]([A-Za-z][A-Za-z0-9_]*)(\[[^\]\n]*\])?")

_INLINE_FORMATS = {
    "c": "`{}`",
    "p": "`{}`",
    "ref": "`{}`",
    "b": "**{}**",
    "a": "*{}*",
    "e": "*{}*",
    "em": "*{}*",
}
_INLINE_RE = re.compile(r"(?:(?<=\s)|^)[@\\](c|p|ref|b|a|em|e)\s+([^\s]+)")

_FENCE_RE = re.compile(r"^\s*(```+|~~~+)")
_CODE_OPEN_RE = re.compile(r"^\s*[@\\]code(?:\{\.?([A-Za-z0-9+#-]+)\})?\s*$")
_CODE_CLOSE_RE = re.compile(r"^\s*[@\\]endcode\s*$")


class TokenKind(Enum):
    TAG = "tag"
    TEXT = "text"
    NEWLINE = "newline"
    BLANK = "blank"


@dataclass(frozen=True)
class Token:
    """A lexical token; ``line`` is 1-indexed within the comment."""

    kind: TokenKind
    value: str
    line: int


def strip_comment_markers(raw: str) -> list[str]:
    """Remove comment syntax from every line and dedent the result.

    Leading and trailing blank lines are dropped.
    """
    lines: list[str] = []
    in_block = False

    for line in raw.splitlines():
        text = line.strip()
        opened_here = False

        if not in_block:
            for prefix in _LINE_PREFIXES:
                if text.startswith(prefix):
                    text = line.lstrip()[len(prefix):]
                    break
            else:
                for opener in _BLOCK_OPENERS:
                    if text.startswith(opener):
                        text = line.lstrip()[len(opener):]
                        in_block = True
                        opened_here = True
                        break
                else:
                    text = line

        if in_block:
            if not opened_here:
                body = line.lstrip()
                if body.startswith("*") and not body.startswith("*/"):
                    body = body[1:]
                text = body
            if text.rstrip().endswith("*/"):
                text = text.rstrip()[:-2]
                in_block = False

        # decoration lines such as /*********
        if text.strip() and set(text.strip()) <= {"*", "/"}:
            text = ""

        lines.append(text.rstrip())

    while lines and not lines[0].strip():
        lines.pop(0)
    while lines and not lines[-1].strip():
        lines.pop()

    return textwrap.dedent("\n".join(lines)).split("\n") if lines else []


def _rewrite_inline(text: str) -> str:
    return _INLINE_RE.sub(lambda m: _INLINE_FORMATS[m.group(1)].format(m.group(2)), text)


class CommentLexer:
    """Tokenizes cleaned comment lines.

    Attributes:
        unterminated_fence: True if a code block was still open at the end;
            the lexer closes it itself so the output stays valid markdown.
    """

    def __init__(self, raw: str) -> None:
        self._lines = strip_comment_markers(raw)
        self.unterminated_fence = False

    def tokens(self) -> Iterator[Token]:
        fence: str | None = None
        pending_blank = False
        emitted = False

        for lineno, line in enumerate(self._lines, start=1):
            if fence is not None:
                yield Token(TokenKind.NEWLINE, "\n", lineno)
                if fence == "@code" and _CODE_CLOSE_RE.match(line):
                    yield Token(TokenKind.TEXT, "```", lineno)
                    fence = None
                elif fence != "@code" and line.strip().startswith(fence):
                    yield Token(TokenKind.TEXT, line, lineno)
                    fence = None
                else:
                    yield Token(TokenKind.TEXT, line, lineno)
                continue

            if not line.strip():
                pending_blank = emitted
                continue

            if pending_blank:
                yield Token(TokenKind.BLANK, "\n\n", lineno)
                pending_blank = False
            elif emitted:
                yield Token(TokenKind.NEWLINE, "\n", lineno)
            emitted = True

            code_open = _CODE_OPEN_RE.match(line)
            if code_open:
                yield Token(TokenKind.TEXT, "```" + (code_open.group(1) or "cpp"), lineno)
                fence = "@code"
                continue

            fence_open = _FENCE_RE.match(line)
            if fence_open:
                yield Token(TokenKind.TEXT, line, lineno)
                fence = fence_open.group(1)
                continue

            yield from self._split_line(_rewrite_inline(line), lineno)

        if fence is not None:
            self.unterminated_fence = True
            yield Token(TokenKind.NEWLINE, "\n", len(self._lines))
            yield Token(TokenKind.TEXT, "```", len(self._lines))

    @staticmethod
    def _split_line(line: str, lineno: int) -> Iterator[Token]:
        pos = 0
        for match in _TAG_RE.finditer(line):
            if match.start() > pos:
                yield Token(TokenKind.TEXT, line[pos:match.start()], lineno)
            yield Token(TokenKind.TAG, match.group(1) + (match.group(2) or ""), lineno)
            pos = match.end()
        if pos < len(line):
            yield Token(TokenKind.TEXT, line[pos:], lineno)


def tokenize(raw: str) -> list[Token]:
    """Convenience wrapper returning the full token list."""
    return list(CommentLexer(raw).tokens())
