"""Tag grammar parser.

Grammar (informal):

    comment   := leading? tag*
    leading   := paragraph (BLANK paragraph)*      -> brief, detailed
    tag       := TAG fields payload
    payload   := (TEXT | NEWLINE | BLANK)*         up to the next TAG

``@brief`` is the exception: its payload ends at the first paragraph
break, and untagged text after it becomes ``detailed``. Kind-specific
fields (a parameter name, an exception type, a see-also target) are read
by splitting the first word off the TEXT token that follows the marker and
pushing the remainder back onto the token stream.

Grammar violations raise TagGrammarError internally; ``parse`` catches it
and returns a DocComment holding the tags parsed before the error.
"""

from __future__ import annotations

import re
import textwrap

from ..exceptions import TagGrammarError
from .lexer import CommentLexer, Token, TokenKind
from .models import DocComment, Tag, TagKind

MARKERS: dict[str, TagKind] = {
    "brief": TagKind.BRIEF,
    "short": TagKind.BRIEF,
    "details": TagKind.DETAILED,
    "param": TagKind.PARAM,
    "arg": TagKind.PARAM,
    "tparam": TagKind.TPARAM,
    "return": TagKind.RETURNS,
    "returns": TagKind.RETURNS,
    "result": TagKind.RETURNS,
    "retval": TagKind.RETVAL,
    "see": TagKind.SEE,
    "sa": TagKind.SEE,
    "deprecated": TagKind.DEPRECATED,
    "ingroup": TagKind.GROUP,
    "group": TagKind.GROUP,
    "throws": TagKind.THROWS,
    "throw": TagKind.THROWS,
    "exception": TagKind.THROWS,
    "note": TagKind.NOTE,
    "warning": TagKind.WARNING,
    "since": TagKind.SINCE,
}

_IDENTIFIER_RE = re.compile(r"^(?:[A-Za-z_][A-Za-z0-9_]*|\.\.\.)$")
_SYMBOL_RE = re.compile(r"^(?:::)?[A-Za-z_~][A-Za-z0-9_:<>,~]*(?:\(\))?$")
_ANY_RE = re.compile(r"^\S+$")

# kind -> (field description, validation pattern)
_REQUIRED_FIELD: dict[TagKind, tuple[str, re.Pattern[str]]] = {
    TagKind.PARAM: ("parameter name", _IDENTIFIER_RE),
    TagKind.TPARAM: ("template parameter name", _IDENTIFIER_RE),
    TagKind.RETVAL: ("return value", _ANY_RE),
    TagKind.THROWS: ("exception type", _SYMBOL_RE),
    TagKind.SEE: ("symbol", _SYMBOL_RE),
    TagKind.GROUP: ("group name", _IDENTIFIER_RE),
}

_TRAILING_PUNCT = ",.;"


class TagParser:
    """Recursive-descent parser over a comment token stream.

    Keeps a pushback stack so a token can be looked at and returned; at most
    one token is ever pushed back at a time.
    """

    def __init__(self, tokens: list[Token]) -> None:
        self._tokens = tokens
        self._pos = 0
        self._pushed: list[Token] = []

    # ── Token stream ─────────────────────────────────────────────

    def _next(self) -> Token | None:
        if self._pushed:
            return self._pushed.pop()
        if self._pos >= len(self._tokens):
            return None
        tok = self._tokens[self._pos]
        self._pos += 1
        return tok

    def _push_back(self, tok: Token) -> None:
        self._pushed.append(tok)

    def _peek(self) -> Token | None:
        tok = self._next()
        if tok is not None:
            self._push_back(tok)
        return tok

    # ── Grammar ──────────────────────────────────────────────────

    def parse_tags(self, tags: list[Tag]) -> None:
        """Parse the whole stream, appending to ``tags`` as it goes.

        Appending in place means the caller still has every completed tag
        when TagGrammarError propagates.
        """
        while (tok := self._peek()) is not None:
            if tok.kind is TokenKind.TAG:
                self._next()
                tags.append(self._parse_tag(tok))
            else:
                tags.extend(self._parse_untagged(has_brief=any(t.kind is TagKind.BRIEF for t in tags)))

    def _parse_untagged(self, has_brief: bool) -> list[Tag]:
        # skip separators left over from a brief that stopped at a BLANK
        while (tok := self._peek()) is not None and tok.kind in (TokenKind.BLANK, TokenKind.NEWLINE):
            self._next()

        tags: list[Tag] = []
        if not has_brief:
            brief = self._collect_payload(stop_at_blank=True)
            if brief:
                tags.append(Tag(TagKind.BRIEF, brief))
            while (tok := self._peek()) is not None and tok.kind is TokenKind.BLANK:
                self._next()

        detailed = self._collect_payload(stop_at_blank=False)
        if detailed:
            tags.append(Tag(TagKind.DETAILED, detailed))
        return tags

    def _parse_tag(self, tok: Token) -> Tag:
        marker, direction = _split_marker(tok.value)
        kind = MARKERS.get(marker.lower())

        if kind is None:
            return Tag(
                TagKind.UNKNOWN,
                self._collect_payload(stop_at_blank=False),
                marker=marker,
            )

        if kind is TagKind.BRIEF:
            return Tag(kind, self._collect_payload(stop_at_blank=True))

        name = None
        if kind in _REQUIRED_FIELD:
            name = self._expect_field(tok, marker, kind)

        return Tag(
            kind,
            self._collect_payload(stop_at_blank=False),
            name=name,
            direction=direction if kind is TagKind.PARAM else None,
        )

    def _expect_field(self, tag_tok: Token, marker: str, kind: TagKind) -> str:
        what, pattern = _REQUIRED_FIELD[kind]
        tok = self._next()
        text = tok.value.lstrip() if tok is not None and tok.kind is TokenKind.TEXT else ""
        if not text:
            if tok is not None:
                self._push_back(tok)
            raise TagGrammarError(f"@{marker}", f"expected {what}", line=tag_tok.line)

        word, rest = _split_word(text)
        if rest:
            self._push_back(Token(TokenKind.TEXT, rest, tok.line))
        if kind is not TagKind.RETVAL and word != "...":
            word = word.rstrip(_TRAILING_PUNCT)

        if not word or not pattern.match(word):
            raise TagGrammarError(f"@{marker}", f"invalid {what} '{word}'", line=tag_tok.line)
        return word

    def _collect_payload(self, stop_at_blank: bool) -> str:
        parts: list[str] = []
        while (tok := self._next()) is not None:
            if tok.kind is TokenKind.TAG:
                self._push_back(tok)
                break
            if tok.kind is TokenKind.BLANK and stop_at_blank:
                self._push_back(tok)
                break
            parts.append(tok.value)
        return _normalize("".join(parts))


def _split_marker(value: str) -> tuple[str, str | None]:
    """``param[in,out]`` -> (``param``, ``in,out``)."""
    if value.endswith("]") and "[" in value:
        marker, _, direction = value[:-1].partition("[")
        return marker, direction.replace(" ", "") or None
    return value, None


def _split_word(text: str) -> tuple[str, str]:
    parts = text.split(None, 1)
    return parts[0], (" " + parts[1]) if len(parts) > 1 else ""


def _normalize(text: str) -> str:
    """Strip trailing whitespace per line and dedent continuation lines."""
    lines = [line.rstrip() for line in text.split("\n")]
    if not lines:
        return ""
    first, rest = lines[0].strip(), textwrap.dedent("\n".join(lines[1:]))
    return "\n".join([first, rest]).strip() if rest.strip() else first


def parse_doc_comment(raw: str) -> DocComment:
    """Parse raw comment text (markers included) into a DocComment."""
    lexer = CommentLexer(raw)
    tokens = list(lexer.tokens())
    tags: list[Tag] = []
    try:
        TagParser(tokens).parse_tags(tags)
    except TagGrammarError as e:
        return DocComment(raw=raw, tags=tuple(tags), error=str(e))

    if lexer.unterminated_fence:
        return DocComment(raw=raw, tags=tuple(tags), error="unterminated code block")
    return DocComment(raw=raw, tags=tuple(tags))
