"""Documentation comment grammar: lexer, parser and tag records."""

from .lexer import CommentLexer, Token, TokenKind, strip_comment_markers, tokenize
from .models import DocComment, Tag, TagKind
from .parser import MARKERS, TagParser, parse_doc_comment

__all__ = [
    "CommentLexer",
    "Token",
    "TokenKind",
    "strip_comment_markers",
    "tokenize",
    "DocComment",
    "Tag",
    "TagKind",
    "MARKERS",
    "TagParser",
    "parse_doc_comment",
]
