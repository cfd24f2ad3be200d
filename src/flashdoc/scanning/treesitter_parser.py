"""Tree-sitter C++ backend.

Narrow wrapper around tree-sitter with the tree-sitter-cpp grammar. The
rest of flashdoc only sees ``parse_translation_unit(path, args)`` and the
returned TranslationUnit's node tree.

tree-sitter does not run the preprocessor, so object-like ``defines`` are
applied as whole-word substitutions before parsing. Include paths and the
language standard do not change how tree-sitter parses; they are part of
the configuration fingerprint only.

Usage:
    backend = TreeSitterBackend()
    tu = backend.parse_translation_unit(Path("include/foo.hpp"), config.compile_args())
"""

from __future__ import annotations

import hashlib
import re
import threading
from pathlib import Path
from typing import Any, Iterator

from ..exceptions import BackendUnavailableError, ParseError
from ..logging_config import get_logger
from .models import CompileArgs, TranslationUnit

logger = get_logger(__name__)

TREE_SITTER_AVAILABLE = False
_tree_sitter_module: Any = None
_cpp_module: Any = None

try:
    import tree_sitter as _tree_sitter_module  # type: ignore[no-redef]
    import tree_sitter_cpp as _cpp_module  # type: ignore[no-redef]

    TREE_SITTER_AVAILABLE = True
except ImportError:
    TREE_SITTER_AVAILABLE = False


BACKEND_NAME = "tree-sitter-cpp"


def hash_content(data: bytes) -> str:
    """Content hash used for cache validation."""
    return hashlib.sha256(data).hexdigest()


def apply_defines(source: bytes, defines: tuple[tuple[str, str], ...]) -> bytes:
    """Substitute object-like macros as whole words."""
    if not defines:
        return source
    table = {name.encode(): value.encode() for name, value in defines}
    pattern = re.compile(rb"\b(" + b"|".join(re.escape(n) for n in sorted(table, key=len, reverse=True)) + rb")\b")
    return pattern.sub(lambda m: table[m.group(1)], source)


def iter_errors(node: Any) -> Iterator[Any]:
    """Yield ERROR and MISSING nodes, skipping subtrees without errors."""
    if node.type == "ERROR" or node.is_missing:
        yield node
        return
    if not node.has_error:
        return
    for child in node.children:
        yield from iter_errors(child)


class TreeSitterBackend:
    """Parses C++ files with tree-sitter.

    Parsers are not shared between threads; each worker thread lazily gets
    its own.
    """

    name = BACKEND_NAME

    def __init__(self) -> None:
        if not TREE_SITTER_AVAILABLE:
            raise BackendUnavailableError(
                self.name, "install the 'tree-sitter' and 'tree-sitter-cpp' packages"
            )
        try:
            # tree-sitter >= 0.23 returns PyCapsule; wrap in Language()
            self._language = _tree_sitter_module.Language(_cpp_module.language())
        except (TypeError, ValueError, OSError) as e:
            raise BackendUnavailableError(self.name, str(e))
        self._local = threading.local()

    def _parser(self) -> Any:
        parser = getattr(self._local, "parser", None)
        if parser is None:
            parser = _tree_sitter_module.Parser(self._language)
            self._local.parser = parser
        return parser

    def parse_bytes(self, source: bytes) -> Any:
        return self._parser().parse(source)

    def parse_translation_unit(self, path: Path, args: CompileArgs) -> TranslationUnit:
        """Parse one file.

        Raises:
            ParseError: If the file cannot be read, or if ``args.strict`` is
                set and the file contains syntax errors
        """
        try:
            raw = Path(path).read_bytes()
        except OSError as e:
            raise ParseError(path, f"cannot read file: {e.strerror or e}")

        source = apply_defines(raw, args.defines)
        tree = self.parse_bytes(source)
        errors = list(iter_errors(tree.root_node))

        if errors and args.strict:
            first = errors[0].start_point
            raise ParseError(
                path, f"{len(errors)} syntax error(s), first at line {first[0] + 1}"
            )
        if errors:
            logger.debug(f"{path}: recovered from {len(errors)} syntax error(s)")

        return TranslationUnit(
            path=str(path),
            source=source,
            tree=tree,
            content_hash=hash_content(raw),
            error_count=len(errors),
        )
