"""C++ source scanning: native backend, node kind mapping and AST adapter."""

from .adapter import EntityAdapter, is_doc_comment, squash
from .models import CompileArgs, SourceUnit, TranslationUnit
from .treesitter_parser import (
    BACKEND_NAME,
    TREE_SITTER_AVAILABLE,
    TreeSitterBackend,
    apply_defines,
    hash_content,
)

__all__ = [
    "EntityAdapter",
    "is_doc_comment",
    "squash",
    "CompileArgs",
    "SourceUnit",
    "TranslationUnit",
    "BACKEND_NAME",
    "TREE_SITTER_AVAILABLE",
    "TreeSitterBackend",
    "apply_defines",
    "hash_content",
]
