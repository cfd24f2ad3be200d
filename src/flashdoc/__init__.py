"""
flashdoc - C++ API documentation generator

Parses C++ headers with tree-sitter, reads their documentation comments,
merges declarations across files into one cross-referenced model and
renders page documents for a static documentation site.
"""

__version__ = "0.1.0"

from .config import ProjectConfig, load_config
from .core import BuildResult, DocBuilder
from .diagnostics import DiagnosticsReport

__all__ = [
    "DocBuilder",  # Main entry point
    "BuildResult",
    "DiagnosticsReport",
    "ProjectConfig",
    "load_config",
]
