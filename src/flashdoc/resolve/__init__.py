"""Reference resolution over a frozen entity model."""

from .references import CrossReference, CrossReferenceIndex, InheritedMember, RefOrigin
from .resolver import ReferenceResolver, unresolved_diagnostics

__all__ = [
    "CrossReference",
    "CrossReferenceIndex",
    "InheritedMember",
    "RefOrigin",
    "ReferenceResolver",
    "unresolved_diagnostics",
]
