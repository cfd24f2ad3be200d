"""Entity model: entity records and the merged cross-file store."""

from .entities import (
    ANONYMOUS,
    SCOPE_SEPARATOR,
    Access,
    Entity,
    EntityKind,
    SourceSpan,
    split_qualified,
    strip_template_args,
)
from .store import EntityModel, FrozenModel

__all__ = [
    "ANONYMOUS",
    "SCOPE_SEPARATOR",
    "Access",
    "Entity",
    "EntityKind",
    "SourceSpan",
    "split_qualified",
    "strip_template_args",
    "EntityModel",
    "FrozenModel",
]
