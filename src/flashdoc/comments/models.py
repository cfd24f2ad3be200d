"""Typed records produced by the tag grammar parser.

A DocComment is the raw comment text plus an ordered sequence of Tags.
Tags are immutable once parsed; consumers read them through the
DocComment convenience properties.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class TagKind(Enum):
    """Kinds of documentation tag."""

    BRIEF = "brief"
    DETAILED = "detailed"
    PARAM = "param"
    TPARAM = "tparam"
    RETURNS = "returns"
    RETVAL = "retval"
    SEE = "see"
    DEPRECATED = "deprecated"
    GROUP = "group"
    THROWS = "throws"
    NOTE = "note"
    WARNING = "warning"
    SINCE = "since"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Tag:
    """One parsed tag.

    Attributes:
        kind: Tag kind
        text: Free-text payload (markdown, whitespace-normalized)
        name: Required field for param/tparam/retval/throws/see/group tags
        direction: Parameter direction (``in``, ``out``, ``in,out``), if given
        marker: The marker as written, kept for unknown tags
    """

    kind: TagKind
    text: str = ""
    name: str | None = None
    direction: str | None = None
    marker: str | None = None

    def to_json(self) -> dict[str, Any]:
        data: dict[str, Any] = {"kind": self.kind.value, "text": self.text}
        if self.name is not None:
            data["name"] = self.name
        if self.direction is not None:
            data["direction"] = self.direction
        if self.marker is not None:
            data["marker"] = self.marker
        return data

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> Tag:
        return cls(
            kind=TagKind(data["kind"]),
            text=data.get("text", ""),
            name=data.get("name"),
            direction=data.get("direction"),
            marker=data.get("marker"),
        )


@dataclass(frozen=True)
class DocComment:
    """A documentation comment attached to one entity.

    ``error`` holds the grammar error message when parsing stopped early;
    ``tags`` then contains everything parsed before the error.
    """

    raw: str
    tags: tuple[Tag, ...] = ()
    error: str | None = None

    def of_kind(self, kind: TagKind) -> tuple[Tag, ...]:
        return tuple(tag for tag in self.tags if tag.kind is kind)

    @property
    def brief(self) -> str:
        for tag in self.tags:
            if tag.kind is TagKind.BRIEF:
                return tag.text
        return ""

    @property
    def detailed(self) -> str:
        return "\n\n".join(tag.text for tag in self.of_kind(TagKind.DETAILED) if tag.text)

    @property
    def params(self) -> tuple[Tag, ...]:
        return self.of_kind(TagKind.PARAM)

    @property
    def returns(self) -> str:
        return "\n\n".join(tag.text for tag in self.of_kind(TagKind.RETURNS) if tag.text)

    @property
    def deprecated(self) -> Tag | None:
        found = self.of_kind(TagKind.DEPRECATED)
        return found[0] if found else None

    @property
    def see_also(self) -> tuple[Tag, ...]:
        return self.of_kind(TagKind.SEE)

    @property
    def groups(self) -> tuple[str, ...]:
        return tuple(tag.name for tag in self.of_kind(TagKind.GROUP) if tag.name)

    @property
    def is_empty(self) -> bool:
        return not self.tags

    def to_json(self) -> dict[str, Any]:
        return {
            "raw": self.raw,
            "tags": [tag.to_json() for tag in self.tags],
            "error": self.error,
        }

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> DocComment:
        return cls(
            raw=data["raw"],
            tags=tuple(Tag.from_json(t) for t in data.get("tags", [])),
            error=data.get("error"),
        )
