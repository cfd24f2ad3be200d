"""Site navigation tree."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class NavKind(Enum):
    ROOT = "root"
    DIR = "dir"
    LINK = "link"


@dataclass
class NavItem:
    """One node of the navigation tree.

    A DIR may carry a url when the directory itself has a page (a
    documented namespace); implicit namespaces have none.
    """

    kind: NavKind
    title: str = ""
    url: Optional[str] = None
    entity_id: Optional[str] = None
    children: list[NavItem] = field(default_factory=list)

    @classmethod
    def root(cls, children: Optional[list[NavItem]] = None) -> NavItem:
        return cls(NavKind.ROOT, children=children or [])

    @classmethod
    def dir(
        cls, title: str, url: Optional[str] = None, entity_id: Optional[str] = None
    ) -> NavItem:
        return cls(NavKind.DIR, title, url, entity_id)

    @classmethod
    def link(cls, title: str, url: str, entity_id: Optional[str] = None) -> NavItem:
        return cls(NavKind.LINK, title, url, entity_id)

    def find(self, entity_id: str) -> Optional[NavItem]:
        if self.entity_id == entity_id:
            return self
        for child in self.children:
            found = child.find(entity_id)
            if found is not None:
                return found
        return None

    def links(self) -> list[NavItem]:
        """All LINK items below this one, depth-first."""
        out = []
        for child in self.children:
            if child.kind is NavKind.LINK:
                out.append(child)
            out.extend(child.links())
        return out

    def to_json(self) -> dict[str, Any]:
        data: dict[str, Any] = {"kind": self.kind.value, "title": self.title}
        if self.url is not None:
            data["url"] = self.url
        if self.entity_id is not None:
            data["entity_id"] = self.entity_id
        if self.children:
            data["children"] = [c.to_json() for c in self.children]
        return data
