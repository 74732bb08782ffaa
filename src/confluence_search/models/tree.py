"""Transient tree nodes built from the display list."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class TreeNode:
    """A node of the rendered forest.

    Nodes are rebuilt on every render; collapse state lives in a side table
    keyed by id and is copied onto the node at build time.
    """

    id: str
    title: str
    url: str
    children: list["TreeNode"] = field(default_factory=list)
    is_result: bool = False
    collapsed: bool = False
    type: str | None = None
    contributor: str | None = None
    modified_at: datetime | None = None
