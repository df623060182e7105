"""Data models for content extracted from note pages."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class TaskStatus(StrEnum):
    """Workflow states of a task record."""

    BACKLOG = "Backlog"
    NEXT = "Next"
    DOING = "Doing"
    DONE = "Done"


class Priority(StrEnum):
    """Task priority levels."""

    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class NodeKind(StrEnum):
    """Kinds of content node the extraction code distinguishes."""

    HEADING = "heading"
    PARAGRAPH = "paragraph"
    BULLET_ITEM = "bullet_item"
    NUMBERED_ITEM = "numbered_item"
    CHECK_ITEM = "check_item"
    DIVIDER = "divider"
    OTHER = "other"


@dataclass(frozen=True)
class ContentNode:
    """One block of rich content, in depth-first document order.

    ``level`` is only set for headings and ``checked`` only matters for check
    items. ``block_type`` keeps the store's own type name (``heading_2``,
    ``child_page``, ...) for traversal decisions.
    """

    id: str
    kind: NodeKind
    text: str = ""
    level: int | None = None
    checked: bool = False
    has_children: bool = False
    block_type: str = ""

    @property
    def is_heading(self) -> bool:
        return self.kind is NodeKind.HEADING


@dataclass(frozen=True)
class Section:
    """Half-open index range ``[start, end)`` bounded by a heading at ``start``."""

    start: int
    end: int

    def __post_init__(self) -> None:
        if not 0 <= self.start < self.end:
            raise ValueError(f"Invalid section range [{self.start}, {self.end})")

    @property
    def body(self) -> range:
        """Indices of the nodes under the heading."""
        return range(self.start + 1, self.end)


@dataclass(frozen=True)
class WorkItem:
    """A check item found in a source document."""

    text: str
    checked: bool
    source_node_id: str
