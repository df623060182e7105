"""Validation of Notion block payloads and depth-first child traversal."""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict

from src.errors import RemoteError
from src.extraction.models import ContentNode, NodeKind

logger = logging.getLogger(__name__)

HEADING_TYPES: dict[str, int] = {"heading_1": 1, "heading_2": 2, "heading_3": 3}

_KIND_BY_TYPE: dict[str, NodeKind] = {
    "paragraph": NodeKind.PARAGRAPH,
    "bulleted_list_item": NodeKind.BULLET_ITEM,
    "numbered_list_item": NodeKind.NUMBERED_ITEM,
    "to_do": NodeKind.CHECK_ITEM,
    "divider": NodeKind.DIVIDER,
}

# Never descended into: they are separate pages/databases, not part of the note
NESTED_CONTAINER_TYPES = frozenset({"child_page", "child_database"})

# Embedded blocks owned by someone else (meeting transcriptions, synced copies
# of pages the integration was never shared with). Their children may 404.
EMBEDDED_FOREIGN_TYPES = frozenset({"transcription", "meeting_notes", "synced_block"})


class RichText(BaseModel):
    plain_text: str = ""


class TextBody(BaseModel):
    """The ``block[block.type]`` object of any text-bearing block."""

    rich_text: list[RichText] = []
    checked: bool = False

    @property
    def text(self) -> str:
        return "".join(part.plain_text for part in self.rich_text)


class RawBlock(BaseModel):
    """A block object as returned by the Notion API."""

    model_config = ConfigDict(extra="allow")

    id: str
    type: str
    has_children: bool = False

    def body(self) -> TextBody:
        payload = (self.model_extra or {}).get(self.type)
        if not isinstance(payload, dict):
            return TextBody()
        return TextBody.model_validate(payload)


def to_content_node(payload: dict[str, Any]) -> ContentNode:
    """Validate a raw block payload and convert it to a :class:`ContentNode`."""
    block = RawBlock.model_validate(payload)
    body = block.body()

    if block.type in HEADING_TYPES:
        return ContentNode(
            id=block.id,
            kind=NodeKind.HEADING,
            text=body.text,
            level=HEADING_TYPES[block.type],
            has_children=block.has_children,
            block_type=block.type,
        )

    kind = _KIND_BY_TYPE.get(block.type, NodeKind.OTHER)
    return ContentNode(
        id=block.id,
        kind=kind,
        text=body.text if kind is not NodeKind.DIVIDER else "",
        checked=body.checked if kind is NodeKind.CHECK_ITEM else False,
        has_children=block.has_children,
        block_type=block.type,
    )


class InaccessiblePolicy(StrEnum):
    SKIP = "skip"
    PROPAGATE = "propagate"


def skip_embedded_foreign(node: ContentNode, error: RemoteError) -> InaccessiblePolicy:
    """Default policy: only embedded, foreign-owned blocks may be skipped."""
    if node.block_type in EMBEDDED_FOREIGN_TYPES:
        return InaccessiblePolicy.SKIP
    return InaccessiblePolicy.PROPAGATE


def flatten_children(
    root_id: str,
    fetch: Callable[[str], list[ContentNode]],
    on_inaccessible: Callable[[ContentNode, RemoteError], InaccessiblePolicy] = skip_embedded_foreign,
) -> list[ContentNode]:
    """Depth-first flattening of all descendants of ``root_id``.

    Each node is followed immediately by its own descendants. Child pages and
    child databases are never expanded.
    """
    nodes: list[ContentNode] = []
    for node in fetch(root_id):
        nodes.append(node)
        if not node.has_children or node.block_type in NESTED_CONTAINER_TYPES:
            continue
        try:
            nodes.extend(flatten_children(node.id, fetch, on_inaccessible))
        except RemoteError as exc:
            if exc.transient or on_inaccessible(node, exc) is InaccessiblePolicy.PROPAGATE:
                raise
            logger.warning("Skipping inaccessible block: %s (%s)", node.block_type, node.id)
    return nodes


def bulleted_item(text: str) -> dict[str, Any]:
    """Payload for a new bulleted list item block."""
    return {
        "object": "block",
        "type": "bulleted_list_item",
        "bulleted_list_item": {"rich_text": [{"type": "text", "text": {"content": text}}]},
    }
