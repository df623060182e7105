"""Check-item extraction and idempotency keys for synthesized tasks."""

from __future__ import annotations

import hashlib
from collections.abc import Sequence

from src.extraction.models import ContentNode, NodeKind, WorkItem


def extract_todos(nodes: Sequence[ContentNode]) -> list[WorkItem]:
    """Return every non-empty check item in document order."""
    items: list[WorkItem] = []
    for node in nodes:
        if node.kind is not NodeKind.CHECK_ITEM:
            continue
        text = node.text.strip()
        if text:
            items.append(WorkItem(text=text, checked=node.checked, source_node_id=node.id))
    return items


def canonicalize(text: str) -> str:
    """Collapse whitespace and case-fold so cosmetic edits keep the same key."""
    return " ".join(text.split()).casefold()


def line_key(parent_id: str, text: str) -> str:
    """Stable SHA-256 fingerprint for a task line under a parent page.

    Two lines under the same parent that differ only in casing or whitespace
    share a key, which is what stops a reprocessed page from creating
    duplicate tasks.
    """
    content = f"{parent_id}:{canonicalize(text)}"
    return hashlib.sha256(content.encode("utf-8")).hexdigest()
