"""Heading-bounded section scanning over a flat, depth-first node sequence."""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence

from src.extraction.models import ContentNode, NodeKind, Section

HeadingPredicate = Callable[[str], bool]

# Paragraphs shorter than this are treated as throwaway lines unless bulleted
MIN_PARAGRAPH_CHARS = 10

_BULLET_GLYPH_RE = re.compile(r"^[-•]\s*")


def normalize_text(text: str) -> str:
    """Case-fold and trim text for heading and keyword comparisons."""
    return text.strip().casefold()


def heading_matcher(*phrases: str) -> HeadingPredicate:
    """Build a predicate that matches headings containing any of ``phrases``."""
    targets = [normalize_text(p) for p in phrases if normalize_text(p)]

    def matches(text: str) -> bool:
        normalized = normalize_text(text)
        return any(target in normalized for target in targets)

    return matches


def strip_bullet_glyph(text: str) -> str:
    """Remove a leading ``-`` or ``•`` (and following spaces) from a line."""
    return _BULLET_GLYPH_RE.sub("", text.strip()).strip()


def find_section(nodes: Sequence[ContentNode], predicate: HeadingPredicate) -> Section | None:
    """Locate the first heading accepted by ``predicate`` and the range it governs.

    The section ends at the next heading of any kind, or at the end of
    ``nodes``. Later headings that also match are ignored.

    Returns:
        The section, or None if no heading matches.
    """
    start: int | None = None
    for i, node in enumerate(nodes):
        if not node.is_heading:
            continue
        if start is not None:
            return Section(start, i)
        if predicate(node.text):
            start = i
    if start is None:
        return None
    return Section(start, len(nodes))


def extract_leaf_text(nodes: Sequence[ContentNode], section: Section) -> list[str]:
    """Collect bullet-like lines from the body of ``section``.

    Bulleted and numbered items are always kept. Plain paragraphs are kept
    only when they start with a bullet glyph or are longer than
    :data:`MIN_PARAGRAPH_CHARS`, so people who type lines instead of using
    list blocks are still picked up.
    """
    lines: list[str] = []
    for i in section.body:
        node = nodes[i]
        text = node.text.strip()
        if not text:
            continue
        if node.kind in (NodeKind.BULLET_ITEM, NodeKind.NUMBERED_ITEM):
            lines.append(text)
        elif node.kind is NodeKind.PARAGRAPH:
            if text.startswith(("-", "•")) or len(text) > MIN_PARAGRAPH_CHARS:
                cleaned = strip_bullet_glyph(text)
                if cleaned:
                    lines.append(cleaned)
    return lines


def extract_section_text(nodes: Sequence[ContentNode], section: Section) -> str:
    """Render the body of ``section`` as newline-separated plain text.

    List items are prefixed with ``- `` so the result reads like the note the
    user typed; dividers and unknown blocks are skipped.
    """
    lines: list[str] = []
    for i in section.body:
        node = nodes[i]
        text = node.text.strip()
        if not text:
            continue
        if node.kind in (NodeKind.BULLET_ITEM, NodeKind.NUMBERED_ITEM):
            lines.append(f"- {text}")
        elif node.kind in (NodeKind.PARAGRAPH, NodeKind.CHECK_ITEM, NodeKind.HEADING):
            lines.append(text)
    return "\n".join(lines).strip()
