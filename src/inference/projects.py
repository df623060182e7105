"""Project inference for documents that were not tagged with a project."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from src.extraction.models import ContentNode, NodeKind
from src.inference.keywords import (
    FALLBACK_PROJECT,
    PROJECT_KEYWORDS,
    QUICK_ENTRY_PROJECT_KEYWORDS,
)
from src.inference.matching import first_keyword_match

logger = logging.getLogger(__name__)

OVERRIDE_CONFIDENCE = 1.0
TITLE_MATCH_CONFIDENCE = 0.8
FALLBACK_CONFIDENCE = 0.0
DEFAULT_REVIEW_THRESHOLD = 0.6

_OVERRIDE_TAG_RE = re.compile(r"#proj:(\w+)", re.IGNORECASE)
_TAGGABLE_KINDS = (NodeKind.PARAGRAPH, NodeKind.BULLET_ITEM, NodeKind.NUMBERED_ITEM)


@dataclass(frozen=True)
class ProjectInference:
    """An inferred project and how sure we are about it."""

    project: str
    confidence: float


def match_project_token(token: str) -> str | None:
    """Map an override token to a known project.

    A token matches when it is a substring of a project name or of one of the
    project's keywords (case-insensitive).
    """
    needle = token.casefold()
    if not needle:
        return None
    for project, keywords in PROJECT_KEYWORDS:
        if needle in project.casefold() or any(needle in kw for kw in keywords):
            return project
    return None


def find_override_tag(nodes: Iterable[ContentNode]) -> str | None:
    """Return the project named by the first recognised ``#proj:<token>`` tag."""
    for node in nodes:
        if node.kind not in _TAGGABLE_KINDS:
            continue
        for match in _OVERRIDE_TAG_RE.finditer(node.text):
            project = match_project_token(match.group(1))
            if project:
                return project
    return None


def infer_project(title: str, nodes: Sequence[ContentNode] = ()) -> ProjectInference:
    """Classify a document into a known project.

    An explicit ``#proj:`` tag in the body always wins (confidence 1.0). Failing
    that, the title is checked against the keyword table (0.8). Anything else
    lands in the fallback project with confidence 0.0.
    """
    override = find_override_tag(nodes)
    if override:
        return ProjectInference(override, OVERRIDE_CONFIDENCE)

    project = first_keyword_match(title, PROJECT_KEYWORDS)
    if project:
        return ProjectInference(project, TITLE_MATCH_CONFIDENCE)

    return ProjectInference(FALLBACK_PROJECT, FALLBACK_CONFIDENCE)


def needs_review(confidence: float, threshold: float = DEFAULT_REVIEW_THRESHOLD) -> bool:
    """Whether an inferred project is too uncertain to trust without a human."""
    return confidence < threshold


def detect_project_from_content(lines: Iterable[str]) -> str:
    """Pick the project a free-form info blurb is about.

    Falls back to :data:`FALLBACK_PROJECT` (with a warning) rather than
    dropping the content.
    """
    content = " ".join(lines)
    project = first_keyword_match(content, QUICK_ENTRY_PROJECT_KEYWORDS)
    if project is None:
        logger.warning("Could not detect project from content, defaulting to %s", FALLBACK_PROJECT)
        return FALLBACK_PROJECT
    return project
