from __future__ import annotations

from src.automation.models import SourceDocument


def should_process(doc: SourceDocument) -> bool:
    """Whether a meeting page needs a (re)processing pass.

    Unprocessed pages always qualify. A processed page qualifies again only
    when it was edited strictly after its last pass; pages with no record of
    a last pass are left alone.
    """
    if not doc.processed:
        return True
    if doc.last_processed_at is not None:
        return doc.last_edited_at > doc.last_processed_at
    return False
