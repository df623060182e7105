"""Poll cycle: process due meeting pages, then pending quick entries.

Cycles run one at a time and every item inside a cycle is handled
sequentially, so the whole process keeps a single, predictable request
rate against Notion.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any, TypeVar

from pydantic import ValidationError

from src.automation.context import AutomationContext
from src.automation.models import CycleSummary, QuickEntryRecord, SourceDocument
from src.automation.quick_entry import is_quick_entry
from src.automation.reprocessing import should_process
from src.errors import RemoteError
from src.notion.properties import parse_quick_entry, parse_source_document

logger = logging.getLogger(__name__)

T = TypeVar("T")

MEETINGS_FILTER: dict[str, Any] = {
    "or": [
        {"property": "Processed", "checkbox": {"equals": False}},
        {
            "and": [
                {"property": "Processed", "checkbox": {"equals": True}},
                {"property": "Last Processed", "date": {"is_not_empty": True}},
            ]
        },
    ]
}
MEETINGS_SORTS: list[dict[str, Any]] = [{"property": "Created", "direction": "descending"}]

QUICK_ENTRY_FILTER: dict[str, Any] = {
    "or": [
        {"property": "Status", "select": {"is_empty": True}},
        {"property": "Status", "select": {"equals": "Backlog"}},
    ]
}


def _parse_pages(pages: list[dict[str, Any]], parse: Callable[[dict[str, Any]], T]) -> list[T]:
    parsed = []
    for page in pages:
        try:
            parsed.append(parse(page))
        except ValidationError as exc:
            logger.warning("Skipping malformed page %s: %s", page.get("id"), exc)
    return parsed


def fetch_due_meetings(context: AutomationContext) -> tuple[int, list[SourceDocument]]:
    """Return how many meeting pages were checked and those needing a pass."""
    pages = context.store.query(
        context.settings.meetings_database_id, filter=MEETINGS_FILTER, sorts=MEETINGS_SORTS
    )
    due = []
    for doc in _parse_pages(pages, parse_source_document):
        try:
            if should_process(doc):
                due.append(doc)
        except Exception:
            logger.exception("Skipping meeting %r (%s): could not check its timestamps", doc.title, doc.id)
    return len(pages), due


def fetch_quick_entries(context: AutomationContext) -> list[QuickEntryRecord]:
    pages = context.store.query(context.settings.tasks_database_id, filter=QUICK_ENTRY_FILTER)
    records = _parse_pages(pages, parse_quick_entry)
    return [record for record in records if is_quick_entry(record)]


def _process_meetings(context: AutomationContext, summary: CycleSummary) -> None:
    try:
        summary.meetings_checked, due = fetch_due_meetings(context)
    except RemoteError as exc:
        logger.error("Could not query meetings: %s", exc)
        summary.errors.append(f"meetings query: {exc}")
        return

    logger.info("Found %d meetings to check, %d need processing", summary.meetings_checked, len(due))
    for doc in due:
        try:
            result = context.meetings.process(doc)
        except Exception as exc:
            logger.exception("Error processing meeting %r (%s)", doc.title, doc.id)
            summary.meetings_failed += 1
            summary.errors.append(f"meeting {doc.id}: {exc}")
            continue
        summary.meetings_processed += 1
        summary.tasks_created += result.created
        summary.tasks_skipped += result.skipped


def _process_quick_entries(context: AutomationContext, summary: CycleSummary) -> None:
    try:
        records = fetch_quick_entries(context)
    except RemoteError as exc:
        logger.error("Could not query quick entries: %s", exc)
        summary.errors.append(f"quick entries query: {exc}")
        return

    summary.quick_entries_found = len(records)
    logger.info("Found %d quick entries to process", len(records))
    for record in records:
        if context.tracker.should_skip(record.id):
            summary.quick_entries_deferred += 1
            continue
        try:
            result = context.quick_entries.process(record)
        except Exception as exc:
            logger.exception("Error processing quick entry %s", record.id)
            context.tracker.record_failure(record.id)
            summary.errors.append(f"quick entry {record.id}: {exc}")
            continue
        if result is not None:
            summary.quick_entries_processed += 1


def run_poll_cycle(context: AutomationContext) -> CycleSummary:
    """Run one full cycle. Failures of single items are logged, never raised."""
    logger.info("Starting poll cycle")
    summary = CycleSummary()
    _process_meetings(context, summary)
    _process_quick_entries(context, summary)
    logger.info(
        "Poll cycle complete: %d/%d meetings processed (%d failed), %d tasks created, "
        "%d skipped, %d/%d quick entries processed (%d deferred)",
        summary.meetings_processed,
        summary.meetings_checked,
        summary.meetings_failed,
        summary.tasks_created,
        summary.tasks_skipped,
        summary.quick_entries_processed,
        summary.quick_entries_found,
        summary.quick_entries_deferred,
    )
    return summary


def run_forever(
    context: AutomationContext,
    interval: float | None = None,
    sleep: Callable[[float], None] = time.sleep,
    max_cycles: int | None = None,
) -> None:
    """Run cycles back to back with ``interval`` seconds of sleep in between.

    The next cycle never starts before the previous one has finished.
    """
    interval = context.settings.poll_interval_seconds if interval is None else interval
    logger.info("Starting automation loop (every %ss)", interval)
    cycles = 0
    while True:
        run_poll_cycle(context)
        cycles += 1
        if max_cycles is not None and cycles >= max_cycles:
            return
        sleep(interval)
