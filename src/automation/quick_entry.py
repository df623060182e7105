"""Processing of quick entries: minimal task pages with a Task and a Project Info section.

Users drop a rough note into the task database. The "Task" section is parsed
into task fields (extra tasks become sibling pages) and the "Project Info"
section is categorized and routed to a project page. Cleanup depends on which
sections were filled and succeeded:

- both succeeded: the Project Info section is deleted, the page stays a task
- only Project Info was filled: the page is archived (it was an inbox drop)
- only Task was filled: the empty Project Info section is deleted

If neither section succeeds the page is left untouched for the next cycle.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from src.automation.models import QuickEntryRecord, QuickEntryResult, TaskRecord
from src.classification.classifier import Classifier
from src.classification.models import CATEGORIES, ParsedTask
from src.config import Settings
from src.errors import RemoteError
from src.extraction.models import ContentNode, TaskStatus
from src.extraction.sections import (
    HeadingPredicate,
    extract_section_text,
    find_section,
    heading_matcher,
    strip_bullet_glyph,
)
from src.extraction.todos import line_key
from src.inference.projects import detect_project_from_content
from src.notion.properties import date_value, select_value, task_properties, title_value
from src.notion.store import NotionStore
from src.routing.project_pages import ProjectPageRouter

logger = logging.getLogger(__name__)

# Section text at or under these lengths counts as empty
MIN_TASK_CHARS = 3
MIN_INFO_CHARS = 5

MIN_TITLE_CHARS = 5
PLACEHOLDER_TITLE = "untitled"

task_section = heading_matcher("Task")
project_info_section = heading_matcher("Project Info")


def has_placeholder_title(title: str) -> bool:
    title = title.strip()
    return not title or len(title) < MIN_TITLE_CHARS or PLACEHOLDER_TITLE in title.lower()


def is_quick_entry(record: QuickEntryRecord) -> bool:
    """Whether a task page still looks like an unprocessed quick entry.

    Requires a placeholder title, a missing project or priority, and no status
    beyond Backlog, so pages a person has filled in are never touched.
    """
    missing_fields = not record.project or not record.priority
    is_new = not record.status or record.status == TaskStatus.BACKLOG.value
    return has_placeholder_title(record.title) and missing_fields and is_new


@dataclass
class FailureTracker:
    """In-memory count of consecutive failed attempts per quick entry.

    After ``max_failures`` failures in a row a record sits out
    ``cooldown_cycles`` poll cycles before it is tried again. Nothing is
    persisted; a restart forgets every count.
    """

    max_failures: int = 3
    cooldown_cycles: int = 5
    _failures: dict[str, int] = field(default_factory=dict)
    _cooldowns: dict[str, int] = field(default_factory=dict)

    @property
    def enabled(self) -> bool:
        return self.max_failures > 0

    def failures(self, record_id: str) -> int:
        return self._failures.get(record_id, 0)

    def should_skip(self, record_id: str) -> bool:
        """Whether to skip ``record_id`` this cycle; consumes one cooldown cycle."""
        remaining = self._cooldowns.get(record_id, 0)
        if remaining <= 0:
            return False
        self._cooldowns[record_id] = remaining - 1
        logger.warning(
            "Quick entry %s flagged after %d failed attempts, skipping (%d cycle(s) left)",
            record_id,
            self.failures(record_id),
            remaining - 1,
        )
        return True

    def record_failure(self, record_id: str) -> None:
        count = self._failures.get(record_id, 0) + 1
        self._failures[record_id] = count
        if self.enabled and count >= self.max_failures:
            self._cooldowns[record_id] = self.cooldown_cycles
            logger.warning(
                "Quick entry %s failed %d times in a row, cooling down for %d cycle(s)",
                record_id,
                count,
                self.cooldown_cycles,
            )

    def record_success(self, record_id: str) -> None:
        self._failures.pop(record_id, None)
        self._cooldowns.pop(record_id, None)


class QuickEntryProcessor:
    """Run the two-section workflow for one quick entry."""

    def __init__(
        self,
        store: NotionStore,
        classifier: Classifier,
        router: ProjectPageRouter,
        settings: Settings,
        tracker: FailureTracker | None = None,
    ) -> None:
        self._store = store
        self._classifier = classifier
        self._router = router
        self._tasks_database_id = settings.tasks_database_id
        self._tracker = tracker

    def delete_section(self, page_id: str, predicate: HeadingPredicate) -> bool:
        """Delete the section matched by ``predicate``, heading included.

        Blocks that cannot be deleted (usually because they are already gone)
        are logged and skipped.

        Returns:
            True when the section is gone, including when it never existed.
        """
        nodes = self._store.get_children(page_id, recursive=True)
        section = find_section(nodes, predicate)
        if section is None:
            logger.info("Section to delete not found on %s", page_id)
            return True

        for i in range(section.start, section.end):
            try:
                self._store.delete_block(nodes[i].id)
            except RemoteError as exc:
                logger.warning("Could not delete block %s: %s", nodes[i].id, exc)
        logger.info("Deleted %d block(s) from %s", section.end - section.start, page_id)
        return True

    def _first_task_updates(self, record: QuickEntryRecord, task: ParsedTask) -> dict[str, Any]:
        updates: dict[str, Any] = {}
        if has_placeholder_title(record.title):
            updates["Title"] = title_value(task.title)
        if not record.project and task.project:
            updates["Project"] = select_value(task.project)
        if not record.priority:
            updates["Priority"] = select_value(task.priority.value)
        if not record.due and task.due:
            updates["Due"] = date_value(task.due)
        if not record.status:
            updates["Status"] = select_value(TaskStatus.BACKLOG.value)
        return updates

    def _create_sibling(self, record: QuickEntryRecord, task: ParsedTask) -> bool:
        key = line_key(record.id, task.title)
        if self._store.task_exists(self._tasks_database_id, key):
            logger.info("Sibling task %r already exists, skipping", task.title)
            return False
        sibling = TaskRecord(
            title=task.title,
            status=TaskStatus.BACKLOG,
            priority=task.priority,
            due=task.due,
            project=task.project,
            idempotency_key=key,
        )
        self._store.create_page(self._tasks_database_id, task_properties(sibling))
        return True

    def _process_task(self, record: QuickEntryRecord, text: str) -> tuple[bool, int]:
        tasks = self._classifier.parse_tasks(text)
        logger.info("Parsed %d task(s) from quick entry %s", len(tasks), record.id)
        if not tasks:
            logger.warning("No tasks parsed from quick entry %s", record.id)
            return False, 0

        first, *rest = tasks
        updates = self._first_task_updates(record, first)
        try:
            if updates:
                self._store.update_page(record.id, updates)
                logger.info("Updated quick entry %s: %s", record.id, ", ".join(updates))
        except RemoteError as exc:
            logger.error("Failed to update quick entry %s: %s", record.id, exc)
            return False, 0

        created = 0
        for n, task in enumerate(rest, start=2):
            try:
                if self._create_sibling(record, task):
                    created += 1
                    logger.info("Created task %d: %r", n, task.title)
            except RemoteError as exc:
                logger.error("Failed to create task %d (%r): %s", n, task.title, exc)
        return True, created

    def _process_info(self, record: QuickEntryRecord, text: str) -> bool:
        bullets = [strip_bullet_glyph(line) for line in text.splitlines()]
        bullets = [line for line in bullets if line]
        if not bullets:
            return False

        bundle = self._classifier.categorize(bullets)
        bundle_lines = [line for name in CATEGORIES for line in getattr(bundle, name)]
        project = detect_project_from_content([*bullets, *bundle_lines])
        logger.info("Routing %d project info line(s) from %s to %s", len(bullets), record.id, project)
        try:
            return self._router.route(project, bundle)
        except RemoteError as exc:
            logger.error("Failed to route project info from %s: %s", record.id, exc)
            return False

    def _read_sections(self, nodes: list[ContentNode]) -> tuple[str, str]:
        texts = []
        for predicate in (task_section, project_info_section):
            section = find_section(nodes, predicate)
            texts.append(extract_section_text(nodes, section) if section else "")
        return texts[0], texts[1]

    def process(self, record: QuickEntryRecord) -> QuickEntryResult | None:
        """Process both sections of ``record`` and clean up after success.

        Returns:
            The outcome, or None when both sections were empty or neither
            succeeded (the page is then left as it was).

        Raises:
            RemoteError: reading the page failed.
        """
        nodes = self._store.get_children(record.id, recursive=True)
        task_text, info_text = self._read_sections(nodes)
        has_task = len(task_text) > MIN_TASK_CHARS
        has_info = len(info_text) > MIN_INFO_CHARS
        logger.info(
            "Quick entry %s: task section %s, project info section %s",
            record.id,
            "filled" if has_task else "empty",
            "filled" if has_info else "empty",
        )
        if not has_task and not has_info:
            return None

        task_ok, extra_created = self._process_task(record, task_text) if has_task else (False, 0)
        info_ok = self._process_info(record, info_text) if has_info else False

        if not task_ok and not info_ok:
            logger.warning("Quick entry %s failed, leaving it for the next cycle", record.id)
            if self._tracker is not None:
                self._tracker.record_failure(record.id)
            return None
        if self._tracker is not None:
            self._tracker.record_success(record.id)

        result = QuickEntryResult(
            task_created=task_ok,
            project_info_routed=info_ok,
            page_deleted=False,
            extra_tasks_created=extra_created,
        )
        if has_task and has_info and task_ok and info_ok:
            self.delete_section(record.id, project_info_section)
        elif not has_task and info_ok:
            try:
                self._store.archive_page(record.id)
                result.page_deleted = True
                logger.info("Archived info-only quick entry %s", record.id)
            except RemoteError as exc:
                logger.warning("Could not archive quick entry %s: %s", record.id, exc)
        elif has_task and not has_info and task_ok:
            self.delete_section(record.id, project_info_section)
        return result
