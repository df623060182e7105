"""Turn the check items of a meeting page into task pages."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, date, datetime

from src.automation.models import MeetingResult, SourceDocument, TaskRecord
from src.classification.classifier import Classifier
from src.config import Settings
from src.errors import RemoteError
from src.extraction.models import ContentNode, TaskStatus
from src.extraction.parsers import parse_due_date, parse_priority, today_in
from src.extraction.sections import extract_leaf_text, find_section, heading_matcher
from src.extraction.todos import extract_todos, line_key
from src.inference.projects import infer_project, needs_review
from src.notion.properties import checkbox_value, date_value, select_value, task_properties
from src.notion.store import NotionStore
from src.routing.project_pages import ProjectPageRouter

logger = logging.getLogger(__name__)

PROJECT_INFO_HEADINGS = ("project information", "project info")


class MeetingProcessor:
    """Synthesize tasks and route project info for one meeting page at a time."""

    def __init__(
        self,
        store: NotionStore,
        classifier: Classifier,
        router: ProjectPageRouter,
        settings: Settings,
        today: Callable[[], date] | None = None,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._classifier = classifier
        self._router = router
        self._tasks_database_id = settings.tasks_database_id
        self._review_threshold = settings.review_threshold
        self._today = today or (lambda: today_in(settings.timezone))
        self._now = now or (lambda: datetime.now(UTC))

    def _build_task(self, doc: SourceDocument, text: str, checked: bool, project: str, key: str) -> TaskRecord:
        return TaskRecord(
            title=text,
            status=TaskStatus.DONE if checked else TaskStatus.BACKLOG,
            priority=parse_priority(text),
            due=parse_due_date(text, self._today()),
            project=project,
            source_document_id=doc.id,
            idempotency_key=key,
        )

    def _route_project_info(self, doc: SourceDocument, nodes: list[ContentNode], project: str) -> bool:
        section = find_section(nodes, heading_matcher(*PROJECT_INFO_HEADINGS))
        if section is None:
            logger.debug("No project information section in %s", doc.id)
            return False
        bullets = extract_leaf_text(nodes, section)
        if not bullets:
            return False

        logger.info("Routing %d project info line(s) from %r to %s", len(bullets), doc.title, project)
        bundle = self._classifier.categorize(bullets)
        try:
            routed = self._router.route(project, bundle)
        except RemoteError as exc:
            logger.error("Failed to route project info from %s: %s", doc.id, exc)
            return False
        if not routed:
            logger.warning("Project page for %s was not updated (it may not exist yet)", project)
        return routed

    def process(self, doc: SourceDocument) -> MeetingResult:
        """Create missing tasks for ``doc`` and mark it processed.

        Tasks whose idempotency key already exists are skipped, so running this
        twice on an unchanged page creates nothing the second time.

        Raises:
            RemoteError: reading the page or its existing tasks failed.
        """
        logger.info("Processing meeting %r (%s)", doc.title, doc.id)
        nodes = self._store.get_children(doc.id, recursive=True)
        todos = extract_todos(nodes)
        logger.info("Found %d block(s), %d to-do item(s)", len(nodes), len(todos))

        result = MeetingResult()
        if doc.project:
            result.project = doc.project
            logger.info("Project from page: %s", doc.project)
        else:
            inference = infer_project(doc.title, nodes)
            result.project = inference.project
            result.needs_review = needs_review(inference.confidence, self._review_threshold)
            logger.info(
                "Inferred project %s (confidence %.1f, needs review: %s)",
                inference.project,
                inference.confidence,
                result.needs_review,
            )

        for todo in todos:
            key = line_key(doc.id, todo.text)
            if self._store.task_exists(self._tasks_database_id, key):
                logger.debug("Skipped duplicate task: %.50s", todo.text)
                result.skipped += 1
                continue

            task = self._build_task(doc, todo.text, todo.checked, result.project, key)
            try:
                self._store.create_page(self._tasks_database_id, task_properties(task))
            except RemoteError as exc:
                logger.error("Failed to create task %.60r: %s", todo.text, exc)
                result.skipped += 1
                continue
            result.created += 1
            logger.info(
                "Created task: %.60s [%s%s]",
                task.title,
                task.priority.value,
                f", due {task.due.isoformat()}" if task.due else "",
            )

        result.project_info_routed = self._route_project_info(doc, nodes, result.project)

        updates = {
            "Processed": checkbox_value(True),
            "Last Processed": date_value(self._now()),
        }
        if not doc.project:
            updates["Project"] = select_value(result.project)
            updates["Needs Review?"] = checkbox_value(result.needs_review)
        self._store.update_page(doc.id, updates)
        logger.info(
            "Meeting %s done: %d created, %d skipped, project=%s",
            doc.id,
            result.created,
            result.skipped,
            result.project,
        )
        return result
