"""Record types read from and written to the task and meeting databases."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime

from src.extraction.models import Priority, TaskStatus


@dataclass
class SourceDocument:
    """A meeting page whose check items become tasks."""

    id: str
    title: str
    last_edited_at: datetime
    processed: bool = False
    last_processed_at: datetime | None = None
    project: str | None = None


@dataclass
class QuickEntryRecord:
    """A task page created with minimal fields, waiting to be filled in."""

    id: str
    title: str = ""
    status: str | None = None
    priority: str | None = None
    project: str | None = None
    due: date | None = None


@dataclass
class TaskRecord:
    """Fields of a task page to be created."""

    title: str
    status: TaskStatus = TaskStatus.BACKLOG
    priority: Priority = Priority.MEDIUM
    due: date | None = None
    project: str | None = None
    source_document_id: str | None = None
    idempotency_key: str | None = None


@dataclass
class MeetingResult:
    """Outcome of processing one meeting page."""

    created: int = 0
    skipped: int = 0
    project: str | None = None
    needs_review: bool = False
    project_info_routed: bool = False


@dataclass
class QuickEntryResult:
    """Terminal outcome of a quick entry that had at least one channel succeed."""

    task_created: bool
    project_info_routed: bool
    page_deleted: bool
    extra_tasks_created: int = 0


@dataclass
class CycleSummary:
    """Counts from one poll cycle."""

    meetings_checked: int = 0
    meetings_processed: int = 0
    meetings_failed: int = 0
    tasks_created: int = 0
    tasks_skipped: int = 0
    quick_entries_found: int = 0
    quick_entries_processed: int = 0
    quick_entries_deferred: int = 0
    errors: list[str] = field(default_factory=list)
