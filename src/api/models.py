"""Pydantic request/response schemas for the automation API."""

from __future__ import annotations

from pydantic import BaseModel

from src.classification.models import CategorizedBundle


class CycleSummaryResponse(BaseModel):
    """Counts from one poll cycle triggered through /api/poll."""

    meetings_checked: int
    meetings_processed: int
    meetings_failed: int
    tasks_created: int
    tasks_skipped: int
    quick_entries_found: int
    quick_entries_processed: int
    quick_entries_deferred: int
    errors: list[str] = []


class MeetingProcessResponse(BaseModel):
    page_id: str
    title: str
    created: int
    skipped: int
    project: str | None = None
    needs_review: bool = False
    project_info_routed: bool = False


class QuickEntryProcessResponse(BaseModel):
    """Outcome of one quick entry; ``processed`` is false when nothing was done."""

    page_id: str
    processed: bool
    task_created: bool = False
    project_info_routed: bool = False
    page_deleted: bool = False
    extra_tasks_created: int = 0


class RouteRequest(CategorizedBundle):
    """Already-categorized project info to append to a project page."""


class RouteResponse(BaseModel):
    project: str
    routed: bool
