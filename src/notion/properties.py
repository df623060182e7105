"""Reading and writing Notion page properties.

Readers validate the loosely-typed page payload and turn it into the record
dataclasses. Writers build property values where ``None`` means "clear the
field", which Notion encodes as a null value rather than an empty string.
"""

from __future__ import annotations

from datetime import UTC, date, datetime
from typing import Any

from pydantic import BaseModel

from src.automation.models import QuickEntryRecord, SourceDocument, TaskRecord

TITLE_PROPERTIES = ("Title", "Name")
UNTITLED_MEETING = "[Untitled Meeting]"


class _PlainText(BaseModel):
    plain_text: str = ""


class _SelectOption(BaseModel):
    name: str


class _DateValue(BaseModel):
    start: str


class PropertyValue(BaseModel):
    """Union of the property shapes this service reads."""

    type: str = ""
    title: list[_PlainText] | None = None
    rich_text: list[_PlainText] | None = None
    select: _SelectOption | None = None
    checkbox: bool | None = None
    date: _DateValue | None = None


class RawPage(BaseModel):
    """A page object as returned by the Notion API."""

    id: str
    last_edited_time: datetime
    properties: dict[str, PropertyValue] = {}

    def prop(self, name: str) -> PropertyValue | None:
        return self.properties.get(name)

    def title(self) -> str:
        for name in TITLE_PROPERTIES:
            value = self.prop(name)
            if value is not None and value.title is not None:
                return "".join(t.plain_text for t in value.title).strip()
        return ""

    def select(self, name: str) -> str | None:
        value = self.prop(name)
        if value is None or value.select is None:
            return None
        return value.select.name or None

    def checkbox(self, name: str) -> bool:
        value = self.prop(name)
        return bool(value and value.checkbox)

    def date_start(self, name: str) -> str | None:
        value = self.prop(name)
        if value is None or value.date is None:
            return None
        return value.date.start


def parse_datetime(value: str) -> datetime:
    """Parse a Notion ISO timestamp or date (``Z`` suffix allowed).

    Date-only values and timestamps without an offset are read as UTC, so the
    result can always be compared with ``last_edited_time``.
    """
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed


def parse_source_document(payload: dict[str, Any]) -> SourceDocument:
    page = RawPage.model_validate(payload)
    last_processed = page.date_start("Last Processed")
    return SourceDocument(
        id=page.id,
        title=page.title() or UNTITLED_MEETING,
        last_edited_at=page.last_edited_time,
        processed=page.checkbox("Processed"),
        last_processed_at=parse_datetime(last_processed) if last_processed else None,
        project=page.select("Project"),
    )


def parse_quick_entry(payload: dict[str, Any]) -> QuickEntryRecord:
    page = RawPage.model_validate(payload)
    due = page.date_start("Due")
    return QuickEntryRecord(
        id=page.id,
        title=page.title(),
        status=page.select("Status"),
        priority=page.select("Priority"),
        project=page.select("Project"),
        due=parse_datetime(due).date() if due else None,
    )


def page_title(payload: dict[str, Any]) -> str:
    return RawPage.model_validate(payload).title()


# ---------------------------------------------------------------------------
# Property value builders
# ---------------------------------------------------------------------------


def title_value(text: str) -> dict[str, Any]:
    return {"title": [{"text": {"content": text}}]}


def rich_text_value(text: str) -> dict[str, Any]:
    return {"rich_text": [{"text": {"content": text}}]}


def select_value(name: str | None) -> dict[str, Any]:
    return {"select": {"name": name} if name else None}


def checkbox_value(checked: bool) -> dict[str, Any]:
    return {"checkbox": checked}


def date_value(value: date | datetime | None) -> dict[str, Any]:
    return {"date": {"start": value.isoformat()} if value else None}


def relation_value(*page_ids: str) -> dict[str, Any]:
    return {"relation": [{"id": page_id} for page_id in page_ids]}


def task_properties(task: TaskRecord) -> dict[str, Any]:
    """Properties for a new task page; unset optional fields are omitted."""
    properties: dict[str, Any] = {
        "Title": title_value(task.title),
        "Status": select_value(task.status.value),
        "Priority": select_value(task.priority.value),
    }
    if task.due:
        properties["Due"] = date_value(task.due)
    if task.project:
        properties["Project"] = select_value(task.project)
    if task.source_document_id:
        properties["From Meeting"] = relation_value(task.source_document_id)
        properties["Sprint?"] = checkbox_value(False)
    if task.idempotency_key:
        properties["Line Key"] = rich_text_value(task.idempotency_key)
    return properties
