from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from src.api.dependencies import get_context
from src.api.models import QuickEntryProcessResponse
from src.automation.context import AutomationContext
from src.automation.quick_entry import is_quick_entry
from src.notion.properties import parse_quick_entry

router = APIRouter()


@router.post("/api/quick-entries/{page_id}/process", response_model=QuickEntryProcessResponse)
def process_quick_entry(
    page_id: str, context: AutomationContext = Depends(get_context)
) -> QuickEntryProcessResponse:
    """Process one quick entry page now.

    Pages that no longer look like quick entries (a person has filled them
    in) are rejected with 409 rather than overwritten.
    """
    record = parse_quick_entry(context.store.get_page(page_id))
    if not is_quick_entry(record):
        raise HTTPException(status_code=409, detail="Page is not a pending quick entry")

    result = context.quick_entries.process(record)
    if result is None:
        return QuickEntryProcessResponse(page_id=record.id, processed=False)
    return QuickEntryProcessResponse(
        page_id=record.id,
        processed=True,
        task_created=result.task_created,
        project_info_routed=result.project_info_routed,
        page_deleted=result.page_deleted,
        extra_tasks_created=result.extra_tasks_created,
    )
