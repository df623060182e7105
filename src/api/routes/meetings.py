from __future__ import annotations

from fastapi import APIRouter, Depends

from src.api.dependencies import get_context
from src.api.models import MeetingProcessResponse
from src.automation.context import AutomationContext
from src.notion.properties import parse_source_document

router = APIRouter()


@router.post("/api/meetings/{page_id}/process", response_model=MeetingProcessResponse)
def process_meeting(
    page_id: str, context: AutomationContext = Depends(get_context)
) -> MeetingProcessResponse:
    """Process one meeting page now, whether or not it was edited since its last pass.

    Already-created tasks are skipped by their line key, so this is safe to
    repeat.
    """
    doc = parse_source_document(context.store.get_page(page_id))
    result = context.meetings.process(doc)
    return MeetingProcessResponse(
        page_id=doc.id,
        title=doc.title,
        created=result.created,
        skipped=result.skipped,
        project=result.project,
        needs_review=result.needs_review,
        project_info_routed=result.project_info_routed,
    )
