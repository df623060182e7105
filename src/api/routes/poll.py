"""Poll endpoint: run one full cycle on demand (e.g. from an external scheduler)."""

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends

from src.api.dependencies import get_context
from src.api.models import CycleSummaryResponse
from src.automation.context import AutomationContext
from src.automation.poller import run_poll_cycle

router = APIRouter()


@router.post("/api/poll", response_model=CycleSummaryResponse)
def poll(context: AutomationContext = Depends(get_context)) -> CycleSummaryResponse:
    """Process due meetings and pending quick entries, then return the counts."""
    summary = run_poll_cycle(context)
    return CycleSummaryResponse(**asdict(summary))
