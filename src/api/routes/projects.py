from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from src.api.dependencies import get_context
from src.api.models import RouteRequest, RouteResponse
from src.automation.context import AutomationContext
from src.classification.models import CategorizedBundle
from src.errors import NotFoundError

router = APIRouter()


@router.post("/api/projects/{project_name}/route", response_model=RouteResponse)
def route_project_info(
    project_name: str,
    request: RouteRequest,
    context: AutomationContext = Depends(get_context),
) -> RouteResponse:
    """Append already-categorized lines to a project page."""
    try:
        context.router.find_project_page(project_name)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=f"Project page {project_name!r} not found") from exc

    bundle = CategorizedBundle.model_validate(request.model_dump())
    if bundle.is_empty():
        raise HTTPException(status_code=400, detail="Nothing to route")
    return RouteResponse(project=project_name, routed=context.router.route(project_name, bundle))
