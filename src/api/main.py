import logging
import math

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.api.routes.meetings import router as meetings_router
from src.api.routes.poll import router as poll_router
from src.api.routes.projects import router as projects_router
from src.api.routes.quick_entries import router as quick_entries_router
from src.config import settings
from src.errors import NotFoundError, RemoteError

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Meeting Task Automation API",
    description="Turns Notion meeting notes and quick entries into tasks and project knowledge",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000"],
    allow_origin_regex=r"http://localhost:\d+",
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(poll_router)
app.include_router(meetings_router)
app.include_router(quick_entries_router)
app.include_router(projects_router)


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(RemoteError)
async def remote_error_handler(request: Request, exc: RemoteError) -> JSONResponse:
    # Notion answers unknown or unshared pages with 404
    if exc.status == 404:
        return JSONResponse(status_code=404, content={"detail": str(exc)})
    logger.error("Remote call failed during %s %s: %s", request.method, request.url.path, exc)
    content = {"detail": f"Upstream error: {exc}"}
    if exc.is_rate_limited:
        retry_after = str(math.ceil(settings.backoff_cap_seconds))
        return JSONResponse(status_code=503, content=content, headers={"Retry-After": retry_after})
    if exc.is_timeout:
        return JSONResponse(status_code=504, content=content)
    status_code = 503 if exc.transient else 502
    return JSONResponse(status_code=status_code, content=content)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "healthy"}
