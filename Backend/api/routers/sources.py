# Backend/api/routers/sources.py
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from app.core.config import get_settings
from app.core.logging import get_logger
from app.models.hn_sources import SourcesResponse
from services.hn_client import UpstreamListError
from services.hn_sources_service import HackerNewsSourceService
from services.hn_topics import resolve_topic

logger = get_logger(module="sources_router")

router = APIRouter(
    prefix="/sources",
    tags=["sources"],
)


def get_source_service(request: Request) -> HackerNewsSourceService:
    service = getattr(request.app.state, "source_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Source service is not initialized.")
    return service


@router.get("", response_model=SourcesResponse)
async def list_sources(
    topic: str = Query(..., min_length=1, max_length=200, description="Free-text topic or one of: top, new, best, ask, show, job."),
    count: int | None = Query(None, ge=0, description="Maximum number of sources to return."),
    service: HackerNewsSourceService = Depends(get_source_service),
) -> SourcesResponse:
    settings = get_settings()
    if count is None:
        count = settings.SOURCES_DEFAULT_COUNT
    if count > settings.SOURCES_MAX_COUNT:
        raise HTTPException(
            status_code=422,
            detail=f"count must be <= {settings.SOURCES_MAX_COUNT}",
        )
    if not topic.strip():
        raise HTTPException(status_code=422, detail="topic must not be blank")

    try:
        items = await service.get_sources(topic, count)
    except UpstreamListError as exc:
        logger.warning("sources_upstream_failed", topic=topic, call=exc.call, error=str(exc))
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    resolved = resolve_topic(topic)
    return SourcesResponse(topic=resolved.cache_key, mode=resolved.mode, count=len(items), items=items)
