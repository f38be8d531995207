from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from xsslab.api.deps import get_retention
from xsslab.services.retention import RetentionService

router = APIRouter(prefix="/_admin", tags=["admin"])


@router.post("/reset/comments")
async def reset_comments(retention: RetentionService = Depends(get_retention)):
    return asdict(await retention.reset_seed())


@router.post("/reset/events")
async def reset_events(
    category: Optional[str] = Query(None, min_length=1, max_length=50),
    retention: RetentionService = Depends(get_retention),
):
    return asdict(await retention.clear(category))


@router.post("/purge")
async def purge(
    request: Request,
    days: Optional[int] = Query(None, ge=1, le=365),
    retention: RetentionService = Depends(get_retention),
):
    d = days if days is not None else request.app.state.settings.RETENTION_DAYS
    return asdict(await retention.purge_older_than(d))
