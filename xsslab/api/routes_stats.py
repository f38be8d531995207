from __future__ import annotations

from dataclasses import asdict
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from xsslab.api.deps import get_analytics
from xsslab.services.analytics import AnalyticsEngine

router = APIRouter(prefix="/stats", tags=["stats"])


class OverallOut(BaseModel):
    total: int
    distinct_actors: int
    distinct_categories: int
    earliest: Optional[datetime] = None
    latest: Optional[datetime] = None


class CategoryOut(BaseModel):
    category: str
    count: int
    attack_count: int
    critical_count: int


class SeverityOut(BaseModel):
    severity: str
    count: int
    distinct_actors: int


class SuspiciousActorOut(BaseModel):
    actor_address: str
    request_count: int
    high_severity_count: int
    categories_accessed: int
    first_request: datetime
    last_request: datetime
    categories: List[str]


class RecurringPayloadOut(BaseModel):
    payload: str
    occurrence_count: int
    distinct_actors: int
    last_seen: datetime
    categories: List[str]


class AttackPreviewOut(BaseModel):
    id: int
    category: str
    action: str
    payload_preview: str
    actor_address: str
    severity: str
    created_at: datetime


def _dump(obj) -> dict:
    d = asdict(obj)
    if "severity" in d:
        d["severity"] = getattr(d["severity"], "value", d["severity"])
    return d


@router.get("/overview", response_model=OverallOut)
async def overview(analytics: AnalyticsEngine = Depends(get_analytics)):
    return _dump(await analytics.overall())


@router.get("/categories", response_model=List[CategoryOut])
async def categories(analytics: AnalyticsEngine = Depends(get_analytics)):
    return [_dump(r) for r in await analytics.by_category()]


@router.get("/severity", response_model=List[SeverityOut])
async def severity(analytics: AnalyticsEngine = Depends(get_analytics)):
    return [_dump(r) for r in await analytics.by_severity()]


@router.get("/suspicious", response_model=List[SuspiciousActorOut])
async def suspicious(analytics: AnalyticsEngine = Depends(get_analytics)):
    return [_dump(r) for r in await analytics.suspicious_actors()]


@router.get("/recurring", response_model=List[RecurringPayloadOut])
async def recurring(analytics: AnalyticsEngine = Depends(get_analytics)):
    return [_dump(r) for r in await analytics.recurring_payloads()]


@router.get("/recent-attacks", response_model=List[AttackPreviewOut])
async def recent_attacks(
    limit: int = Query(10, ge=1, le=100), analytics: AnalyticsEngine = Depends(get_analytics)
):
    return [_dump(r) for r in await analytics.recent_attacks(limit)]
