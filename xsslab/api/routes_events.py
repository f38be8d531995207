# xsslab/api/routes_events.py
from __future__ import annotations
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field, constr

from xsslab.api.deps import client_info, get_event_store, get_ingestion
from xsslab.repositories.events import EventFilter, EventRecord, EventStore
from xsslab.services.export import export_events
from xsslab.services.ingestion import IngestionService

router = APIRouter(prefix="/events", tags=["events"])


class EventOut(BaseModel):
    id: int
    category: str
    action: str
    payload: str
    actor_address: str
    actor_agent: str
    session_id: str
    severity: str
    tag: str
    created_at: datetime

    @classmethod
    def from_record(cls, ev: EventRecord) -> "EventOut":
        return cls.model_validate(ev.to_dict())


class EventsPage(BaseModel):
    total: int
    limit: int
    offset: int
    items: List[EventOut]


_Category = constr(strip_whitespace=True, min_length=1, max_length=50)
_Action = constr(strip_whitespace=True, min_length=1, max_length=100)


class EventIn(BaseModel):
    category: _Category
    action: _Action
    payload: str = ""
    session_id: Optional[str] = Field(None, max_length=100)


class AttemptIn(BaseModel):
    category: _Category
    payload: str
    triggered: bool = False
    notes: str = ""


class OkCreated(BaseModel):
    ok: bool = True
    id: Optional[int] = None


@router.get("", response_model=EventsPage)
async def get_events(
    category: Optional[str] = Query(None),
    action: Optional[str] = Query(None),
    severity: Optional[str] = Query(None),
    actor_address: Optional[str] = Query(None),
    since: Optional[datetime] = Query(None),
    until: Optional[datetime] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    store: EventStore = Depends(get_event_store),
):
    flt = EventFilter.build(
        category=category, action=action, severity=severity, actor_address=actor_address, since=since, until=until
    )
    total = await store.count_events(flt)
    rows = await store.list_events(flt, limit=limit, offset=offset)
    return EventsPage(total=total, limit=limit, offset=offset, items=[EventOut.from_record(r) for r in rows])


@router.post("", response_model=OkCreated, status_code=status.HTTP_201_CREATED)
async def create_event(body: EventIn, request: Request, ingestion: IngestionService = Depends(get_ingestion)):
    """
    Ingest one event. A storage failure is not an error for the caller:
    the response carries ok=false and no id.
    """
    ip, ua = client_info(request)
    new_id = await ingestion.record(body.category, body.action, body.payload, ip, ua, body.session_id or "")
    return OkCreated(ok=new_id is not None, id=new_id)


@router.post("/attempts", response_model=OkCreated, status_code=status.HTTP_201_CREATED)
async def report_attempt(body: AttemptIn, request: Request, ingestion: IngestionService = Depends(get_ingestion)):
    ip, ua = client_info(request)
    new_id = await ingestion.record_attempt(
        body.category, body.payload, triggered=body.triggered, notes=body.notes, actor_address=ip, actor_agent=ua
    )
    return OkCreated(ok=new_id is not None, id=new_id)


@router.get("/export")
async def export(
    format: str = Query("csv"),
    category: Optional[str] = Query(None),
    severity: Optional[str] = Query(None),
    store: EventStore = Depends(get_event_store),
):
    flt = EventFilter.build(category=category, severity=severity)
    data = await export_events(store, format, flt)
    if isinstance(data, str):
        return Response(
            content=data,
            media_type="text/csv",
            headers={"Content-Disposition": 'attachment; filename="events.csv"'},
        )
    return JSONResponse(data)


@router.get("/{event_id}", response_model=EventOut)
async def get_event(event_id: int, store: EventStore = Depends(get_event_store)):
    return EventOut.from_record(await store.get_event(event_id))
