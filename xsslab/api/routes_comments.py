# xsslab/api/routes_comments.py
from __future__ import annotations

from dataclasses import asdict
from datetime import datetime
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Request, Response, status
from pydantic import BaseModel, Field

from xsslab.api.deps import client_info, get_comment_service
from xsslab.repositories.comments import CommentRecord
from xsslab.services.comments import CommentService

router = APIRouter(prefix="/comments", tags=["comments"])


class CommentOut(BaseModel):
    id: int
    username: str
    # returned verbatim; escaping is the renderer's business
    content: str
    is_admin: bool
    created_at: datetime

    @classmethod
    def from_record(cls, c: CommentRecord) -> "CommentOut":
        return cls(id=c.id, username=c.username, content=c.content, is_admin=c.is_admin, created_at=c.created_at)


class CommentIn(BaseModel):
    content: str = Field(..., min_length=1)
    username: Optional[str] = Field(None, max_length=255)


class CommentUpdate(BaseModel):
    content: str = Field(..., min_length=1)


class CommentPatternOut(BaseModel):
    id: int
    username: str
    preview: str
    severity: str
    tag: str
    created_at: datetime


class CommentStatsOut(BaseModel):
    total: int
    unique_users: int
    admin_comments: int
    earliest: Optional[datetime] = None
    latest: Optional[datetime] = None
    patterns: Dict[str, int]


@router.get("", response_model=List[CommentOut])
async def list_comments(
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    svc: CommentService = Depends(get_comment_service),
):
    return [CommentOut.from_record(c) for c in await svc.list(limit=limit, offset=offset)]


@router.post("", response_model=CommentOut, status_code=status.HTTP_201_CREATED)
async def post_comment(body: CommentIn, request: Request, svc: CommentService = Depends(get_comment_service)):
    ip, ua = client_info(request)
    comment = await svc.post(body.content, username=body.username, actor_address=ip, actor_agent=ua)
    return CommentOut.from_record(comment)


@router.get("/search", response_model=List[CommentOut])
async def search_comments(q: str = Query(..., min_length=1), svc: CommentService = Depends(get_comment_service)):
    return [CommentOut.from_record(c) for c in await svc.search(q)]


@router.get("/stats", response_model=CommentStatsOut)
async def comment_stats(svc: CommentService = Depends(get_comment_service)):
    return asdict(await svc.statistics())


@router.get("/patterns", response_model=List[CommentPatternOut])
async def comment_patterns(svc: CommentService = Depends(get_comment_service)):
    out = []
    for p in await svc.scan_patterns():
        d = asdict(p)
        d["severity"] = p.severity.value
        out.append(d)
    return out


@router.get("/{comment_id}", response_model=CommentOut)
async def get_comment(comment_id: int, svc: CommentService = Depends(get_comment_service)):
    return CommentOut.from_record(await svc.get(comment_id))


@router.put("/{comment_id}", response_model=CommentOut)
async def update_comment(
    comment_id: int, body: CommentUpdate, request: Request, svc: CommentService = Depends(get_comment_service)
):
    ip, ua = client_info(request)
    return CommentOut.from_record(await svc.update(comment_id, body.content, actor_address=ip, actor_agent=ua))


@router.delete("/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_comment(comment_id: int, svc: CommentService = Depends(get_comment_service)):
    await svc.delete(comment_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
