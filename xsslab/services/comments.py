# xsslab/services/comments.py
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional

from xsslab.repositories.comments import CommentRecord, CommentStore
from xsslab.services.ingestion import IngestionService
from xsslab.security.rules import TAG_NONE, Severity, classify

COMMENT_CATEGORY = "stored"
ACTION_COMMENT_POSTED = "comment_posted"
ACTION_COMMENT_UPDATED = "comment_updated"

PATTERN_SCAN_LIMIT = 50
PATTERN_SCAN_WINDOW = 500
PREVIEW_LENGTH = 100


@dataclass(frozen=True)
class CommentPattern:
    id: int
    username: str
    preview: str
    severity: Severity
    tag: str
    created_at: datetime


@dataclass(frozen=True)
class CommentStats:
    total: int
    unique_users: int
    admin_comments: int
    earliest: Optional[datetime]
    latest: Optional[datetime]
    patterns: Dict[str, int]


class CommentService:
    """Comment operations that also feed the event log."""

    def __init__(self, comments: CommentStore, ingestion: IngestionService):
        self.comments = comments
        self.ingestion = ingestion

    async def post(
        self,
        content: str,
        *,
        username: Optional[str] = None,
        actor_address: str = "",
        actor_agent: str = "",
        session_id: str = "",
    ) -> CommentRecord:
        comment = await self.comments.create(
            content=content, username=username, actor_address=actor_address, actor_agent=actor_agent
        )
        # best-effort: the comment stays posted even when logging fails
        await self.ingestion.record(
            COMMENT_CATEGORY, ACTION_COMMENT_POSTED, content, actor_address, actor_agent, session_id
        )
        return comment

    async def update(
        self, comment_id: int, content: str, *, actor_address: str = "", actor_agent: str = ""
    ) -> CommentRecord:
        comment = await self.comments.update_content(comment_id, content)
        await self.ingestion.record(COMMENT_CATEGORY, ACTION_COMMENT_UPDATED, content, actor_address, actor_agent)
        return comment

    async def get(self, comment_id: int) -> CommentRecord:
        return await self.comments.get(comment_id)

    async def list(self, *, limit: int = 100, offset: int = 0) -> List[CommentRecord]:
        return await self.comments.list_comments(limit=limit, offset=offset)

    async def delete(self, comment_id: int) -> None:
        await self.comments.delete(comment_id)

    async def search(self, keyword: str) -> List[CommentRecord]:
        return await self.comments.search(keyword)

    async def scan_patterns(self, limit: int = PATTERN_SCAN_LIMIT) -> List[CommentPattern]:
        """Newest comments whose content trips a classifier rule."""
        found: List[CommentPattern] = []
        for c in await self.comments.list_comments(limit=PATTERN_SCAN_WINDOW):
            result = classify(c.content)
            if result.tag == TAG_NONE:
                continue
            found.append(
                CommentPattern(
                    id=c.id,
                    username=c.username,
                    preview=c.content[:PREVIEW_LENGTH],
                    severity=result.severity,
                    tag=result.tag,
                    created_at=c.created_at,
                )
            )
            if len(found) >= limit:
                break
        return found

    async def statistics(self) -> CommentStats:
        """Totals over all comments; pattern counts over the newest PATTERN_SCAN_WINDOW."""
        summary = await self.comments.summary()
        rows = await self.comments.list_comments(limit=PATTERN_SCAN_WINDOW)
        tags = Counter(classify(c.content).tag for c in rows)
        tags.pop(TAG_NONE, None)
        return CommentStats(patterns=dict(tags), **summary)
