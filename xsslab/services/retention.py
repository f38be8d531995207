# xsslab/services/retention.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional, Tuple

from xsslab.errors import ValidationError
from xsslab.repositories.base import as_utc
from xsslab.repositories.comments import CommentStore, SeedComment
from xsslab.repositories.events import EventFilter, EventStore, validate_category

logger = logging.getLogger(__name__)

WELCOME_COMMENT = SeedComment(
    username="System",
    content=(
        "Welcome to the Stored XSS Challenge! This comment system is intentionally vulnerable. "
        "Try posting a comment with XSS payloads."
    ),
    is_admin=True,
)

# first boot, only when no admin comment exists yet
INITIAL_COMMENTS: Tuple[SeedComment, ...] = (
    WELCOME_COMMENT,
    SeedComment("Alice", 'Test comment: <script>alert("Basic XSS")</script>'),
    SeedComment("Bob", "Another test: <img src=\"x\" onerror=\"alert('XSS via image')\">"),
    SeedComment(
        "Admin",
        "⚠️ <strong>Warning:</strong> All comments are displayed without sanitization. "
        "This is for training purposes only!",
        is_admin=True,
    ),
)

# reinserted on every reset between training sessions
RESET_COMMENTS: Tuple[SeedComment, ...] = (
    SeedComment("TestUser1", 'New session started. Try <script>alert("XSS")</script>'),
    SeedComment("TestUser2", "Test: <img src=x onerror=alert(1)>"),
    SeedComment("TestUser3", 'SVG test: <svg onload=alert("SVG XSS")></svg>'),
)


@dataclass(frozen=True)
class RetentionResult:
    success: bool
    message: str
    removed: int = 0
    inserted: int = 0


class RetentionService:
    """
    Destructive maintenance operations. There is no undo; storage errors
    propagate so the operator sees them.
    """

    def __init__(self, events: EventStore, comments: CommentStore, *, timeout: Optional[float] = None):
        self.events = events
        self.comments = comments
        self.timeout = timeout

    def _t(self, timeout: Optional[float]) -> Optional[float]:
        return self.timeout if timeout is None else timeout

    async def clear(self, category: Optional[str] = None, *, timeout: Optional[float] = None) -> RetentionResult:
        if category is not None:
            validate_category(category)
            flt = EventFilter(category=category)
            message = f"Logs cleared for category: {category}"
        else:
            flt = None
            message = "All logs cleared"
        removed = await self.events.delete_events(flt, timeout=self._t(timeout))
        logger.info("retention clear category=%s removed=%d", category or "*", removed)
        return RetentionResult(success=True, message=message, removed=removed)

    async def reset_seed(self, *, timeout: Optional[float] = None) -> RetentionResult:
        inserted = await self.comments.replace_non_admin(
            RESET_COMMENTS, admin_fallback=(WELCOME_COMMENT,), timeout=self._t(timeout)
        )
        logger.info("comments reset, %d seed rows inserted", inserted)
        return RetentionResult(success=True, message="Comments reset successfully", inserted=inserted)

    async def seed_initial(self, *, timeout: Optional[float] = None) -> int:
        inserted = await self.comments.seed_if_no_admin(INITIAL_COMMENTS, timeout=self._t(timeout))
        if inserted:
            logger.info("initial comments seeded (%d)", inserted)
        return inserted

    async def purge_older_than(self, days: int, *, timeout: Optional[float] = None) -> RetentionResult:
        """Age-based retention: drops events created more than ``days`` ago."""
        if days < 1:
            raise ValidationError("retention days must be at least 1")
        cutoff = as_utc(self.events.clock()) - timedelta(days=days)
        removed = await self.events.delete_events(EventFilter(until=cutoff), timeout=self._t(timeout))
        logger.info("retention purge older_than_days=%d removed=%d", days, removed)
        return RetentionResult(success=True, message=f"Purged events older than {days} days", removed=removed)
