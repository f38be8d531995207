# xsslab/repositories/comments.py
from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import case, delete, desc, distinct, func, insert, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from xsslab.db.models import Comment
from xsslab.errors import NotFound, ValidationError
from xsslab.repositories.base import Repository, as_utc
from xsslab.repositories.events import validate_text

DEFAULT_USERNAME = "Anonymous"


@dataclass(frozen=True)
class CommentRecord:
    id: int
    username: str
    content: str
    actor_address: Optional[str]
    actor_agent: Optional[str]
    is_admin: bool
    created_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class SeedComment:
    username: str
    content: str
    is_admin: bool = False


def _to_record(row: Comment) -> CommentRecord:
    return CommentRecord(
        id=row.id,
        username=row.username,
        content=row.content,
        actor_address=row.actor_address,
        actor_agent=row.actor_agent,
        is_admin=bool(row.is_admin),
        created_at=as_utc(row.created_at),
    )


class CommentStore(Repository):
    """
    Comments are stored verbatim. No ownership checks: any caller holding an
    id can update or delete it.
    """

    async def create(
        self,
        *,
        content: str,
        username: Optional[str] = None,
        actor_address: Optional[str] = None,
        actor_agent: Optional[str] = None,
        is_admin: bool = False,
        timeout: Optional[float] = None,
    ) -> CommentRecord:
        if not content or not content.strip():
            raise ValidationError("comment content must not be empty")
        for field, value in (("content", content), ("username", username), ("actor_agent", actor_agent)):
            validate_text(field, value)
        created_at = as_utc(self.clock())
        name = username or DEFAULT_USERNAME

        async def _insert(session: AsyncSession) -> int:
            stmt = (
                insert(Comment.__table__)
                .values(
                    username=name,
                    content=content,
                    actor_address=actor_address or None,
                    actor_agent=actor_agent or None,
                    is_admin=is_admin,
                    created_at=created_at,
                )
                .returning(Comment.__table__.c.id)
            )
            return (await session.execute(stmt)).scalar_one()

        new_id = await self.run(_insert, write=True, timeout=timeout)
        return CommentRecord(
            id=new_id,
            username=name,
            content=content,
            actor_address=actor_address or None,
            actor_agent=actor_agent or None,
            is_admin=is_admin,
            created_at=as_utc(created_at),
        )

    async def get(self, comment_id: int, *, timeout: Optional[float] = None) -> CommentRecord:
        async def _get(session: AsyncSession) -> Optional[Comment]:
            return await session.get(Comment, comment_id)

        row = await self.run(_get, timeout=timeout)
        if row is None:
            raise NotFound("comment", comment_id)
        return _to_record(row)

    async def list_comments(
        self, *, limit: int = 100, offset: int = 0, timeout: Optional[float] = None
    ) -> List[CommentRecord]:
        if limit < 1 or offset < 0:
            raise ValidationError("limit must be positive and offset not negative")

        async def _select(session: AsyncSession) -> List[CommentRecord]:
            q = select(Comment).order_by(desc(Comment.created_at), desc(Comment.id)).limit(limit).offset(offset)
            return [_to_record(r) for r in (await session.execute(q)).scalars().all()]

        return await self.run(_select, timeout=timeout)

    async def update_content(self, comment_id: int, content: str, *, timeout: Optional[float] = None) -> CommentRecord:
        if not content or not content.strip():
            raise ValidationError("comment content must not be empty")
        validate_text("content", content)

        async def _update(session: AsyncSession) -> int:
            res = await session.execute(update(Comment).where(Comment.id == comment_id).values(content=content))
            return res.rowcount or 0

        if not await self.run(_update, write=True, timeout=timeout):
            raise NotFound("comment", comment_id)
        return await self.get(comment_id, timeout=timeout)

    async def delete(self, comment_id: int, *, timeout: Optional[float] = None) -> None:
        async def _delete(session: AsyncSession) -> int:
            res = await session.execute(delete(Comment).where(Comment.id == comment_id))
            return res.rowcount or 0

        if not await self.run(_delete, write=True, timeout=timeout):
            raise NotFound("comment", comment_id)

    async def search(self, keyword: str, *, limit: int = 100, timeout: Optional[float] = None) -> List[CommentRecord]:
        """Substring match on content or username (bound parameters, not string-built SQL)."""
        if not keyword:
            raise ValidationError("search keyword must not be empty")

        async def _search(session: AsyncSession) -> List[CommentRecord]:
            q = (
                select(Comment)
                .where(or_(Comment.content.contains(keyword, autoescape=True),
                           Comment.username.contains(keyword, autoescape=True)))
                .order_by(desc(Comment.created_at), desc(Comment.id))
                .limit(limit)
            )
            return [_to_record(r) for r in (await session.execute(q)).scalars().all()]

        return await self.run(_search, timeout=timeout)

    async def count(self, *, is_admin: Optional[bool] = None, timeout: Optional[float] = None) -> int:
        async def _count(session: AsyncSession) -> int:
            q = select(func.count()).select_from(Comment)
            if is_admin is not None:
                q = q.where(Comment.is_admin == is_admin)
            return (await session.execute(q)).scalar_one()

        return await self.run(_count, timeout=timeout)

    async def summary(self, *, timeout: Optional[float] = None) -> Dict[str, Any]:
        async def _q(session: AsyncSession) -> Dict[str, Any]:
            q = select(
                func.count(Comment.id),
                func.count(distinct(Comment.username)),
                func.sum(case((Comment.is_admin.is_(True), 1), else_=0)),
                func.min(Comment.created_at),
                func.max(Comment.created_at),
            )
            total, users, admins, earliest, latest = (await session.execute(q)).one()
            return {
                "total": int(total or 0),
                "unique_users": int(users or 0),
                "admin_comments": int(admins or 0),
                "earliest": as_utc(earliest),
                "latest": as_utc(latest),
            }

        return await self.run(_q, timeout=timeout)

    async def replace_non_admin(
        self,
        seeds: Iterable[SeedComment],
        *,
        admin_fallback: Iterable[SeedComment] = (),
        timeout: Optional[float] = None,
    ) -> int:
        """
        Delete every non-admin comment and insert ``seeds`` in one transaction.
        ``admin_fallback`` rows are inserted only when no admin comment exists.
        Returns the number of ``seeds`` inserted.
        """
        seeds = list(seeds)
        admin_fallback = list(admin_fallback)

        async def _reset(session: AsyncSession) -> int:
            await session.execute(delete(Comment).where(Comment.is_admin.is_(False)))
            admins = (
                await session.execute(select(func.count()).select_from(Comment).where(Comment.is_admin.is_(True)))
            ).scalar_one()
            rows = list(seeds)
            if admins == 0:
                rows = admin_fallback + rows
            await self._insert_seeds(session, rows)
            return len(seeds)

        return await self.run(_reset, write=True, timeout=timeout)

    async def seed_if_no_admin(self, seeds: Iterable[SeedComment], *, timeout: Optional[float] = None) -> int:
        seeds = list(seeds)

        async def _seed(session: AsyncSession) -> int:
            admins = (
                await session.execute(select(func.count()).select_from(Comment).where(Comment.is_admin.is_(True)))
            ).scalar_one()
            if admins:
                return 0
            await self._insert_seeds(session, seeds)
            return len(seeds)

        return await self.run(_seed, write=True, timeout=timeout)

    async def _insert_seeds(self, session: AsyncSession, rows: List[SeedComment]) -> None:
        for seed in rows:
            session.add(
                Comment(
                    username=seed.username,
                    content=seed.content,
                    is_admin=seed.is_admin,
                    created_at=as_utc(self.clock()),
                )
            )
        await session.flush()
