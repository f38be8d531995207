# xsslab/repositories/events.py
from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import and_, delete, desc, func, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from xsslab.db.models import Event
from xsslab.errors import NotFound, ValidationError
from xsslab.repositories.base import Repository, as_utc
from xsslab.security.rules import Severity

MAX_CATEGORY_LENGTH = 50
MAX_ACTION_LENGTH = 100


@dataclass(frozen=True)
class NewEvent:
    category: str
    action: str
    payload: str
    severity: Severity
    tag: str
    actor_address: str = ""
    actor_agent: str = ""
    session_id: str = ""


@dataclass(frozen=True)
class EventRecord:
    id: int
    category: str
    action: str
    payload: str
    actor_address: str
    actor_agent: str
    session_id: str
    severity: Severity
    tag: str
    created_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["severity"] = self.severity.value
        return d


@dataclass(frozen=True)
class EventFilter:
    category: Optional[str] = None
    action: Optional[str] = None
    severity: Optional[Severity] = None
    actor_address: Optional[str] = None
    since: Optional[datetime] = None
    until: Optional[datetime] = None

    @classmethod
    def build(
        cls,
        *,
        category: Optional[str] = None,
        action: Optional[str] = None,
        severity: Optional[str] = None,
        actor_address: Optional[str] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> "EventFilter":
        """Validate raw query values; raises ``ValidationError``."""
        sev = None
        if severity:
            try:
                sev = Severity.parse(severity)
            except ValueError as exc:
                raise ValidationError(str(exc)) from None
        flt = cls(
            category=category or None,
            action=action or None,
            severity=sev,
            actor_address=actor_address or None,
            since=as_utc(since),
            until=as_utc(until),
        )
        flt.validate()
        return flt

    def validate(self) -> None:
        validate_category(self.category, required=False)
        if self.action is not None and len(self.action) > MAX_ACTION_LENGTH:
            raise ValidationError(f"action longer than {MAX_ACTION_LENGTH} characters")
        if self.severity is not None and not isinstance(self.severity, Severity):
            raise ValidationError(f"unknown severity: {self.severity!r}")
        if self.since and self.until and as_utc(self.since) > as_utc(self.until):
            raise ValidationError("since must not be after until")

    def conditions(self) -> list:
        conds = []
        if self.category:
            conds.append(Event.category == self.category)
        if self.action:
            conds.append(Event.action == self.action)
        if self.severity:
            conds.append(Event.severity == self.severity.value)
        if self.actor_address:
            conds.append(Event.actor_address == self.actor_address)
        if self.since:
            conds.append(Event.created_at >= as_utc(self.since))
        if self.until:
            conds.append(Event.created_at <= as_utc(self.until))
        return conds


def validate_category(category: Optional[str], *, required: bool = True) -> None:
    if category is None:
        if required:
            raise ValidationError("category is required")
        return
    if not isinstance(category, str) or not category.strip():
        raise ValidationError("category must be a non-empty string")
    if len(category) > MAX_CATEGORY_LENGTH:
        raise ValidationError(f"category longer than {MAX_CATEGORY_LENGTH} characters")


def validate_text(field: str, value: Optional[str]) -> None:
    # lone surrogates survive json.loads but no driver can encode them
    if not value:
        return
    try:
        value.encode("utf-8")
    except UnicodeEncodeError:
        raise ValidationError(f"{field} is not valid UTF-8 text") from None


def _validate_page(limit: Optional[int], offset: int) -> None:
    if limit is not None and limit < 1:
        raise ValidationError("limit must be positive")
    if offset < 0:
        raise ValidationError("offset must not be negative")


def _where(flt: Optional[EventFilter]):
    if flt is None:
        return None
    flt.validate()
    conds = flt.conditions()
    return and_(*conds) if conds else None


def to_record(row: Event) -> EventRecord:
    return EventRecord(
        id=row.id,
        category=row.category,
        action=row.action,
        payload=row.payload or "",
        actor_address=row.actor_address or "",
        actor_agent=row.actor_agent or "",
        session_id=row.session_id or "",
        severity=Severity(row.severity),
        tag=row.tag,
        created_at=as_utc(row.created_at),
    )


class EventStore(Repository):
    """Append-only event log. Listings are newest first, ties broken by id."""

    async def append(self, event: NewEvent, *, timeout: Optional[float] = None) -> int:
        validate_category(event.category)
        if not event.action or len(event.action) > MAX_ACTION_LENGTH:
            raise ValidationError("action must be 1..%d characters" % MAX_ACTION_LENGTH)
        try:
            severity = Severity.parse(event.severity)
        except ValueError as exc:
            raise ValidationError(str(exc)) from None
        for field in ("category", "action", "payload", "actor_address", "actor_agent", "session_id"):
            validate_text(field, getattr(event, field))

        async def _insert(session: AsyncSession) -> int:
            stmt = (
                insert(Event.__table__)
                .values(
                    category=event.category,
                    action=event.action,
                    payload=event.payload,
                    actor_address=event.actor_address or "",
                    actor_agent=event.actor_agent or "",
                    session_id=event.session_id or "",
                    severity=severity.value,
                    tag=event.tag,
                    created_at=as_utc(self.clock()),
                )
                .returning(Event.__table__.c.id)
            )
            res = await session.execute(stmt)
            return res.scalar_one()

        return await self.run(_insert, write=True, timeout=timeout)

    async def list_events(
        self,
        flt: Optional[EventFilter] = None,
        *,
        limit: Optional[int] = 100,
        offset: int = 0,
        timeout: Optional[float] = None,
    ) -> List[EventRecord]:
        _validate_page(limit, offset)
        where = _where(flt)

        async def _select(session: AsyncSession) -> List[EventRecord]:
            q = select(Event)
            if where is not None:
                q = q.where(where)
            q = q.order_by(desc(Event.created_at), desc(Event.id)).offset(offset)
            if limit is not None:
                q = q.limit(limit)
            rows: Sequence[Event] = (await session.execute(q)).scalars().all()
            return [to_record(r) for r in rows]

        return await self.run(_select, timeout=timeout)

    async def count_events(self, flt: Optional[EventFilter] = None, *, timeout: Optional[float] = None) -> int:
        where = _where(flt)

        async def _count(session: AsyncSession) -> int:
            q = select(func.count()).select_from(Event)
            if where is not None:
                q = q.where(where)
            return (await session.execute(q)).scalar_one()

        return await self.run(_count, timeout=timeout)

    async def get_event(self, event_id: int, *, timeout: Optional[float] = None) -> EventRecord:
        async def _get(session: AsyncSession) -> Optional[Event]:
            return await session.get(Event, event_id)

        row = await self.run(_get, timeout=timeout)
        if row is None:
            raise NotFound("event", event_id)
        return to_record(row)

    async def delete_events(self, flt: Optional[EventFilter] = None, *, timeout: Optional[float] = None) -> int:
        where = _where(flt)

        async def _delete(session: AsyncSession) -> int:
            stmt = delete(Event)
            if where is not None:
                stmt = stmt.where(where)
            res = await session.execute(stmt)
            # rowcount may be None on some drivers
            return getattr(res, "rowcount", 0) or 0

        return await self.run(_delete, write=True, timeout=timeout)
