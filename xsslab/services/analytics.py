# xsslab/services/analytics.py
"""
Read-only reports over the event log.

Nothing is cached: every report runs its queries at call time, so a report is
consistent with whatever the database shows at that moment. Storage errors
and timeouts propagate to the caller.

The detection thresholds below are fixed demo constants and are kept as
literals on purpose.
"""
from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy import case, desc, distinct, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from xsslab.db.models import Event
from xsslab.repositories.base import as_utc
from xsslab.repositories.events import EventStore
from xsslab.security.rules import SEVERITY_ORDER, Severity

# an action containing this marker counts as an attack event
ATTACK_ACTION_MARKER = "xss"

SUSPICIOUS_WINDOW = timedelta(hours=1)
SUSPICIOUS_REQUEST_THRESHOLD = 50
SUSPICIOUS_HIGH_SEVERITY_THRESHOLD = 5

RECURRING_WINDOW = timedelta(hours=24)
RECURRING_MIN_OCCURRENCES = 1
RECURRING_LIMIT = 20

PREVIEW_LENGTH = 200

_HIGH_LEVELS = (Severity.HIGH.value, Severity.CRITICAL.value)


@dataclass(frozen=True)
class OverallStats:
    total: int
    distinct_actors: int
    distinct_categories: int
    earliest: Optional[datetime]
    latest: Optional[datetime]


@dataclass(frozen=True)
class CategoryBreakdown:
    category: str
    count: int
    attack_count: int
    critical_count: int


@dataclass(frozen=True)
class SeverityBreakdown:
    severity: Severity
    count: int
    distinct_actors: int


@dataclass(frozen=True)
class SuspiciousActor:
    actor_address: str
    request_count: int
    high_severity_count: int
    categories_accessed: int
    first_request: datetime
    last_request: datetime
    categories: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class RecurringPayload:
    payload: str
    occurrence_count: int
    distinct_actors: int
    last_seen: datetime
    categories: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class AttackPreview:
    id: int
    category: str
    action: str
    payload_preview: str
    actor_address: str
    severity: Severity
    created_at: datetime


def _actor():
    # empty addresses are unidentifiable and never count as an actor
    return func.nullif(Event.actor_address, "")


def _is_attack():
    # LIKE is case-insensitive on sqlite but not on postgres; lower() both sides
    return func.lower(Event.action).contains(ATTACK_ACTION_MARKER.lower(), autoescape=True)


class AnalyticsEngine:
    def __init__(self, store: EventStore, *, timeout: Optional[float] = None):
        self.store = store
        self.timeout = timeout

    def _now(self) -> datetime:
        return as_utc(self.store.clock())

    async def _read(self, work, timeout: Optional[float]):
        return await self.store.run(work, timeout=self.timeout if timeout is None else timeout)

    async def overall(self, *, timeout: Optional[float] = None) -> OverallStats:
        async def _q(session: AsyncSession) -> OverallStats:
            q = select(
                func.count(Event.id),
                func.count(distinct(_actor())),
                func.count(distinct(Event.category)),
                func.min(Event.created_at),
                func.max(Event.created_at),
            )
            total, actors, categories, earliest, latest = (await session.execute(q)).one()
            return OverallStats(
                total=int(total or 0),
                distinct_actors=int(actors or 0),
                distinct_categories=int(categories or 0),
                earliest=as_utc(earliest),
                latest=as_utc(latest),
            )

        return await self._read(_q, timeout)

    async def by_category(self, *, timeout: Optional[float] = None) -> List[CategoryBreakdown]:
        async def _q(session: AsyncSession) -> List[CategoryBreakdown]:
            cnt = func.count(Event.id)
            q = (
                select(
                    Event.category,
                    cnt.label("cnt"),
                    func.sum(case((_is_attack(), 1), else_=0)).label("attacks"),
                    func.sum(case((Event.severity == Severity.CRITICAL.value, 1), else_=0)).label("critical"),
                )
                .group_by(Event.category)
                .order_by(desc(cnt), Event.category)
            )
            return [
                CategoryBreakdown(
                    category=r.category,
                    count=int(r.cnt),
                    attack_count=int(r.attacks or 0),
                    critical_count=int(r.critical or 0),
                )
                for r in (await session.execute(q)).all()
            ]

        return await self._read(_q, timeout)

    async def by_severity(self, *, timeout: Optional[float] = None) -> List[SeverityBreakdown]:
        """All four levels, always in critical/high/medium/low order, zeros included."""

        async def _q(session: AsyncSession) -> Dict[str, tuple]:
            q = select(Event.severity, func.count(Event.id), func.count(distinct(_actor()))).group_by(Event.severity)
            return {sev: (cnt, actors) for sev, cnt, actors in (await session.execute(q)).all()}

        rows = await self._read(_q, timeout)
        out = []
        for sev in SEVERITY_ORDER:
            cnt, actors = rows.get(sev.value, (0, 0))
            out.append(SeverityBreakdown(severity=sev, count=int(cnt or 0), distinct_actors=int(actors or 0)))
        return out

    async def suspicious_actors(self, *, timeout: Optional[float] = None) -> List[SuspiciousActor]:
        """
        Actors seen in the trailing hour with more than 50 requests or more
        than 5 high/critical events. Ordered by high-severity count, then
        request count, both descending.
        """
        since = self._now() - SUSPICIOUS_WINDOW

        async def _q(session: AsyncSession) -> List[SuspiciousActor]:
            req = func.count(Event.id)
            high = func.sum(case((Event.severity.in_(_HIGH_LEVELS), 1), else_=0))
            window = (Event.created_at >= since, Event.actor_address != "")
            q = (
                select(
                    Event.actor_address,
                    req.label("request_count"),
                    high.label("high_count"),
                    func.count(distinct(Event.category)).label("categories_accessed"),
                    func.min(Event.created_at).label("first_request"),
                    func.max(Event.created_at).label("last_request"),
                )
                .where(*window)
                .group_by(Event.actor_address)
                .having(or_(req > SUSPICIOUS_REQUEST_THRESHOLD, high > SUSPICIOUS_HIGH_SEVERITY_THRESHOLD))
                .order_by(desc(high), desc(req), Event.actor_address)
            )
            flagged = (await session.execute(q)).all()
            if not flagged:
                return []

            addresses = [r.actor_address for r in flagged]
            cats = await session.execute(
                select(Event.actor_address, Event.category)
                .where(*window, Event.actor_address.in_(addresses))
                .distinct()
                .order_by(Event.actor_address, Event.category)
            )
            by_actor: Dict[str, List[str]] = defaultdict(list)
            for addr, cat in cats.all():
                by_actor[addr].append(cat)

            return [
                SuspiciousActor(
                    actor_address=r.actor_address,
                    request_count=int(r.request_count),
                    high_severity_count=int(r.high_count or 0),
                    categories_accessed=int(r.categories_accessed),
                    first_request=as_utc(r.first_request),
                    last_request=as_utc(r.last_request),
                    categories=by_actor.get(r.actor_address, []),
                )
                for r in flagged
            ]

        return await self._read(_q, timeout)

    async def recurring_payloads(self, *, timeout: Optional[float] = None) -> List[RecurringPayload]:
        """Attack payloads seen more than once in the trailing 24 hours, top 20."""
        since = self._now() - RECURRING_WINDOW

        async def _q(session: AsyncSession) -> List[RecurringPayload]:
            occ = func.count(Event.id)
            last_seen = func.max(Event.created_at)
            window = (_is_attack(), Event.created_at >= since)
            q = (
                select(
                    Event.payload,
                    occ.label("occurrence_count"),
                    func.count(distinct(_actor())).label("actors"),
                    last_seen.label("last_seen"),
                )
                .where(*window)
                .group_by(Event.payload)
                .having(occ > RECURRING_MIN_OCCURRENCES)
                .order_by(desc(occ), desc(last_seen))
                .limit(RECURRING_LIMIT)
            )
            groups = (await session.execute(q)).all()
            if not groups:
                return []

            payloads = [g.payload for g in groups]
            cats = await session.execute(
                select(Event.payload, Event.category)
                .where(*window, Event.payload.in_(payloads))
                .distinct()
                .order_by(Event.category)
            )
            by_payload: Dict[str, List[str]] = defaultdict(list)
            for payload, cat in cats.all():
                by_payload[payload].append(cat)

            return [
                RecurringPayload(
                    payload=g.payload,
                    occurrence_count=int(g.occurrence_count),
                    distinct_actors=int(g.actors or 0),
                    last_seen=as_utc(g.last_seen),
                    categories=by_payload.get(g.payload, []),
                )
                for g in groups
            ]

        return await self._read(_q, timeout)

    async def recent_attacks(self, limit: int = 10, *, timeout: Optional[float] = None) -> List[AttackPreview]:
        async def _q(session: AsyncSession) -> List[AttackPreview]:
            q = (
                select(Event)
                .where(_is_attack())
                .order_by(desc(Event.created_at), desc(Event.id))
                .limit(max(1, int(limit)))
            )
            return [
                AttackPreview(
                    id=r.id,
                    category=r.category,
                    action=r.action,
                    payload_preview=(r.payload or "")[:PREVIEW_LENGTH],
                    actor_address=r.actor_address or "",
                    severity=Severity(r.severity),
                    created_at=as_utc(r.created_at),
                )
                for r in (await session.execute(q)).scalars().all()
            ]

        return await self._read(_q, timeout)
