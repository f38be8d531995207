# xsslab/repositories/base.py
from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from xsslab.db.session import Database
from xsslab.errors import StorageTimeout, StorageUnavailable

T = TypeVar("T")

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # sqlite hands back naive datetimes; everything is stored as UTC
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Repository:
    """
    Shared plumbing for the stores: one session per call, a bounded
    round-trip, and driver errors translated into ``StorageUnavailable``.
    """

    def __init__(self, db: Database, *, clock: Clock = utcnow, timeout: Optional[float] = None):
        self.db = db
        self.clock = clock
        self.timeout = timeout

    async def run(
        self,
        work: Callable[[AsyncSession], Awaitable[T]],
        *,
        write: bool = False,
        timeout: Optional[float] = None,
    ) -> T:
        limit = self.timeout if timeout is None else timeout

        async def _go() -> T:
            async with self.db.session() as session:
                result = await work(session)
                if write:
                    await session.commit()
                return result

        try:
            if limit:
                return await asyncio.wait_for(_go(), timeout=limit)
            return await _go()
        except asyncio.TimeoutError as exc:
            raise StorageTimeout(f"storage call exceeded {limit}s") from exc
        # drivers raise encoding errors unwrapped
        except (SQLAlchemyError, OSError, UnicodeError) as exc:
            raise StorageUnavailable(str(exc)) from exc
