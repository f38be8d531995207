# xsslab/db/session.py
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from xsslab.db.models import Base


class Database:
    """
    Engine + session factory for one database. Built once at app construction
    and handed to every store; ``dispose()`` on shutdown.
    """

    def __init__(self, url: str, *, echo: bool = False, null_pool: bool = False):
        opts = {"echo": echo, "pool_pre_ping": True}
        if null_pool:
            # new connection per checkout: safe across event loops in tests
            opts["poolclass"] = NullPool
        self.url = url
        self.engine = create_async_engine(url, **opts)
        self.sessionmaker = async_sessionmaker(self.engine, expire_on_commit=False, class_=AsyncSession)

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        async with self.sessionmaker() as session:
            yield session

    async def create_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()
