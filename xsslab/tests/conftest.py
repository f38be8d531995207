# xsslab/tests/conftest.py
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from xsslab.core.settings import Settings
from xsslab.db.session import Database
from xsslab.main import create_app
from xsslab.repositories.comments import CommentStore
from xsslab.repositories.events import EventStore
from xsslab.services.analytics import AnalyticsEngine
from xsslab.services.comments import CommentService
from xsslab.services.ingestion import IngestionService
from xsslab.services.retention import RetentionService

# parent directory does not exist, so every connect attempt fails
UNREACHABLE_URL = "sqlite+aiosqlite:////nonexistent-xsslab-dir/missing/lab.db"


class FakeClock:
    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
async def db(tmp_path):
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'lab.db'}", null_pool=True)
    await database.create_all()
    yield database
    await database.dispose()


@pytest.fixture
async def broken_db():
    database = Database(UNREACHABLE_URL, null_pool=True)
    yield database
    await database.dispose()


@pytest.fixture
def store(db, clock):
    return EventStore(db, clock=clock)


@pytest.fixture
def comment_store(db, clock):
    return CommentStore(db, clock=clock)


@pytest.fixture
def ingestion(store):
    return IngestionService(store)


@pytest.fixture
def analytics(store):
    return AnalyticsEngine(store)


@pytest.fixture
def comments(comment_store, ingestion):
    return CommentService(comment_store, ingestion)


@pytest.fixture
def retention(store, comment_store):
    return RetentionService(store, comment_store)


def make_settings(url: str, **overrides) -> Settings:
    values = dict(DATABASE_URL=url, SCHEDULER_ENABLED=False, ACTIVITY_LOG_ENABLED=False, STORAGE_TIMEOUT_SEC=5.0)
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def app(db, clock):
    return create_app(make_settings(db.url), db=db, clock=clock)


@pytest.fixture
async def client(app):
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as c:
        yield c


@pytest.fixture
def build_app(db, clock):
    def _build(**overrides):
        return create_app(make_settings(db.url, **overrides), db=db, clock=clock)

    return _build


@pytest.fixture
async def broken_client(broken_db, clock):
    app = create_app(make_settings(UNREACHABLE_URL), db=broken_db, clock=clock)
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as c:
        yield c
