import pytest

from xsslab.errors import StorageUnavailable, ValidationError
from xsslab.repositories.comments import CommentStore
from xsslab.repositories.events import EventFilter, EventStore
from xsslab.services.retention import INITIAL_COMMENTS, RESET_COMMENTS, RetentionService

pytestmark = pytest.mark.asyncio


@pytest.mark.asyncio
async def test_reset_seed_is_idempotent(retention, comment_store, comments):
    await comment_store.create(content="Pinned notice", username="Moderator", is_admin=True)
    await comments.post("<script>alert('mine')</script>", username="mallory")
    await comments.post("another one", username="eve")

    first = await retention.reset_seed()
    assert first.success
    after_first = await comment_store.list_comments()

    second = await retention.reset_seed()
    assert second.success
    after_second = await comment_store.list_comments()

    assert first.inserted == second.inserted == len(RESET_COMMENTS)
    for snapshot in (after_first, after_second):
        admins = [c for c in snapshot if c.is_admin]
        others = [c for c in snapshot if not c.is_admin]
        assert [c.username for c in admins] == ["Moderator"]
        assert sorted(c.username for c in others) == ["TestUser1", "TestUser2", "TestUser3"]
    assert len(after_first) == len(after_second)


@pytest.mark.asyncio
async def test_reset_seed_restores_missing_admin_comment(retention, comment_store):
    await comment_store.create(content="just me", username="solo")
    await retention.reset_seed()
    await retention.reset_seed()
    assert await comment_store.count(is_admin=True) == 1
    assert await comment_store.count(is_admin=False) == len(RESET_COMMENTS)
    assert not await comment_store.search("just me")


@pytest.mark.asyncio
async def test_seed_initial_runs_once(retention, comment_store):
    assert await retention.seed_initial() == len(INITIAL_COMMENTS)
    assert await retention.seed_initial() == 0
    assert await comment_store.count() == len(INITIAL_COMMENTS)
    assert await comment_store.count(is_admin=True) == 2


@pytest.mark.asyncio
async def test_clear_by_category(retention, ingestion, store):
    await ingestion.record("stored", "comment_posted", "a")
    await ingestion.record("stored", "xss_attempted", "alert(1)")
    await ingestion.record("dom", "GET", "{}")

    result = await retention.clear("stored")
    assert result.success and result.removed == 2
    assert result.message == "Logs cleared for category: stored"
    assert await store.count_events(EventFilter(category="stored")) == 0
    assert await store.count_events() == 1

    result = await retention.clear()
    assert result.removed == 1
    assert result.message == "All logs cleared"
    assert await store.count_events() == 0


@pytest.mark.asyncio
async def test_clear_rejects_bad_category(retention):
    with pytest.raises(ValidationError):
        await retention.clear("")
    with pytest.raises(ValidationError):
        await retention.clear("c" * 80)


@pytest.mark.asyncio
async def test_purge_older_than(retention, ingestion, store, clock):
    await ingestion.record("home", "GET", "old")
    clock.advance(days=31)
    await ingestion.record("home", "GET", "fresh")

    result = await retention.purge_older_than(30)
    assert result.removed == 1
    rows = await store.list_events()
    assert [r.payload for r in rows] == ["fresh"]

    with pytest.raises(ValidationError):
        await retention.purge_older_than(0)


@pytest.mark.asyncio
async def test_storage_errors_propagate(broken_db, clock):
    svc = RetentionService(EventStore(broken_db, clock=clock), CommentStore(broken_db, clock=clock))
    with pytest.raises(StorageUnavailable):
        await svc.clear()
    with pytest.raises(StorageUnavailable):
        await svc.reset_seed()
