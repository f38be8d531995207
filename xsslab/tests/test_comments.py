import pytest

from xsslab.errors import NotFound, ValidationError
from xsslab.repositories.events import EventFilter, EventStore
from xsslab.security.rules import Severity
from xsslab.services.comments import CommentService
from xsslab.services.ingestion import IngestionService

pytestmark = pytest.mark.asyncio


@pytest.mark.asyncio
async def test_post_stores_verbatim_and_emits_event(comments, store):
    payload = '<img src="x" onerror="alert(document.domain)">'
    comment = await comments.post(payload, username="bob", actor_address="10.0.0.7", actor_agent="ua")
    assert comment.content == payload
    assert comment.username == "bob"
    assert (await comments.get(comment.id)).content == payload

    events = await store.list_events(EventFilter(category="stored", action="comment_posted"))
    assert len(events) == 1
    assert events[0].payload == payload
    assert events[0].actor_address == "10.0.0.7"
    assert events[0].severity is Severity.HIGH


@pytest.mark.asyncio
async def test_post_survives_ingestion_failure(comment_store, broken_db, clock):
    svc = CommentService(comment_store, IngestionService(EventStore(broken_db, clock=clock)))
    comment = await svc.post("still posted")
    assert (await comment_store.get(comment.id)).content == "still posted"


@pytest.mark.asyncio
async def test_default_username_and_empty_content(comments):
    assert (await comments.post("hi")).username == "Anonymous"
    with pytest.raises(ValidationError):
        await comments.post("   ")


@pytest.mark.asyncio
async def test_update_and_delete_by_id(comments, store):
    comment = await comments.post("first")
    updated = await comments.update(comment.id, "<b>second</b>")
    assert updated.content == "<b>second</b>"
    assert await store.count_events(EventFilter(action="comment_updated")) == 1

    await comments.delete(comment.id)
    with pytest.raises(NotFound):
        await comments.get(comment.id)
    with pytest.raises(NotFound):
        await comments.delete(comment.id)
    with pytest.raises(NotFound):
        await comments.update(comment.id, "gone")


@pytest.mark.asyncio
async def test_list_newest_first(comments, clock):
    for text in ("one", "two", "three"):
        await comments.post(text)
        clock.advance(seconds=1)
    assert [c.content for c in await comments.list()] == ["three", "two", "one"]
    assert [c.content for c in await comments.list(limit=1, offset=1)] == ["two"]


@pytest.mark.asyncio
async def test_search_treats_keyword_literally(comments):
    await comments.post("100% legit", username="carol")
    await comments.post("nothing to see", username="dave")
    assert [c.username for c in await comments.search("100%")] == ["carol"]
    assert [c.username for c in await comments.search("dav")] == ["dave"]
    assert await comments.search("' OR '1'='1") == []


@pytest.mark.asyncio
async def test_scan_patterns_and_statistics(comments):
    await comments.post("<script>alert(1)</script>", username="a")
    await comments.post("plain text", username="b")
    await comments.post("<svg onload=alert(2)>", username="a")

    patterns = await comments.scan_patterns()
    assert {p.tag for p in patterns} == {"script-injection", "event-handler"}
    assert all(len(p.preview) <= 100 for p in patterns)

    stats = await comments.statistics()
    assert stats.total == 3
    assert stats.unique_users == 2
    assert stats.admin_comments == 0
    assert stats.patterns == {"script-injection": 1, "event-handler": 1}
