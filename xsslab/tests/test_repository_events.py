import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from xsslab.errors import NotFound, StorageTimeout, StorageUnavailable, ValidationError
from xsslab.repositories.events import EventFilter, EventStore, NewEvent
from xsslab.security.rules import Severity

pytestmark = pytest.mark.asyncio


def _event(category="stored", action="comment_posted", payload="hi", severity=Severity.LOW, tag="none", actor="10.0.0.1"):
    return NewEvent(
        category=category,
        action=action,
        payload=payload,
        severity=severity,
        tag=tag,
        actor_address=actor,
        actor_agent="pytest",
    )


@pytest.mark.asyncio
async def test_append_then_list_returns_it_first(store, clock):
    await store.append(_event(payload="older"))
    clock.advance(seconds=1)
    new_id = await store.append(_event(payload="<script>x</script>", severity=Severity.HIGH, tag="script-injection"))
    rows = await store.list_events(limit=1)
    assert len(rows) == 1
    assert rows[0].id == new_id
    assert rows[0].payload == "<script>x</script>"
    assert rows[0].severity is Severity.HIGH
    assert rows[0].created_at == clock.now


@pytest.mark.asyncio
async def test_ids_increase_and_ties_break_by_id(store, clock):
    ids = [await store.append(_event(payload=str(i))) for i in range(5)]
    assert ids == sorted(ids)
    assert len(set(ids)) == 5
    # every row shares one timestamp; ordering falls back to id
    rows = await store.list_events()
    assert [r.id for r in rows] == sorted(ids, reverse=True)


@pytest.mark.asyncio
async def test_listing_is_newest_first(store, clock):
    for i in range(4):
        await store.append(_event(payload=str(i)))
        clock.advance(minutes=5)
    rows = await store.list_events()
    keys = [(r.created_at, r.id) for r in rows]
    assert keys == sorted(keys, reverse=True)
    assert [r.payload for r in rows] == ["3", "2", "1", "0"]


@pytest.mark.asyncio
async def test_filters_combine_with_and(store, clock):
    start = clock.now
    await store.append(_event(category="stored", severity=Severity.HIGH, tag="script-injection"))
    await store.append(_event(category="stored", severity=Severity.LOW))
    clock.advance(hours=2)
    await store.append(_event(category="reflected", severity=Severity.HIGH, tag="script-injection"))
    await store.append(_event(category="stored", action="xss_attempted", severity=Severity.HIGH, actor="10.0.0.9"))

    stored_high = EventFilter(category="stored", severity=Severity.HIGH)
    assert await store.count_events(stored_high) == 2

    early = EventFilter(until=start + timedelta(minutes=1))
    assert await store.count_events(early) == 2

    late_stored = EventFilter(category="stored", since=start + timedelta(hours=1))
    rows = await store.list_events(late_stored)
    assert [r.action for r in rows] == ["xss_attempted"]

    by_actor = EventFilter(actor_address="10.0.0.9")
    assert await store.count_events(by_actor) == 1
    assert await store.count_events(EventFilter(action="xss_attempted", category="reflected")) == 0


@pytest.mark.asyncio
async def test_pagination(store, clock):
    for i in range(7):
        await store.append(_event(payload=str(i)))
        clock.advance(seconds=1)
    page1 = await store.list_events(limit=3, offset=0)
    page2 = await store.list_events(limit=3, offset=3)
    page3 = await store.list_events(limit=3, offset=6)
    assert [r.payload for r in page1 + page2 + page3] == ["6", "5", "4", "3", "2", "1", "0"]
    assert len(await store.list_events(limit=None)) == 7


@pytest.mark.asyncio
async def test_get_event_and_not_found(store):
    new_id = await store.append(_event())
    assert (await store.get_event(new_id)).id == new_id
    with pytest.raises(NotFound):
        await store.get_event(new_id + 100)


@pytest.mark.asyncio
async def test_delete_events_by_category(store):
    for cat in ("stored", "stored", "dom"):
        await store.append(_event(category=cat))
    assert await store.delete_events(EventFilter(category="stored")) == 2
    rows = await store.list_events()
    assert [r.category for r in rows] == ["dom"]


@pytest.mark.asyncio
async def test_invalid_filters_rejected_before_storage(broken_db, clock):
    # an unreachable store proves validation happens first
    broken = EventStore(broken_db, clock=clock)
    with pytest.raises(ValidationError):
        EventFilter.build(severity="urgent")
    with pytest.raises(ValidationError):
        EventFilter.build(since=clock.now, until=clock.now - timedelta(hours=1))
    with pytest.raises(ValidationError):
        await broken.list_events(limit=0)
    with pytest.raises(ValidationError):
        await broken.list_events(offset=-1)
    with pytest.raises(ValidationError):
        await broken.append(_event(category=""))
    with pytest.raises(ValidationError):
        await broken.count_events(EventFilter(category="x" * 51))


@pytest.mark.asyncio
async def test_unreachable_storage_raises_storage_unavailable(broken_db, clock):
    broken = EventStore(broken_db, clock=clock)
    with pytest.raises(StorageUnavailable):
        await broken.list_events()
    with pytest.raises(StorageUnavailable):
        await broken.append(_event())


@pytest.mark.asyncio
async def test_slow_storage_call_times_out(store):
    async def _slow(session):
        await asyncio.sleep(1)

    with pytest.raises(StorageTimeout):
        await store.run(_slow, timeout=0.01)


@pytest.mark.asyncio
async def test_unencodable_text_rejected_before_storage(broken_db, clock):
    unreachable = EventStore(broken_db, clock=clock)
    with pytest.raises(ValidationError):
        await unreachable.append(_event(payload="<script>\ud800</script>"))
    with pytest.raises(ValidationError):
        await unreachable.append(NewEvent("home", "GET", "", Severity.LOW, "none", actor_agent="ua\udfff"))


@pytest.mark.asyncio
async def test_driver_encoding_error_becomes_storage_unavailable(store):
    async def _bad(session):
        "\ud800".encode("utf-8")

    with pytest.raises(StorageUnavailable):
        await store.run(_bad)


@pytest.mark.asyncio
async def test_offset_clock_stored_as_utc(db):
    plus_two = timezone(timedelta(hours=2))
    times = iter(
        [
            datetime(2026, 1, 15, 13, 0, tzinfo=plus_two),  # 11:00 UTC
            datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc),
        ]
    )
    store = EventStore(db, clock=lambda: next(times))
    await store.append(_event(payload="first"))
    await store.append(_event(payload="second"))

    rows = await store.list_events()
    assert [r.payload for r in rows] == ["second", "first"]
    assert rows[1].created_at == datetime(2026, 1, 15, 11, 0, tzinfo=timezone.utc)

    cutoff = datetime(2026, 1, 15, 11, 30, tzinfo=timezone.utc)
    assert [r.payload for r in await store.list_events(EventFilter(until=cutoff))] == ["first"]
