import asyncio

import pytest
from sqlalchemy import select

from app.errors import Forbidden, NotFound, ValidationFailed
from app.models.flow_model import Flow
from app.models.notification_model import Notification
from app.services.events import FLOW_REPLIED
from tests.conftest import StaleAllocator, fresh

pytestmark = pytest.mark.asyncio


async def test_create_top_level_flow(db, flows, alice):
    flow = await flows.create(db, alice, "  Hello there, world  ")

    assert flow.slug == "hello-there-world"
    assert flow.content == "Hello there, world"
    assert flow.parent_id is None
    assert flow.reply_count == 0
    assert flow.author.username == "alice"


async def test_create_rejects_empty_long_and_profane(db, flows, alice):
    with pytest.raises(ValidationFailed):
        await flows.create(db, alice, "   ")
    with pytest.raises(ValidationFailed):
        await flows.create(db, alice, "x" * 501)
    with pytest.raises(ValidationFailed):
        await flows.create(db, alice, "well shit happens")


async def test_reply_to_missing_or_deleted_parent(db, flows, alice):
    with pytest.raises(NotFound):
        await flows.create(db, alice, "orphan", parent_id=999)

    parent = await flows.create(db, alice, "parent")
    await flows.mark_deleted(db, parent)
    assert parent.is_deleted is True
    with pytest.raises(NotFound):
        await flows.create(db, alice, "late reply", parent_id=parent.id)
    assert (await fresh(db, Flow, parent.id)).reply_count == 0


async def test_reply_increments_parent_and_delete_decrements_once(db, flows, background, alice, bob):
    parent = await flows.create(db, alice, "a question")
    reply = await flows.create(db, bob, "an answer", parent_id=parent.id)

    assert reply.parent.slug == parent.slug
    assert reply.parent.content == "a question"
    assert (await fresh(db, Flow, parent.id)).reply_count == 1

    assert await flows.mark_deleted(db, reply) is True
    assert (await fresh(db, Flow, parent.id)).reply_count == 0

    # replaying the delete must not decrement again
    assert await flows.mark_deleted(db, reply) is False
    assert (await fresh(db, Flow, parent.id)).reply_count == 0
    await background.drain()


async def test_concurrent_reply_increments_all_land(db, flows, alice):
    parent = await flows.create(db, alice, "popular")

    await asyncio.gather(*[flows.counter.on_child_created(parent.id) for _ in range(10)])

    assert (await fresh(db, Flow, parent.id)).reply_count == 10


async def test_counter_never_goes_negative(db, flows, alice):
    parent = await flows.create(db, alice, "lonely")
    await flows.counter.on_child_soft_deleted(parent.id)
    assert (await fresh(db, Flow, parent.id)).reply_count == 0


async def test_counter_missing_parent_is_swallowed(flows):
    assert await flows.counter.on_child_created(12345) is False


async def test_reparent_moves_count(db, flows, alice, bob):
    a = await flows.create(db, alice, "first parent")
    b = await flows.create(db, alice, "second parent")
    await flows.create(db, bob, "reply", parent_id=a.id)

    await flows.counter.on_child_reparented(a.id, b.id)

    assert (await fresh(db, Flow, a.id)).reply_count == 0
    assert (await fresh(db, Flow, b.id)).reply_count == 1


async def test_reply_notifies_parent_owner(db, flows, background, alice, bob):
    parent = await flows.create(db, alice, "This opening line is longer than thirty characters")
    reply = await flows.create(db, bob, "replying", parent_id=parent.id)
    await background.drain()

    rows = (await db.execute(select(Notification))).scalars().all()
    assert len(rows) == 1
    note = rows[0]
    assert note.kind == FLOW_REPLIED
    assert note.recipient_id == alice.id
    assert note.actor_id == bob.id
    assert note.excerpt == "This opening line is longer th"
    assert note.target_slug == reply.slug


async def test_self_reply_does_not_notify(db, flows, background, alice):
    parent = await flows.create(db, alice, "talking to myself")
    await flows.create(db, alice, "still me", parent_id=parent.id)
    await background.drain()

    assert (await db.execute(select(Notification))).scalars().all() == []
    assert (await fresh(db, Flow, parent.id)).reply_count == 1


async def test_reads_hide_deleted_flows(db, flows, alice, bob):
    parent = await flows.create(db, alice, "root")
    keep = await flows.create(db, bob, "kept reply", parent_id=parent.id)
    gone = await flows.create(db, bob, "removed reply", parent_id=parent.id)
    await flows.soft_delete(db, gone.slug, bob)

    replies = await flows.find_replies(parent.id)
    assert [f.id for f in replies.items] == [keep.id]
    assert replies.total == 1

    with pytest.raises(NotFound):
        await flows.find_by_slug(db, gone.slug)

    by_bob = await flows.find_by_username(db, "bob")
    assert [f.id for f in by_bob.items] == [keep.id]


async def test_find_by_username_unknown_user(db, flows):
    with pytest.raises(NotFound):
        await flows.find_by_username(db, "nobody")


async def test_update_content_reallocates_slug(db, flows, alice):
    flow = await flows.create(db, alice, "first draft")
    updated = await flows.update_by_slug(db, flow.slug, alice, content="second draft")

    assert updated.slug == "second-draft"
    with pytest.raises(NotFound):
        await flows.find_by_slug(db, "first-draft")


async def test_update_permissions(db, flows, alice, bob, moderator):
    flow = await flows.create(db, alice, "mine")

    with pytest.raises(Forbidden):
        await flows.update_by_slug(db, flow.slug, bob, content="hijacked")

    updated = await flows.update_by_slug(db, flow.slug, moderator, content="moderated text")
    assert updated.content == "moderated text"


async def test_update_with_is_deleted_soft_deletes(db, flows, alice, bob):
    parent = await flows.create(db, alice, "parent flow")
    reply = await flows.create(db, bob, "child flow", parent_id=parent.id)

    updated = await flows.update_by_slug(db, reply.slug, bob, is_deleted=True)

    assert updated.is_deleted is True
    assert (await fresh(db, Flow, parent.id)).reply_count == 0


async def test_list_pagination_window(db, flows, alice):
    for i in range(1, 26):
        await flows.create(db, alice, f"flow {i}")

    page = await flows.list(page=2, limit=10)

    assert page.total == 25
    assert page.total_pages == 3
    assert page.has_prev and page.has_next
    # newest first; same-second timestamps fall back to id order
    assert [f.content for f in page.items] == [f"flow {i}" for i in range(15, 5, -1)]


async def test_concurrent_creates_with_same_seed_get_distinct_slugs(session_factory, flows, alice):
    async def create_one():
        async with session_factory() as session:
            flow = await flows.create(session, alice, "Same words")
            return flow.slug

    slugs = await asyncio.gather(*[create_one() for _ in range(5)])

    assert len(set(slugs)) == 5
    assert "same-words" in slugs


async def test_reply_survives_slug_taken_between_check_and_insert(db, flows, background, alice, bob):
    parent = await flows.create(db, alice, "Where do I start")
    await flows.create(db, alice, "taken")
    flows.slugs = StaleAllocator(Flow, stale_slug="taken", suffix=lambda: 4321)

    reply = await flows.create(db, bob, "taken", parent_id=parent.id)
    await background.drain()

    assert flows.slugs.calls == 2
    assert reply.slug == "taken-4321"
    assert reply.parent.slug == parent.slug
    assert (await fresh(db, Flow, parent.id)).reply_count == 1
    note = (await db.execute(select(Notification))).scalars().one()
    assert (note.recipient_id, note.target_slug) == (alice.id, "taken-4321")


async def test_update_survives_slug_taken_between_check_and_commit(db, flows, alice):
    await flows.create(db, alice, "new words")
    flow = await flows.create(db, alice, "old words")
    flows.slugs = StaleAllocator(Flow, stale_slug="new-words", suffix=lambda: 8642)

    updated = await flows.update_by_slug(db, flow.slug, alice, content="new words")

    assert updated.slug == "new-words-8642"
    assert updated.content == "new words"
    with pytest.raises(NotFound):
        await flows.find_by_slug(db, "old-words")
