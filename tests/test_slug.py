import itertools

import pytest

from app.errors import SlugExhausted
from app.models.flow_model import Flow
from app.utils.slug import SlugAllocator, slugify
from tests.conftest import StaleAllocator, make_user


def test_slugify_basic():
    assert slugify("Hello, World!") == "hello-world"
    assert slugify("  Crème brûlée  recipe ") == "creme-brulee-recipe"
    assert slugify("a---b") == "a-b"


def test_slugify_nothing_left():
    assert slugify("!!! ???") == ""
    assert slugify("日本語") == ""
    assert slugify(None) == ""


def test_slugify_truncates_without_trailing_dash():
    slug = slugify("word " * 40, max_len=12)
    assert len(slug) <= 12
    assert not slug.endswith("-")


def _sequence(*values):
    it = itertools.cycle(values)
    return lambda: next(it)


@pytest.mark.asyncio
async def test_allocate_prefers_base_then_suffixes(db):
    author = await make_user(db, "writer")
    slugs = SlugAllocator(Flow, suffix=_sequence(1111, 2222))

    assert await slugs.allocate(db, "Hello World") == "hello-world"

    db.add(Flow(slug="hello-world", content="x", author_id=author.id))
    await db.commit()
    assert await slugs.allocate(db, "Hello World") == "hello-world-1111"

    db.add(Flow(slug="hello-world-1111", content="x", author_id=author.id))
    await db.commit()
    assert await slugs.allocate(db, "hello world") == "hello-world-2222"


@pytest.mark.asyncio
async def test_allocate_uses_fallback_for_empty_seed(db):
    author = await make_user(db, "writer")
    slugs = SlugAllocator(Flow, fallback="censored-title", suffix=_sequence(4242))

    assert await slugs.allocate(db, "#$%") == "censored-title"
    db.add(Flow(slug="censored-title", content="#$%", author_id=author.id))
    await db.commit()
    assert await slugs.allocate(db, "") == "censored-title-4242"


@pytest.mark.asyncio
async def test_allocate_gives_up_after_max_attempts(db):
    author = await make_user(db, "writer")
    db.add_all([
        Flow(slug="busy", content="x", author_id=author.id),
        Flow(slug="busy-5555", content="x", author_id=author.id),
    ])
    await db.commit()

    slugs = SlugAllocator(Flow, max_attempts=3, suffix=_sequence(5555))
    with pytest.raises(SlugExhausted):
        await slugs.allocate(db, "busy")


@pytest.mark.asyncio
async def test_insert_retries_when_unique_index_rejects_slug(db):
    author = await make_user(db, "writer")
    db.add(Flow(slug="race", content="first", author_id=author.id))
    await db.commit()

    slugs = StaleAllocator(Flow, stale_slug="race", suffix=_sequence(7777))
    flow = await slugs.insert_with_unique_slug(
        db, "race", lambda slug: Flow(slug=slug, content="second", author_id=author.id)
    )

    assert slugs.calls == 2
    assert flow.slug == "race-7777"
    assert flow.id is not None
    # only the failed attempt was rolled back; rows loaded earlier stay usable
    assert author.username == "writer"


@pytest.mark.asyncio
async def test_reassign_retries_when_unique_index_rejects_slug(db):
    author = await make_user(db, "writer")
    db.add(Flow(slug="taken", content="first", author_id=author.id))
    flow = Flow(slug="draft", content="draft", author_id=author.id)
    db.add(flow)
    await db.commit()

    def apply(slug):
        flow.slug = slug
        flow.content = "taken"

    slugs = StaleAllocator(Flow, stale_slug="taken", suffix=_sequence(3131))
    assert await slugs.reassign(db, "taken", apply) == "taken-3131"
    await db.commit()

    assert slugs.calls == 2
    row = await db.get(Flow, flow.id, populate_existing=True)
    assert (row.slug, row.content) == ("taken-3131", "taken")
