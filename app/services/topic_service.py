# app/services/topic_service.py
from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy import select, delete, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.errors import NotFound
from app.models.forum_model import Topic, Tag, Post
from app.models.user_model import User
from app.moderation.profanity import require_text
from app.utils.slug import SlugAllocator

logger = logging.getLogger(__name__)

topic_slugs = SlugAllocator(Topic)
tag_slugs = SlugAllocator(Tag)


async def get_topic(db: AsyncSession, topic_id: Optional[int]) -> Topic:
    topic = await db.get(Topic, topic_id) if topic_id is not None else None
    if not topic:
        raise NotFound("Topic not found")
    return topic


def active_topic_ids():
    """Ids of published topics, as a subquery for post listings."""
    return select(Topic.id).where(Topic.status.is_(True))


async def list_topics(db: AsyncSession, *, include_hidden: bool = False) -> List[Topic]:
    stmt = select(Topic).order_by(Topic.last_post_at.desc(), Topic.id.desc())
    if not include_hidden:
        stmt = stmt.where(Topic.status.is_(True))
    return list((await db.execute(stmt)).unique().scalars().all())


async def create_topic(
    db: AsyncSession,
    owner: User,
    title: str,
    tag_id: Optional[int] = None,
    status: bool = True,
) -> Topic:
    title = require_text(title, "Topic title", 200)
    if tag_id is not None and not await db.get(Tag, tag_id):
        raise NotFound("Tag not found")
    owner_id = owner.id
    topic = await topic_slugs.insert_with_unique_slug(
        db,
        title,
        lambda slug: Topic(title=title, slug=slug, user_id=owner_id, tag_id=tag_id, status=status),
    )
    logger.info("topic %s created by user %s", topic.id, owner_id)
    return await db.get(Topic, topic.id, populate_existing=True)


async def update_topic_as_admin(
    db: AsyncSession,
    topic_id: int,
    *,
    title: Optional[str] = None,
    status: Optional[bool] = None,
    tag_id: Optional[int] = None,
) -> Topic:
    topic = await get_topic(db, topic_id)

    changes = {}
    if title is not None:
        title = require_text(title, "Topic title", 200)
        if title != topic.title:
            changes["title"] = title
    if status is not None:
        changes["status"] = bool(status)
    if tag_id is not None:
        changes["tag_id"] = tag_id

    def apply(slug: Optional[str] = None) -> None:
        for field, value in changes.items():
            setattr(topic, field, value)
        if slug is not None:
            topic.slug = slug

    if "title" in changes:
        await topic_slugs.reassign(db, changes["title"], apply)
    else:
        apply()
    await db.commit()
    return await db.get(Topic, topic_id, populate_existing=True)


async def delete_topic(db: AsyncSession, topic_id: int) -> None:
    topic = await get_topic(db, topic_id)
    # explicit so it doesn't depend on the backend enforcing ON DELETE CASCADE
    await db.execute(delete(Post).where(Post.topic_id == topic_id))
    await db.delete(topic)
    await db.commit()
    logger.info("topic %s deleted with its posts", topic_id)


# ------------------------------
# tags
# ------------------------------
async def list_tags(db: AsyncSession) -> List[Tag]:
    return list((await db.execute(select(Tag).order_by(Tag.name.asc()))).scalars().all())


async def create_tag(db: AsyncSession, name: str) -> Tag:
    name = require_text(name, "Tag name", 80)
    return await tag_slugs.insert_with_unique_slug(db, name, lambda slug: Tag(name=name, slug=slug))


async def delete_tag(db: AsyncSession, tag_id: int) -> None:
    tag = await db.get(Tag, tag_id)
    if not tag:
        raise NotFound("Tag not found")
    await db.execute(
        update(Topic).where(Topic.tag_id == tag_id).values(tag_id=None)
        .execution_options(synchronize_session=False)
    )
    await db.delete(tag)
    await db.commit()
