# app/services/counters.py
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import select, func, update, case

from app.models.flow_model import Flow
from app.models.forum_model import Post, Topic

logger = logging.getLogger(__name__)


class FlowReplyCounter:
    """
    Incremental ``reply_count`` on flows. Each change is one single-row
    UPDATE, so concurrent increments commute. Flows are only ever
    soft-deleted, which keeps the incremental count safe.

    Every method runs in its own session and swallows (and logs) errors:
    the reply itself is already committed when these run.
    """

    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def _bump(self, parent_id: Optional[int], delta: int) -> bool:
        if parent_id is None:
            return False
        if delta >= 0:
            new_value = Flow.reply_count + delta
        else:
            # never go below zero, even if a decrement is replayed
            new_value = case(
                (Flow.reply_count + delta < 0, 0),
                else_=Flow.reply_count + delta,
            )
        try:
            async with self.session_factory() as db:
                result = await db.execute(
                    update(Flow)
                    .where(Flow.id == parent_id)
                    .values(reply_count=new_value)
                    .execution_options(synchronize_session=False)
                )
                updated = result.rowcount
                await db.commit()
        except Exception:
            logger.exception("[counters] flow %s reply_count %+d failed", parent_id, delta)
            return False

        if updated == 0:
            # parent vanished in between; nothing to count against
            logger.info("[counters] flow parent %s not found, skipped %+d", parent_id, delta)
            return False
        return True

    async def on_child_created(self, parent_id: Optional[int]) -> bool:
        return await self._bump(parent_id, 1)

    async def on_child_soft_deleted(self, parent_id: Optional[int]) -> bool:
        return await self._bump(parent_id, -1)

    async def on_child_reparented(self, old_parent_id: Optional[int], new_parent_id: Optional[int]) -> None:
        if old_parent_id == new_parent_id:
            return
        await self._bump(old_parent_id, -1)
        await self._bump(new_parent_id, 1)


class PostCounter:
    """
    Exact recount for posts. Admins hard-delete posts, so an incremental
    counter could never be trusted here; every refresh recomputes from a
    COUNT over published rows.
    """

    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def recount_post(self, post_id: Optional[int], *, touch: bool = False) -> bool:
        if post_id is None:
            return False
        try:
            async with self.session_factory() as db:
                replies = (
                    await db.execute(
                        select(func.count(Post.id)).where(
                            Post.parent_id == post_id, Post.status.is_(True)
                        )
                    )
                ).scalar_one()
                values = {"post_count": int(replies or 0)}
                if touch:
                    values["last_post_at"] = func.now()
                result = await db.execute(
                    update(Post)
                    .where(Post.id == post_id)
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )
                updated = result.rowcount
                await db.commit()
        except Exception:
            logger.exception("[counters] post %s recount failed", post_id)
            return False
        return updated > 0

    async def on_child_created(self, parent_id: Optional[int]) -> bool:
        """Bump the parent post's last_post_at and recount its published replies."""
        return await self.recount_post(parent_id, touch=True)

    async def refresh_topic(self, topic_id: Optional[int], *, touch: bool = True) -> bool:
        """
        Topic ``post_count`` from a full COUNT. With ``touch`` the topic's
        last_post_at becomes now (new post); without it, last_post_at is
        rebuilt from the newest remaining post (after a delete).
        """
        if topic_id is None:
            return False
        try:
            async with self.session_factory() as db:
                total = (
                    await db.execute(
                        select(func.count(Post.id)).where(
                            Post.topic_id == topic_id, Post.status.is_(True)
                        )
                    )
                ).scalar_one()
                values = {"post_count": int(total or 0)}
                if touch:
                    values["last_post_at"] = func.now()
                else:
                    newest = (
                        await db.execute(
                            select(func.max(Post.created_at)).where(Post.topic_id == topic_id)
                        )
                    ).scalar_one()
                    if newest is not None:
                        values["last_post_at"] = newest
                result = await db.execute(
                    update(Topic)
                    .where(Topic.id == topic_id)
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )
                updated = result.rowcount
                await db.commit()
        except Exception:
            logger.exception("[counters] topic %s refresh failed", topic_id)
            return False
        return updated > 0
