# app/services/flow_service.py
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from app.config import FLOW_MAX_CHARS
from app.errors import NotFound, Forbidden
from app.models.flow_model import Flow
from app.models.user_model import User
from app.moderation.profanity import require_text
from app.services.counters import FlowReplyCounter
from app.services.events import NotificationEventBridge, ReplyEvent, FLOW_REPLIED, excerpt
from app.services.user_service import can_modify, get_by_username
from app.utils.pagination import Page, paginate
from app.utils.slug import SlugAllocator

logger = logging.getLogger(__name__)


class FlowService:
    """
    Short threaded messages. Replies keep ``parent_id`` for life; the
    parent's ``reply_count`` is maintained incrementally and flows are only
    ever soft-deleted.
    """

    def __init__(self, session_factory, events: NotificationEventBridge, slugs: Optional[SlugAllocator] = None):
        self.session_factory = session_factory
        self.events = events
        self.slugs = slugs or SlugAllocator(Flow)
        self.counter = FlowReplyCounter(session_factory)

    # ------------------------------
    # reads
    # ------------------------------
    def _visible(self):
        return select(Flow).where(Flow.is_deleted.is_(False))

    async def list(self, page: Optional[int] = None, limit: Optional[int] = None) -> Page[Flow]:
        stmt = self._visible().order_by(Flow.created_at.desc(), Flow.id.desc())
        return await paginate(self.session_factory, stmt, page, limit)

    async def find_replies(self, parent_id: int, page: Optional[int] = None, limit: Optional[int] = None) -> Page[Flow]:
        stmt = (
            self._visible()
            .where(Flow.parent_id == parent_id)
            .order_by(Flow.created_at.desc(), Flow.id.desc())
        )
        return await paginate(self.session_factory, stmt, page, limit)

    async def find_by_username(
        self, db: AsyncSession, username: str, page: Optional[int] = None, limit: Optional[int] = None
    ) -> Page[Flow]:
        user = await get_by_username(db, username)
        stmt = (
            self._visible()
            .where(Flow.author_id == user.id)
            .order_by(Flow.created_at.desc(), Flow.id.desc())
        )
        return await paginate(self.session_factory, stmt, page, limit)

    async def find_by_slug(self, db: AsyncSession, slug: str) -> Flow:
        flow = (
            await db.execute(self._visible().where(Flow.slug == slug))
        ).scalars().first()
        if not flow:
            raise NotFound("Flow not found")
        return flow

    async def _reload(self, db: AsyncSession, flow_id: int) -> Flow:
        return await db.get(Flow, flow_id, populate_existing=True)

    # ------------------------------
    # writes
    # ------------------------------
    async def create(self, db: AsyncSession, author: User, content: str, parent_id: Optional[int] = None) -> Flow:
        content = require_text(content, "Flow content", FLOW_MAX_CHARS)

        parent: Optional[Flow] = None
        if parent_id is not None:
            parent = await db.get(Flow, parent_id, populate_existing=True)
            if not parent or parent.is_deleted:
                raise NotFound("Parent flow not found")

        # plain values only from here on; the insert may roll back a savepoint
        author_id, author_name = author.id, author.display_name
        flow = await self.slugs.insert_with_unique_slug(
            db,
            content,
            lambda slug: Flow(slug=slug, content=content, author_id=author_id, parent_id=parent_id),
        )
        flow_id, flow_slug = flow.id, flow.slug
        logger.info("flow %s created by user %s (parent=%s)", flow_id, author_id, parent_id)

        if parent is not None:
            parent_owner_id, parent_slug = parent.author_id, parent.slug
            parent_excerpt = excerpt(parent.content)
            await self.counter.on_child_created(parent_id)
            self.events.emit_reply(
                FLOW_REPLIED,
                replier_id=author_id,
                parent_owner_id=parent_owner_id,
                build=lambda: ReplyEvent(
                    replier_id=author_id,
                    replier_name=author_name,
                    parent_owner_id=parent_owner_id,
                    parent_id=parent_id,
                    parent_slug=parent_slug,
                    parent_excerpt=parent_excerpt,
                    reply_id=flow_id,
                    reply_slug=flow_slug,
                ),
            )

        return await self._reload(db, flow_id)

    async def update_by_slug(
        self,
        db: AsyncSession,
        slug: str,
        actor: User,
        content: Optional[str] = None,
        is_deleted: Optional[bool] = None,
    ) -> Flow:
        flow = await self.find_by_slug(db, slug)
        if not can_modify(actor, flow.author_id):
            raise Forbidden("Only the author or staff may edit this flow.")

        if is_deleted:
            await self.mark_deleted(db, flow)
            return await self._reload(db, flow.id)

        flow_id = flow.id
        if content is not None:
            content = require_text(content, "Flow content", FLOW_MAX_CHARS)
            if content != flow.content:

                def apply(slug: str) -> None:
                    # a new slug replaces the old one; links through the old slug break
                    flow.slug = slug
                    flow.content = content

                await self.slugs.reassign(db, content, apply)
            await db.commit()

        return await self._reload(db, flow_id)

    async def soft_delete(self, db: AsyncSession, slug: str, actor: User) -> bool:
        flow = await self.find_by_slug(db, slug)
        if not can_modify(actor, flow.author_id):
            raise Forbidden("Only the author or staff may delete this flow.")
        return await self.mark_deleted(db, flow)

    async def mark_deleted(self, db: AsyncSession, flow: Flow) -> bool:
        # the conditional UPDATE wins at most once per flow, so a retried
        # delete can't decrement the parent twice
        result = await db.execute(
            update(Flow)
            .where(Flow.id == flow.id, Flow.is_deleted.is_(False))
            .values(is_deleted=True)
            .execution_options(synchronize_session=False)
        )
        changed = result.rowcount
        await db.commit()
        if changed != 1:
            return False

        # keep the identity-map copy in step with the row
        set_committed_value(flow, "is_deleted", True)
        logger.info("flow %s soft-deleted", flow.id)
        if flow.parent_id is not None:
            await self.counter.on_child_soft_deleted(flow.parent_id)
        return True
