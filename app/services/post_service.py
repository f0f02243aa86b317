# app/services/post_service.py
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import POST_TITLE_MAX_CHARS
from app.errors import NotFound, Forbidden, Unauthorized, ValidationFailed
from app.models.forum_model import Post, Topic
from app.models.user_model import User
from app.moderation.profanity import require_text
from app.services.counters import PostCounter
from app.services.dispatch import BackgroundDispatcher
from app.services.events import NotificationEventBridge, ReplyEvent, POST_REPLY, excerpt
from app.services.topic_service import active_topic_ids, get_topic
from app.services.user_service import can_modify, get_by_username, is_staff
from app.services.view_cache import ViewDeduplicationCache
from app.utils.forum_content import calculate_reading_time
from app.utils.pagination import Page, paginate
from app.utils.slug import SlugAllocator

logger = logging.getLogger(__name__)

ORDER_RECENT = "recent"
ORDER_TRENDING = "trending"


class PostService:
    """
    Long-form forum posts inside topics, optionally replying to another post.

    Counters here are recounted rather than incremented (admins hard-delete
    posts). The topic refresh after a new post, the view-count bump and the
    reply notification all run detached; a failure there is logged only.
    """

    def __init__(
        self,
        session_factory,
        events: NotificationEventBridge,
        view_cache: ViewDeduplicationCache,
        dispatcher: BackgroundDispatcher,
        slugs: Optional[SlugAllocator] = None,
    ):
        self.session_factory = session_factory
        self.events = events
        self.view_cache = view_cache
        self.dispatcher = dispatcher
        self.slugs = slugs or SlugAllocator(Post)
        self.counter = PostCounter(session_factory)

    # ------------------------------
    # helpers
    # ------------------------------
    async def _reload(self, db: AsyncSession, post_id: int) -> Post:
        return await db.get(Post, post_id, populate_existing=True)

    async def get(self, db: AsyncSession, post_id: int) -> Post:
        post = await db.get(Post, post_id)
        if not post:
            raise NotFound("Post not found")
        return post

    def _published(self):
        return select(Post).where(Post.topic_id.in_(active_topic_ids()), Post.status.is_(True))

    def _refresh_topic_later(self, topic_id: int, *, touch: bool) -> None:
        self.dispatcher.spawn(
            lambda: self.counter.refresh_topic(topic_id, touch=touch),
            label=f"topic-stats:{topic_id}",
        )

    # ------------------------------
    # create
    # ------------------------------
    async def create(
        self,
        db: AsyncSession,
        author: User,
        *,
        title: str,
        content: str,
        topic_id: int,
        parent_id: Optional[int] = None,
        main_image: Optional[str] = None,
        status: bool = True,
    ) -> Post:
        title = require_text(title, "Title", POST_TITLE_MAX_CHARS)
        content = require_text(content, "Content")

        topic = await get_topic(db, topic_id)

        parent: Optional[Post] = None
        if parent_id is not None:
            parent = await db.get(Post, parent_id)
            if not parent:
                raise NotFound("Parent post not found")
            if parent.topic_id != topic.id:
                raise ValidationFailed("Parent post is from another topic")

        # plain values only from here on; the insert may roll back a savepoint
        author_id, author_name = author.id, author.display_name
        reading_time = calculate_reading_time(content)
        post = await self.slugs.insert_with_unique_slug(
            db,
            title,
            lambda slug: Post(
                title=title,
                slug=slug,
                content=content,
                main_image=main_image,
                reading_time=reading_time,
                user_id=author_id,
                topic_id=topic_id,
                parent_id=parent_id,
                status=status,
            ),
        )
        post_id, post_slug = post.id, post.slug
        logger.info("post %s created by user %s in topic %s (parent=%s)", post_id, author_id, topic_id, parent_id)

        self._refresh_topic_later(topic_id, touch=True)

        if parent is not None:
            parent_owner_id, parent_slug = parent.user_id, parent.slug
            parent_excerpt = excerpt(parent.title)
            await self.counter.on_child_created(parent_id)
            self.events.emit_reply(
                POST_REPLY,
                replier_id=author_id,
                parent_owner_id=parent_owner_id,
                build=lambda: ReplyEvent(
                    replier_id=author_id,
                    replier_name=author_name,
                    parent_owner_id=parent_owner_id,
                    parent_id=parent_id,
                    parent_slug=parent_slug,
                    parent_excerpt=parent_excerpt,
                    reply_id=post_id,
                    reply_slug=post_slug,
                ),
            )

        return await self._reload(db, post_id)

    # ------------------------------
    # views
    # ------------------------------
    async def increment_view(self, post_id: int, client_id: str) -> bool:
        """
        Count at most one view per (post, client) per dedup window. Returns
        True when a durable increment was dispatched. The increment itself is
        not awaited, so view counts are approximate.
        """
        try:
            record = await self.view_cache.record_view(post_id, client_id)
        except Exception:
            logger.exception("[views] dedup cache unavailable, view of post %s not counted", post_id)
            return False
        if record.already_counted:
            return False

        async def _bump():
            async with self.session_factory() as db:
                await db.execute(
                    update(Post)
                    .where(Post.id == post_id)
                    .values(view_count=Post.view_count + 1)
                    .execution_options(synchronize_session=False)
                )
                await db.commit()

        self.dispatcher.spawn(_bump, label=f"post-view:{post_id}")
        return True

    # ------------------------------
    # reads
    # ------------------------------
    async def list(
        self, page: Optional[int] = None, limit: Optional[int] = None, order: str = ORDER_RECENT
    ) -> Page[Post]:
        stmt = self._published()
        if order == ORDER_TRENDING:
            stmt = stmt.order_by(Post.view_count.desc(), Post.id.desc())
        else:
            stmt = stmt.order_by(Post.created_at.desc(), Post.id.desc())
        return await paginate(self.session_factory, stmt, page, limit)

    async def list_by_topic(self, topic_id: int, page: Optional[int] = None, limit: Optional[int] = None) -> Page[Post]:
        """Top-level posts of an active topic; replies are listed per parent."""
        stmt = (
            self._published()
            .where(Post.topic_id == topic_id, Post.parent_id.is_(None))
            .order_by(Post.created_at.desc(), Post.id.desc())
        )
        return await paginate(self.session_factory, stmt, page, limit)

    async def list_by_parent(self, parent_id: int, page: Optional[int] = None, limit: Optional[int] = None) -> Page[Post]:
        stmt = (
            self._published()
            .where(Post.parent_id == parent_id)
            .order_by(Post.created_at.desc(), Post.id.desc())
        )
        return await paginate(self.session_factory, stmt, page, limit)

    async def list_by_username(
        self, db: AsyncSession, username: str, page: Optional[int] = None, limit: Optional[int] = None
    ) -> Page[Post]:
        user = await get_by_username(db, username)
        stmt = (
            self._published()
            .where(Post.user_id == user.id)
            .order_by(Post.created_at.desc(), Post.id.desc())
        )
        return await paginate(self.session_factory, stmt, page, limit)

    async def list_library(self, user: User, page: Optional[int] = None, limit: Optional[int] = None) -> Page[Post]:
        """The owner's own posts, drafts and hidden topics included."""
        stmt = (
            select(Post)
            .where(Post.user_id == user.id)
            .order_by(Post.created_at.desc(), Post.id.desc())
        )
        return await paginate(self.session_factory, stmt, page, limit)

    async def list_all(self, page: Optional[int] = None, limit: Optional[int] = None) -> Page[Post]:
        """Admin listing: every post regardless of status."""
        stmt = select(Post).order_by(Post.created_at.desc(), Post.id.desc())
        return await paginate(self.session_factory, stmt, page, limit)

    async def find_by_slug(self, db: AsyncSession, viewer: Optional[User], slug: str) -> Post:
        post = (
            await db.execute(select(Post).where(Post.slug == slug))
        ).scalars().first()
        if not post:
            raise NotFound("Post not found")
        return await self.ensure_visible(db, viewer, post)

    async def get_visible(self, db: AsyncSession, viewer: Optional[User], post_id: int) -> Post:
        return await self.ensure_visible(db, viewer, await self.get(db, post_id))

    async def ensure_visible(self, db: AsyncSession, viewer: Optional[User], post: Post) -> Post:
        """
        Drafts and posts in hidden topics are shown only to staff and the
        owner. Anonymous viewers get 401, other users 403.
        """
        topic = await db.get(Topic, post.topic_id)
        if not topic:
            raise NotFound("Topic not found")

        hidden = not post.status or not topic.status
        if not hidden or is_staff(viewer):
            return post
        if viewer is not None and viewer.id == post.user_id:
            return post
        if viewer is None:
            raise Unauthorized("You are not authorized to view this post")
        raise Forbidden("You are not authorized to view this post")

    # ------------------------------
    # updates
    # ------------------------------
    async def update(
        self,
        db: AsyncSession,
        post_id: int,
        actor: User,
        *,
        title: Optional[str] = None,
        content: Optional[str] = None,
        main_image: Optional[str] = None,
        status: Optional[bool] = None,
    ) -> Post:
        post = await self.get(db, post_id)
        if not can_modify(actor, post.user_id):
            raise Forbidden("You are not authorized")
        return await self._apply(db, post, title=title, content=content, main_image=main_image, status=status)

    async def update_as_admin(
        self,
        db: AsyncSession,
        post_id: int,
        *,
        title: Optional[str] = None,
        content: Optional[str] = None,
        main_image: Optional[str] = None,
        status: Optional[bool] = None,
    ) -> Post:
        post = await self.get(db, post_id)
        return await self._apply(db, post, title=title, content=content, main_image=main_image, status=status)

    async def _apply(
        self,
        db: AsyncSession,
        post: Post,
        *,
        title: Optional[str],
        content: Optional[str],
        main_image: Optional[str],
        status: Optional[bool],
    ) -> Post:
        post_id, parent_id, topic_id = post.id, post.parent_id, post.topic_id

        changes = {}
        if title is not None:
            title = require_text(title, "Title", POST_TITLE_MAX_CHARS)
            if title != post.title:
                changes["title"] = title

        if content is not None:
            changes["content"] = require_text(content, "Content")
            changes["reading_time"] = calculate_reading_time(changes["content"])

        if main_image is not None:
            changes["main_image"] = main_image or None

        status_changed = status is not None and bool(status) != bool(post.status)
        if status is not None:
            changes["status"] = bool(status)

        def apply(slug: Optional[str] = None) -> None:
            for field, value in changes.items():
                setattr(post, field, value)
            if slug is not None:
                # the old slug is dropped, not redirected
                post.slug = slug

        if "title" in changes:
            await self.slugs.reassign(db, changes["title"], apply)
        else:
            apply()
        await db.commit()

        self.dispatcher.spawn(lambda: self.counter.recount_post(post_id), label=f"post-count:{post_id}")
        if status_changed:
            # published-ness changes what the parent and topic counts include
            if parent_id is not None:
                self.dispatcher.spawn(lambda: self.counter.recount_post(parent_id), label=f"post-count:{parent_id}")
            self._refresh_topic_later(topic_id, touch=False)

        return await self._reload(db, post_id)

    async def update_total_scores(
        self,
        db: AsyncSession,
        post_id: int,
        score: Optional[int],
        upvotes: Optional[int],
        downvotes: Optional[int],
    ) -> Post:
        """Store a tally produced by the vote collaborator."""
        post = await self.get(db, post_id)
        post.score = score
        post.upvotes = upvotes
        post.downvotes = downvotes
        await db.commit()
        return await self._reload(db, post.id)

    # ------------------------------
    # delete (admin, hard)
    # ------------------------------
    async def delete(self, db: AsyncSession, post_id: int) -> Post:
        post = await self.get(db, post_id)
        parent_id, topic_id = post.parent_id, post.topic_id

        await db.delete(post)
        await db.commit()
        logger.info("post %s hard-deleted (topic=%s parent=%s)", post_id, topic_id, parent_id)

        # recount rather than decrement; see class docstring
        await self.counter.recount_post(parent_id)
        await self.counter.refresh_topic(topic_id, touch=False)
        return post
