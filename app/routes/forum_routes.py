from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional, List

from app.config import POST_WRITE_RATE
from app.database import get_async_session
from app.deps.admin import require_staff
from app.deps.services import get_post_service
from app.errors import NotFound
from app.limiter import limiter
from app.models.forum_model import Post, Topic
from app.models.user_model import User
from app.schemas.common_schemas import PageOut
from app.schemas.forum_schemas import (
    PostOut, TopicOut, TagOut, ViewOut, CreatePostIn, UpdatePostIn, CreateTopicIn,
)
from app.services import topic_service
from app.services.post_service import PostService, ORDER_RECENT, ORDER_TRENDING
from app.services.user_service import display_fields, is_staff
from app.utils.pagination import page_envelope
from app.utils.token_utils import get_current_user, get_current_user_optional

router = APIRouter(prefix="/forum", tags=["forum"])


# ------------------------------
# helpers
# ------------------------------
def client_id_for(request: Request) -> str:
    """Explicit X-Client-Id wins; otherwise the address plus user agent."""
    explicit = (request.headers.get("X-Client-Id") or "").strip()
    if explicit:
        return explicit
    ip = request.client.host if request.client else "unknown"
    return f"{ip}|{request.headers.get('user-agent', '')}"


# ------------------------------
# Mappers
# ------------------------------
def topic_to_out(t: Topic) -> TopicOut:
    return TopicOut(
        id=t.id,
        title=t.title,
        slug=t.slug,
        status=bool(t.status),
        post_count=t.post_count or 0,
        last_post_at=t.last_post_at,
        tag=TagOut.model_validate(t.tag) if t.tag is not None else None,
        owner=display_fields(t.owner),
        created_at=t.created_at,
    )


def post_to_out(p: Post) -> PostOut:
    topic = None
    if p.topic is not None:
        topic = {"id": p.topic.id, "title": p.topic.title, "slug": p.topic.slug}
    parent = None
    if p.parent is not None:
        parent = {"id": p.parent.id, "title": p.parent.title, "slug": p.parent.slug}

    return PostOut(
        id=p.id,
        title=p.title,
        slug=p.slug,
        content=p.content,
        main_image=p.main_image,
        reading_time=p.reading_time or 0,
        author=display_fields(p.author),
        topic_id=p.topic_id,
        topic=topic,
        parent_id=p.parent_id,
        parent=parent,
        status=bool(p.status),
        view_count=p.view_count or 0,
        post_count=p.post_count or 0,
        last_post_at=p.last_post_at,
        score=p.score,
        upvotes=p.upvotes,
        downvotes=p.downvotes,
        created_at=p.created_at,
        updated_at=p.updated_at,
    )


# ------------------------------
# Topics & tags
# ------------------------------
@router.get("/topics", response_model=List[TopicOut])
async def list_topics(db: AsyncSession = Depends(get_async_session)):
    return [topic_to_out(t) for t in await topic_service.list_topics(db)]


@router.get("/topics/{topic_id:int}", response_model=TopicOut)
async def get_topic(
    topic_id: int,
    db: AsyncSession = Depends(get_async_session),
    viewer: Optional[User] = Depends(get_current_user_optional),
):
    topic = await topic_service.get_topic(db, topic_id)
    if not topic.status and not is_staff(viewer):
        raise NotFound("Topic not found")
    return topic_to_out(topic)


@router.get("/topics/{topic_id:int}/posts", response_model=PageOut[PostOut])
async def list_topic_posts(
    topic_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    posts: PostService = Depends(get_post_service),
):
    return page_envelope(await posts.list_by_topic(topic_id, page, limit), post_to_out)


@router.post("/topics", response_model=TopicOut, status_code=status.HTTP_201_CREATED)
async def create_topic(
    payload: CreateTopicIn,
    user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_async_session),
):
    topic = await topic_service.create_topic(
        db, user, payload.title, tag_id=payload.tag_id, status=payload.status
    )
    return topic_to_out(topic)


@router.get("/tags", response_model=List[TagOut])
async def list_tags(db: AsyncSession = Depends(get_async_session)):
    return await topic_service.list_tags(db)


# ------------------------------
# Posts
# ------------------------------
@router.get("/posts", response_model=PageOut[PostOut])
async def list_posts(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    order: str = Query(ORDER_RECENT, pattern=f"^({ORDER_RECENT}|{ORDER_TRENDING})$"),
    posts: PostService = Depends(get_post_service),
):
    return page_envelope(await posts.list(page, limit, order=order), post_to_out)


@router.get("/posts/library", response_model=PageOut[PostOut])
async def my_library(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user: User = Depends(get_current_user),
    posts: PostService = Depends(get_post_service),
):
    return page_envelope(await posts.list_library(user, page, limit), post_to_out)


@router.get("/posts/user/{username}", response_model=PageOut[PostOut])
async def list_posts_by_user(
    username: str,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_async_session),
    posts: PostService = Depends(get_post_service),
):
    return page_envelope(await posts.list_by_username(db, username, page, limit), post_to_out)


@router.get("/posts/{post_id:int}/replies", response_model=PageOut[PostOut])
async def list_post_replies(
    post_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    posts: PostService = Depends(get_post_service),
):
    return page_envelope(await posts.list_by_parent(post_id, page, limit), post_to_out)


@router.get("/posts/slug/{slug}", response_model=PostOut)
async def get_post_by_slug(
    slug: str,
    db: AsyncSession = Depends(get_async_session),
    viewer: Optional[User] = Depends(get_current_user_optional),
    posts: PostService = Depends(get_post_service),
):
    return post_to_out(await posts.find_by_slug(db, viewer, slug))


@router.post("/posts/{post_id:int}/view", response_model=ViewOut)
async def record_post_view(
    post_id: int,
    request: Request,
    db: AsyncSession = Depends(get_async_session),
    viewer: Optional[User] = Depends(get_current_user_optional),
    posts: PostService = Depends(get_post_service),
):
    # only posts the caller may read are counted
    await posts.get_visible(db, viewer, post_id)
    counted = await posts.increment_view(post_id, client_id_for(request))
    return ViewOut(counted=counted)


@router.post("/posts", response_model=PostOut, status_code=status.HTTP_201_CREATED)
@limiter.limit(POST_WRITE_RATE)
async def create_post(
    request: Request,
    payload: CreatePostIn,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    posts: PostService = Depends(get_post_service),
):
    post = await posts.create(
        db,
        user,
        title=payload.title,
        content=payload.content,
        topic_id=payload.topic_id,
        parent_id=payload.parent_id,
        main_image=payload.main_image,
        status=payload.status,
    )
    return post_to_out(post)


@router.patch("/posts/{post_id:int}", response_model=PostOut)
@limiter.limit(POST_WRITE_RATE)
async def update_post(
    request: Request,
    post_id: int,
    payload: UpdatePostIn,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    posts: PostService = Depends(get_post_service),
):
    post = await posts.update(
        db,
        post_id,
        user,
        title=payload.title,
        content=payload.content,
        main_image=payload.main_image,
        status=payload.status,
    )
    return post_to_out(post)
