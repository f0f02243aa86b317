import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from app.database import get_async_session
from app.deps.admin import require_admin
from app.deps.services import get_post_service
from app.models.user_model import User
from app.routes.forum_routes import post_to_out, topic_to_out
from app.schemas.common_schemas import PageOut
from app.schemas.contact_schemas import ContactOut
from app.schemas.forum_schemas import (
    PostOut, TopicOut, TagOut, UpdatePostIn, UpdateTopicIn, CreateTagIn, ScoresIn,
)
from app.services import contact_service, topic_service
from app.services.post_service import PostService
from app.utils.pagination import page_envelope

logger = logging.getLogger(__name__)

# every route here is admin-only
router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


# ------------------------------
# posts
# ------------------------------
@router.get("/posts", response_model=PageOut[PostOut])
async def list_all_posts(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    posts: PostService = Depends(get_post_service),
):
    return page_envelope(await posts.list_all(page, limit), post_to_out)


@router.patch("/posts/{post_id}", response_model=PostOut)
async def admin_update_post(
    post_id: int,
    payload: UpdatePostIn,
    db: AsyncSession = Depends(get_async_session),
    posts: PostService = Depends(get_post_service),
):
    post = await posts.update_as_admin(
        db,
        post_id,
        title=payload.title,
        content=payload.content,
        main_image=payload.main_image,
        status=payload.status,
    )
    return post_to_out(post)


@router.put("/posts/{post_id}/scores", response_model=PostOut)
async def admin_set_scores(
    post_id: int,
    payload: ScoresIn,
    db: AsyncSession = Depends(get_async_session),
    posts: PostService = Depends(get_post_service),
):
    post = await posts.update_total_scores(
        db, post_id, payload.score, payload.upvotes, payload.downvotes
    )
    return post_to_out(post)


@router.delete("/posts/{post_id}")
async def admin_delete_post(
    post_id: int,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_async_session),
    posts: PostService = Depends(get_post_service),
) -> dict:
    await posts.delete(db, post_id)
    logger.info("admin %s deleted post %s", admin.id, post_id)
    return {"ok": True}


# ------------------------------
# topics & tags
# ------------------------------
@router.get("/topics", response_model=List[TopicOut])
async def admin_list_topics(db: AsyncSession = Depends(get_async_session)):
    return [topic_to_out(t) for t in await topic_service.list_topics(db, include_hidden=True)]


@router.patch("/topics/{topic_id}", response_model=TopicOut)
async def admin_update_topic(
    topic_id: int,
    payload: UpdateTopicIn,
    db: AsyncSession = Depends(get_async_session),
):
    topic = await topic_service.update_topic_as_admin(
        db, topic_id, title=payload.title, status=payload.status, tag_id=payload.tag_id
    )
    return topic_to_out(topic)


@router.delete("/topics/{topic_id}")
async def admin_delete_topic(topic_id: int, db: AsyncSession = Depends(get_async_session)) -> dict:
    await topic_service.delete_topic(db, topic_id)
    return {"ok": True}


@router.post("/tags", response_model=TagOut)
async def admin_create_tag(payload: CreateTagIn, db: AsyncSession = Depends(get_async_session)):
    return await topic_service.create_tag(db, payload.name)


@router.delete("/tags/{tag_id}")
async def admin_delete_tag(tag_id: int, db: AsyncSession = Depends(get_async_session)) -> dict:
    await topic_service.delete_tag(db, tag_id)
    return {"ok": True}


# ------------------------------
# contact inbox
# ------------------------------
@router.get("/contacts", response_model=PageOut[ContactOut])
async def admin_list_contacts(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_async_session),
):
    result = await contact_service.list_unread(db, page, limit)
    return page_envelope(result, ContactOut.model_validate)


@router.get("/contacts/{slug}", response_model=ContactOut)
async def admin_get_contact(slug: str, db: AsyncSession = Depends(get_async_session)):
    return await contact_service.find_by_slug(db, slug)


@router.patch("/contacts/{contact_id}/read", response_model=ContactOut)
async def admin_mark_contact_read(contact_id: int, db: AsyncSession = Depends(get_async_session)):
    return await contact_service.mark_read(db, contact_id)


@router.delete("/contacts/{contact_id}")
async def admin_delete_contact(contact_id: int, db: AsyncSession = Depends(get_async_session)) -> dict:
    await contact_service.delete(db, contact_id)
    return {"ok": True}
