from __future__ import annotations

from datetime import datetime
from pydantic import BaseModel, Field
from typing import Optional

from app.config import POST_TITLE_MAX_CHARS
from app.schemas.common_schemas import AuthorOut


class TagOut(BaseModel):
    id: int
    name: str
    slug: str

    class Config:
        from_attributes = True


class TopicRefOut(BaseModel):
    id: int
    title: str
    slug: str


class TopicOut(BaseModel):
    id: int
    title: str
    slug: str
    status: bool
    post_count: int = 0
    last_post_at: Optional[datetime] = None
    tag: Optional[TagOut] = None
    owner: Optional[AuthorOut] = None
    created_at: datetime


class PostRefOut(BaseModel):
    id: int
    title: str
    slug: str


class PostOut(BaseModel):
    id: int
    title: str
    slug: str
    content: str
    main_image: Optional[str] = None
    reading_time: int = 0
    author: Optional[AuthorOut] = None
    topic_id: int
    topic: Optional[TopicRefOut] = None
    parent_id: Optional[int] = None
    parent: Optional[PostRefOut] = None
    status: bool
    view_count: int = 0
    post_count: int = 0
    last_post_at: Optional[datetime] = None
    score: Optional[int] = None
    upvotes: Optional[int] = None
    downvotes: Optional[int] = None
    created_at: datetime
    updated_at: datetime


class ViewOut(BaseModel):
    counted: bool


class CreateTopicIn(BaseModel):
    title: str = Field(min_length=3, max_length=200)
    tag_id: Optional[int] = None
    status: bool = True


class UpdateTopicIn(BaseModel):
    # All optional so the client can send only what changed
    title: Optional[str] = Field(default=None, min_length=3, max_length=200)
    tag_id: Optional[int] = None
    status: Optional[bool] = None


class CreateTagIn(BaseModel):
    name: str = Field(min_length=1, max_length=80)


class CreatePostIn(BaseModel):
    title: str = Field(min_length=1, max_length=POST_TITLE_MAX_CHARS)
    content: str = Field(min_length=1)
    topic_id: int
    parent_id: Optional[int] = None
    main_image: Optional[str] = None
    status: bool = True


class UpdatePostIn(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=POST_TITLE_MAX_CHARS)
    content: Optional[str] = Field(default=None, min_length=1)
    main_image: Optional[str] = None
    status: Optional[bool] = None


class ScoresIn(BaseModel):
    score: Optional[int] = None
    upvotes: Optional[int] = None
    downvotes: Optional[int] = None
