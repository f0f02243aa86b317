from __future__ import annotations

from datetime import datetime
from pydantic import BaseModel, Field
from typing import Optional

from app.config import FLOW_MAX_CHARS
from app.schemas.common_schemas import AuthorOut


class FlowParentOut(BaseModel):
    id: int
    slug: str
    content: str


class FlowOut(BaseModel):
    id: int
    slug: str
    content: str
    author: Optional[AuthorOut] = None
    parent_id: Optional[int] = None
    parent: Optional[FlowParentOut] = None
    reply_count: int = 0
    is_deleted: bool = False
    created_at: datetime
    updated_at: datetime


class CreateFlowIn(BaseModel):
    content: str = Field(min_length=1, max_length=FLOW_MAX_CHARS)
    parent_id: Optional[int] = None


class UpdateFlowIn(BaseModel):
    # send only what changed
    content: Optional[str] = Field(default=None, min_length=1, max_length=FLOW_MAX_CHARS)
    is_deleted: Optional[bool] = None
