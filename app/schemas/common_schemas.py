from __future__ import annotations

from pydantic import BaseModel
from typing import Generic, List, Optional, TypeVar

T = TypeVar("T")


class AuthorOut(BaseModel):
    id: int
    username: str
    nickname: Optional[str] = None
    avatar: Optional[str] = None
    role: Optional[str] = None


class PageOut(BaseModel, Generic[T]):
    items: List[T] = []
    page: int
    limit: int
    total: int
    total_pages: int
    has_prev: bool
    has_next: bool
