# app/utils/pagination.py
from __future__ import annotations

import asyncio
import math
from dataclasses import dataclass, field
from typing import Generic, List, Optional, TypeVar

from sqlalchemy import Select, func, select

from app.config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE

T = TypeVar("T")


@dataclass
class Page(Generic[T]):
    items: List[T] = field(default_factory=list)
    page: int = 1
    limit: int = DEFAULT_PAGE_SIZE
    total: int = 0

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages


def normalize_page(page: Optional[int], limit: Optional[int]) -> tuple[int, int]:
    page = page if page and page > 0 else 1
    limit = limit if limit and limit > 0 else DEFAULT_PAGE_SIZE
    return page, min(limit, MAX_PAGE_SIZE)


def skip_for(page: int, limit: int) -> int:
    return (page - 1) * limit


async def paginate(session_factory, stmt: Select, page: Optional[int], limit: Optional[int]) -> Page:
    """
    Page rows + total for ``stmt``. The page fetch and the COUNT are
    independent reads, so they run concurrently on separate sessions.
    ``stmt`` must already carry its filters and ordering.
    """
    page, limit = normalize_page(page, limit)

    count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
    page_stmt = stmt.offset(skip_for(page, limit)).limit(limit)

    async def _rows():
        async with session_factory() as db:
            return (await db.execute(page_stmt)).unique().scalars().all()

    async def _total():
        async with session_factory() as db:
            return int((await db.execute(count_stmt)).scalar_one() or 0)

    rows, total = await asyncio.gather(_rows(), _total())
    return Page(items=list(rows), page=page, limit=limit, total=total)


def page_envelope(page: Page, mapper) -> dict:
    """The JSON page shape the routes return."""
    return {
        "items": [mapper(item) for item in page.items],
        "page": page.page,
        "limit": page.limit,
        "total": page.total,
        "total_pages": page.total_pages,
        "has_prev": page.has_prev,
        "has_next": page.has_next,
    }
