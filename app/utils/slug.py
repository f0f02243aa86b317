# app/utils/slug.py
from __future__ import annotations

import logging
import random
import re
from typing import Callable, Optional, TypeVar
from unicodedata import normalize

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import SLUG_FALLBACK, SLUG_MAX_ATTEMPTS, SLUG_MAX_LENGTH
from app.errors import SlugExhausted

logger = logging.getLogger(__name__)

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")

T = TypeVar("T")


def slugify(text: Optional[str], max_len: int = SLUG_MAX_LENGTH) -> str:
    """
    Lowercase, hyphenated, ASCII-only form of ``text``.
    Returns "" when nothing survives (all symbols / non-Latin script).
    """
    if not text:
        return ""
    ascii_text = normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    slug = _NON_ALNUM_RE.sub("-", ascii_text.lower()).strip("-")
    if len(slug) > max_len:
        slug = slug[:max_len].rstrip("-")
    return slug


def random_suffix() -> int:
    return random.randint(1000, 9999)


class SlugAllocator:
    """
    Derives a free slug for one model (any mapped class with a unique ``slug``
    column). The existence check is point-in-time only: two writers can both
    see the same slug as free, the unique index on ``slug`` settles it and
    ``insert_with_unique_slug`` retries the loser.
    """

    def __init__(
        self,
        model,
        *,
        fallback: str = SLUG_FALLBACK,
        max_attempts: int = SLUG_MAX_ATTEMPTS,
        suffix: Callable[[], int] = random_suffix,
    ):
        self.model = model
        self.fallback = fallback
        self.max_attempts = max_attempts
        self._suffix = suffix

    async def exists(self, db: AsyncSession, slug: str) -> bool:
        stmt = select(self.model.id).where(self.model.slug == slug).limit(1)
        return (await db.execute(stmt)).first() is not None

    async def allocate(self, db: AsyncSession, seed_text: Optional[str]) -> str:
        base = slugify(seed_text) or self.fallback

        candidate = base
        for _attempt in range(self.max_attempts):
            if not await self.exists(db, candidate):
                return candidate
            candidate = f"{base}-{self._suffix()}"

        logger.error(
            "slug space exhausted for %s base=%r after %d attempts",
            self.model.__tablename__, base, self.max_attempts,
        )
        raise SlugExhausted(f"Could not allocate a unique slug for '{base}'")

    async def insert_with_unique_slug(
        self,
        db: AsyncSession,
        seed_text: Optional[str],
        build: Callable[[str], T],
    ) -> T:
        """
        Allocate a slug, build the row with it and commit. Each attempt is
        flushed inside a SAVEPOINT: a unique-index violation (a concurrent
        writer took the slug first) rolls back only that attempt, so rows the
        caller already loaded stay usable, and the loop retries with a fresh
        allocation.
        """
        for attempt in range(self.max_attempts):
            slug = await self.allocate(db, seed_text)
            obj = build(slug)
            try:
                async with db.begin_nested():
                    db.add(obj)
            except IntegrityError as e:
                if not _is_slug_clash(e):
                    raise
                logger.warning(
                    "slug %r taken concurrently in %s, retrying (%d)",
                    slug, self.model.__tablename__, attempt + 1,
                )
                continue
            await db.commit()
            return obj
        raise SlugExhausted(f"Could not insert a unique slug for '{slugify(seed_text)}'")

    async def reassign(
        self,
        db: AsyncSession,
        seed_text: Optional[str],
        apply: Callable[[str], None],
    ) -> str:
        """
        Edit-path counterpart of ``insert_with_unique_slug``. ``apply(slug)``
        must write the new slug together with every other pending change on
        the row, because a clash rolls the savepoint back and expires them.
        The caller commits.
        """
        for attempt in range(self.max_attempts):
            slug = await self.allocate(db, seed_text)
            try:
                async with db.begin_nested():
                    apply(slug)
            except IntegrityError as e:
                if not _is_slug_clash(e):
                    raise
                logger.warning(
                    "slug %r taken concurrently in %s on edit, retrying (%d)",
                    slug, self.model.__tablename__, attempt + 1,
                )
                continue
            return slug
        raise SlugExhausted(f"Could not reassign a unique slug for '{slugify(seed_text)}'")


def _is_slug_clash(e: IntegrityError) -> bool:
    return "slug" in str(e.orig).lower()
