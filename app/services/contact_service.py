# app/services/contact_service.py
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.errors import NotFound, ValidationFailed
from app.models.contact_model import ContactMessage
from app.utils.pagination import Page, normalize_page, skip_for
from app.utils.slug import SlugAllocator

logger = logging.getLogger(__name__)

contact_slugs = SlugAllocator(ContactMessage)


def _required(value: Optional[str], field: str, max_chars: int) -> str:
    value = (value or "").strip()
    if not value:
        raise ValidationFailed(f"{field} is required")
    if len(value) > max_chars:
        raise ValidationFailed(f"{field} is longer than {max_chars} characters.")
    return value


async def submit(db: AsyncSession, *, name: str, email: str, subject: str, message: str) -> ContactMessage:
    name = _required(name, "name", 100)
    email = _required(email, "email", 100).lower()
    subject = _required(subject, "subject", 150)
    message = _required(message, "message", 1000)

    contact = await contact_slugs.insert_with_unique_slug(
        db,
        subject,
        lambda slug: ContactMessage(name=name, email=email, subject=subject, message=message, slug=slug),
    )
    logger.info("contact message %s received (%s)", contact.id, contact.slug)
    return await db.get(ContactMessage, contact.id, populate_existing=True)


async def list_unread(db: AsyncSession, page: Optional[int] = None, limit: Optional[int] = None) -> Page[ContactMessage]:
    page, limit = normalize_page(page, limit)
    unread = ContactMessage.is_read.is_(False)

    total = int(
        (await db.execute(select(func.count(ContactMessage.id)).where(unread))).scalar_one() or 0
    )
    rows = (
        await db.execute(
            select(ContactMessage)
            .where(unread)
            .order_by(ContactMessage.created_at.desc(), ContactMessage.id.desc())
            .offset(skip_for(page, limit))
            .limit(limit)
        )
    ).scalars().all()
    return Page(items=list(rows), page=page, limit=limit, total=total)


async def find_by_slug(db: AsyncSession, slug: str) -> ContactMessage:
    contact = (
        await db.execute(
            select(ContactMessage).where(ContactMessage.slug == slug, ContactMessage.is_read.is_(False))
        )
    ).scalars().first()
    if not contact:
        raise NotFound("Contact message not found")
    return contact


async def mark_read(db: AsyncSession, contact_id: int) -> ContactMessage:
    contact = await db.get(ContactMessage, contact_id)
    if not contact:
        raise NotFound("Contact message not found")
    contact.is_read = True
    await db.commit()
    return contact


async def delete(db: AsyncSession, contact_id: int) -> None:
    contact = await db.get(ContactMessage, contact_id)
    if not contact:
        raise NotFound("Contact message not found")
    await db.delete(contact)
    await db.commit()
