# app/services/user_service.py
from __future__ import annotations

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.errors import NotFound
from app.models.user_model import User, ROLE_ADMIN, ROLE_MODERATOR


def is_admin(user: Optional[User]) -> bool:
    return (getattr(user, "role", "") or "").upper() == ROLE_ADMIN


def is_staff(user: Optional[User]) -> bool:
    """Admins and moderators may edit or view anything."""
    return (getattr(user, "role", "") or "").upper() in (ROLE_ADMIN, ROLE_MODERATOR)


def can_modify(user: Optional[User], owner_id: Optional[int]) -> bool:
    if user is None:
        return False
    return is_staff(user) or (owner_id is not None and owner_id == user.id)


def display_fields(user: Optional[User]) -> Optional[dict]:
    if user is None:
        return None
    return {
        "id": user.id,
        "username": user.username,
        "nickname": user.nickname or user.username,
        "avatar": user.avatar,
        "role": user.role,
    }


async def get_user(db: AsyncSession, user_id: Optional[int]) -> User:
    user = await db.get(User, user_id) if user_id is not None else None
    if not user:
        raise NotFound("User not found")
    return user


async def get_by_username(db: AsyncSession, username: str) -> User:
    user = (
        await db.execute(select(User).where(User.username == username))
    ).scalars().first()
    if not user:
        raise NotFound("User not found")
    return user
