# app/deps/admin.py
from fastapi import Depends, HTTPException, status
from app.models.user_model import User
from app.services.user_service import is_admin, is_staff
from app.utils.token_utils import get_current_user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    """
    Requires the authenticated user to have role=ADMIN.
    Raises 403 if not an admin.
    """
    if not is_admin(user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    return user


async def require_staff(user: User = Depends(get_current_user)) -> User:
    """ADMIN or MODERATOR."""
    if not is_staff(user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Moderator access required"
        )
    return user
