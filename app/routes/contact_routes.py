from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import CONTACT_RATE
from app.database import get_async_session
from app.limiter import limiter
from app.schemas.contact_schemas import ContactIn, ContactOut
from app.services import contact_service

router = APIRouter(prefix="/contact", tags=["contact"])


@router.post("", response_model=ContactOut, status_code=status.HTTP_201_CREATED)
@limiter.limit(CONTACT_RATE)
async def submit_contact(
    request: Request,
    payload: ContactIn,
    db: AsyncSession = Depends(get_async_session),
):
    return await contact_service.submit(
        db,
        name=payload.name,
        email=payload.email,
        subject=payload.subject,
        message=payload.message,
    )
