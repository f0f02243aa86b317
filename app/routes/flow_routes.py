from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import FLOW_WRITE_RATE
from app.database import get_async_session
from app.deps.services import get_flow_service
from app.limiter import limiter
from app.models.flow_model import Flow
from app.models.user_model import User
from app.schemas.common_schemas import PageOut
from app.schemas.flow_schemas import FlowOut, CreateFlowIn, UpdateFlowIn
from app.services.flow_service import FlowService
from app.services.user_service import display_fields
from app.utils.pagination import page_envelope
from app.utils.token_utils import get_current_user

router = APIRouter(prefix="/flows", tags=["flows"])


# ------------------------------
# Mappers
# ------------------------------
def _flow_to_out(f: Flow) -> FlowOut:
    parent = None
    if f.parent is not None:
        parent = {"id": f.parent.id, "slug": f.parent.slug, "content": f.parent.content}

    return FlowOut(
        id=f.id,
        slug=f.slug,
        content=f.content,
        author=display_fields(f.author),
        parent_id=f.parent_id,
        parent=parent,
        reply_count=f.reply_count or 0,
        is_deleted=bool(f.is_deleted),
        created_at=f.created_at,
        updated_at=f.updated_at,
    )


# ------------------------------
# Routes
# ------------------------------
@router.get("", response_model=PageOut[FlowOut])
async def list_flows(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    flows: FlowService = Depends(get_flow_service),
):
    return page_envelope(await flows.list(page, limit), _flow_to_out)


@router.get("/user/{username}", response_model=PageOut[FlowOut])
async def list_flows_by_user(
    username: str,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_async_session),
    flows: FlowService = Depends(get_flow_service),
):
    return page_envelope(await flows.find_by_username(db, username, page, limit), _flow_to_out)


@router.get("/{flow_id:int}/replies", response_model=PageOut[FlowOut])
async def list_replies(
    flow_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    flows: FlowService = Depends(get_flow_service),
):
    return page_envelope(await flows.find_replies(flow_id, page, limit), _flow_to_out)


@router.get("/{slug}", response_model=FlowOut)
async def get_flow(
    slug: str,
    db: AsyncSession = Depends(get_async_session),
    flows: FlowService = Depends(get_flow_service),
):
    return _flow_to_out(await flows.find_by_slug(db, slug))


@router.post("", response_model=FlowOut, status_code=status.HTTP_201_CREATED)
@limiter.limit(FLOW_WRITE_RATE)
async def create_flow(
    request: Request,
    payload: CreateFlowIn,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    flows: FlowService = Depends(get_flow_service),
):
    flow = await flows.create(db, user, payload.content, parent_id=payload.parent_id)
    return _flow_to_out(flow)


@router.patch("/{slug}", response_model=FlowOut)
@limiter.limit(FLOW_WRITE_RATE)
async def update_flow(
    request: Request,
    slug: str,
    payload: UpdateFlowIn,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    flows: FlowService = Depends(get_flow_service),
):
    flow = await flows.update_by_slug(
        db, slug, user, content=payload.content, is_deleted=payload.is_deleted
    )
    return _flow_to_out(flow)


@router.delete("/{slug}")
async def delete_flow(
    slug: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    flows: FlowService = Depends(get_flow_service),
) -> dict:
    deleted = await flows.soft_delete(db, slug, user)
    return {"ok": True, "deleted": deleted}
