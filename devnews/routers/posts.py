from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from devnews.auth import Identity, get_current_user, get_optional_user
from devnews.database import get_db
from devnews.dependencies import PaginationParams
from devnews.errors import EnvelopeRoute, success
from devnews.schemas import PostCreate, PostUpdate
from devnews.services import post_service

router = APIRouter(prefix="/api/posts", tags=["posts"], route_class=EnvelopeRoute)


@router.get("")
async def list_posts(
    pagination: PaginationParams = Depends(),
    db: AsyncSession = Depends(get_db),
):
    page = await post_service.get_posts(
        db, pagination.page, pagination.page_size, pagination.sort_by, pagination.sort_order
    )
    return success(page["items"], pagination=page["pagination"])


@router.get("/{post_id}")
async def get_post(
    post_id: int,
    identity: Identity | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    return success(await post_service.get_post(db, post_id, identity))


@router.post("", status_code=201)
async def create_post(
    data: PostCreate,
    identity: Identity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return success(await post_service.create_post(db, identity, data))


@router.put("/{post_id}")
async def update_post(
    post_id: int,
    data: PostUpdate,
    identity: Identity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return success(await post_service.update_post(db, identity, post_id, data))


@router.delete("/{post_id}")
async def delete_post(
    post_id: int,
    identity: Identity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await post_service.delete_post(db, identity, post_id)
    return success(message="Post deleted")
