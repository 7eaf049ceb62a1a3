from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from devnews.auth import Identity, get_current_user, require_admin
from devnews.database import get_db
from devnews.dependencies import PaginationParams
from devnews.errors import EnvelopeRoute, success
from devnews.schemas import UserUpdate
from devnews.services import user_service

router = APIRouter(prefix="/api/users", tags=["users"], route_class=EnvelopeRoute)


@router.get("", dependencies=[Depends(require_admin)])
async def list_users(
    pagination: PaginationParams = Depends(),
    db: AsyncSession = Depends(get_db),
):
    users, page = await user_service.get_users(db, pagination.page, pagination.page_size)
    return success(users, pagination=page.model_dump())


@router.get("/{user_id}")
async def get_user(
    user_id: int,
    identity: Identity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return success(await user_service.get_user(db, identity, user_id))


@router.put("/{user_id}")
async def update_user(
    user_id: int,
    data: UserUpdate,
    identity: Identity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return success(await user_service.update_user(db, identity, user_id, data))


@router.delete("/{user_id}")
async def delete_user(
    user_id: int,
    identity: Identity = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await user_service.disable_user(db, identity, user_id)
    return success(message="User has been disabled")
