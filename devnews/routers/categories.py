from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from devnews.auth import require_admin
from devnews.database import get_db
from devnews.errors import EnvelopeRoute, success
from devnews.schemas import CategoryCreate, CategoryUpdate
from devnews.services import category_service

router = APIRouter(prefix="/api/categories", tags=["categories"], route_class=EnvelopeRoute)


@router.get("")
async def list_categories(db: AsyncSession = Depends(get_db)):
    return success(await category_service.list_categories(db))


@router.get("/{category_id}")
async def get_category(category_id: int, db: AsyncSession = Depends(get_db)):
    return success(await category_service.get_category(db, category_id))


@router.post("", status_code=201, dependencies=[Depends(require_admin)])
async def create_category(data: CategoryCreate, db: AsyncSession = Depends(get_db)):
    return success(await category_service.create_category(db, data))


@router.put("/{category_id}", dependencies=[Depends(require_admin)])
async def update_category(category_id: int, data: CategoryUpdate, db: AsyncSession = Depends(get_db)):
    return success(await category_service.update_category(db, category_id, data))


@router.delete("/{category_id}", dependencies=[Depends(require_admin)])
async def delete_category(category_id: int, db: AsyncSession = Depends(get_db)):
    await category_service.delete_category(db, category_id)
    return success(message="Category deleted")
