from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from devnews.auth import Identity, get_current_user
from devnews.database import get_db
from devnews.errors import EnvelopeRoute, success
from devnews.services import file_service
from devnews.storage import LocalFileStorage, get_storage

router = APIRouter(prefix="/api/uploads", tags=["uploads"], route_class=EnvelopeRoute)


@router.post("", status_code=201)
async def upload_file(
    file: UploadFile | None = File(None),
    identity: Identity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    storage: LocalFileStorage = Depends(get_storage),
):
    return success(await file_service.upload_file(db, storage, identity, file))


@router.get("")
async def list_files(
    identity: Identity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return success(await file_service.list_files(db, identity))


@router.get("/{file_id}")
async def get_file(
    file_id: int,
    identity: Identity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return success(await file_service.get_file(db, file_id))


@router.delete("/{file_id}")
async def delete_file(
    file_id: int,
    identity: Identity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    storage: LocalFileStorage = Depends(get_storage),
):
    await file_service.delete_file(db, storage, identity, file_id)
    return success(message="File deleted")
