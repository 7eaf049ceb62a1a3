"""
Upload service: stores bytes through the storage collaborator and keeps
one ``files`` row of metadata per upload.
"""
import logging
import uuid
from pathlib import PurePath

from fastapi import UploadFile
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from devnews.auth import Identity, ensure_can_mutate
from devnews.config import settings
from devnews.errors import NotFound, ValidationError
from devnews.models import File
from devnews.storage import LocalFileStorage

logger = logging.getLogger(__name__)

_MAX_SUFFIX_LENGTH = 16


def _stored_name(original_name: str) -> str:
    suffix = PurePath(original_name).suffix.lower()
    if len(suffix) > _MAX_SUFFIX_LENGTH:
        suffix = ""
    return f"{uuid.uuid4().hex}{suffix}"


def serialize_file(file: File) -> dict:
    return {
        "id": file.id,
        "filename": file.filename,
        "original_name": file.original_name,
        "mime_type": file.mime_type,
        "size": file.size,
        "user_id": file.user_id,
        "url": f"{settings.UPLOAD_URL_PREFIX}/{file.filename}",
        "created_at": file.created_at.isoformat() if file.created_at else None,
    }


async def upload_file(
    db: AsyncSession,
    storage: LocalFileStorage,
    identity: Identity,
    upload: UploadFile | None,
) -> dict:
    if upload is None or not upload.filename:
        raise ValidationError(
            "Please choose a file to upload",
            errors=[{"field": "file", "message": "No file was provided"}],
        )

    # Never buffer more than one byte past the limit.
    data = await upload.read(settings.MAX_UPLOAD_SIZE + 1)
    if not data:
        raise ValidationError(
            "Uploaded file is empty",
            errors=[{"field": "file", "message": "File is empty"}],
        )
    if len(data) > settings.MAX_UPLOAD_SIZE:
        raise ValidationError(
            "Uploaded file is too large",
            errors=[{"field": "file", "message": f"File exceeds {settings.MAX_UPLOAD_SIZE} bytes"}],
        )

    filename = _stored_name(upload.filename)
    path = await storage.save(data, filename)

    file = File(
        filename=filename,
        original_name=upload.filename,
        mime_type=upload.content_type or "application/octet-stream",
        size=len(data),
        path=path,
        user_id=identity.id,
    )
    db.add(file)
    await db.flush()
    logger.info("User id=%s uploaded %s (%d bytes)", identity.id, filename, len(data))
    return serialize_file(file)


async def list_files(db: AsyncSession, identity: Identity) -> list[dict]:
    q = select(File).where(File.user_id == identity.id).order_by(File.created_at.desc(), File.id.desc())
    return [serialize_file(f) for f in (await db.execute(q)).scalars().all()]


async def get_file(db: AsyncSession, file_id: int) -> dict:
    file = await db.get(File, file_id)
    if file is None:
        raise NotFound("File not found")
    return serialize_file(file)


async def delete_file(
    db: AsyncSession, storage: LocalFileStorage, identity: Identity, file_id: int
) -> None:
    """
    Remove the stored bytes, then the metadata row.

    Only the uploader may delete.  If the bytes cannot be removed the error
    propagates and the row is left in place.
    """
    file = await db.get(File, file_id)
    if file is None:
        raise NotFound("File not found")
    ensure_can_mutate(
        identity, file.user_id, admin_override=False,
        message="You do not have permission to delete this file",
    )

    await storage.delete(file.path)
    await db.delete(file)
    await db.flush()
    logger.info("File id=%s removed by user id=%s", file_id, identity.id)
