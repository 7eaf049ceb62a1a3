from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from devnews.auth import Identity, get_current_user
from devnews.database import get_db
from devnews.errors import EnvelopeRoute, success
from devnews.schemas import CommentCreate, CommentUpdate
from devnews.services import comment_service

router = APIRouter(prefix="/api/comments", tags=["comments"], route_class=EnvelopeRoute)


@router.get("/post/{post_id}")
async def list_post_comments(post_id: int, db: AsyncSession = Depends(get_db)):
    return success(await comment_service.list_post_comments(db, post_id))


@router.post("", status_code=201)
async def create_comment(
    data: CommentCreate,
    identity: Identity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return success(await comment_service.create_comment(db, identity, data))


@router.put("/{comment_id}")
async def update_comment(
    comment_id: int,
    data: CommentUpdate,
    identity: Identity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return success(await comment_service.update_comment(db, identity, comment_id, data))


@router.delete("/{comment_id}")
async def delete_comment(
    comment_id: int,
    identity: Identity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await comment_service.delete_comment(db, identity, comment_id)
    return success(message="Comment deleted")
