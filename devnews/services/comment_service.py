"""
Comment service: one level of threaded comments on a post.

A comment either sits at the top level (``parent_id`` is NULL) or replies
to another comment on the same post.  Listing only walks one level: each
top-level comment carries its direct replies and nothing deeper.
"""
import logging

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload, selectinload

from devnews.auth import Identity, ensure_can_mutate
from devnews.errors import NotFound, ValidationError
from devnews.models import Comment, Post
from devnews.schemas import CommentCreate, CommentUpdate

logger = logging.getLogger(__name__)


def _iso(value) -> str | None:
    return value.isoformat() if value else None


def serialize_comment(comment: Comment) -> dict:
    author = comment.author
    return {
        "id": comment.id,
        "content": comment.content,
        "post_id": comment.post_id,
        "parent_id": comment.parent_id,
        "created_at": _iso(comment.created_at),
        "updated_at": _iso(comment.updated_at),
        "author": {"id": author.id, "name": author.name} if author else None,
    }


async def _load_comment(db: AsyncSession, comment_id: int, refresh: bool = False) -> Comment | None:
    q = select(Comment).where(Comment.id == comment_id).options(joinedload(Comment.author))
    if refresh:
        q = q.execution_options(populate_existing=True)
    return (await db.execute(q)).scalar_one_or_none()


async def list_post_comments(db: AsyncSession, post_id: int) -> list[dict]:
    """
    Return the top-level comments of *post_id*, newest first, each with its
    direct replies (oldest first) nested under ``replies``.
    """
    q = (
        select(Comment)
        .where(Comment.post_id == post_id, Comment.parent_id.is_(None))
        .options(
            joinedload(Comment.author),
            selectinload(Comment.replies).joinedload(Comment.author),
        )
        .order_by(Comment.created_at.desc(), Comment.id.desc())
    )
    comments = (await db.execute(q)).unique().scalars().all()

    items = []
    for comment in comments:
        data = serialize_comment(comment)
        data["replies"] = [serialize_comment(r) for r in comment.replies]
        items.append(data)
    return items


async def create_comment(db: AsyncSession, identity: Identity, data: CommentCreate) -> dict:
    if await db.get(Post, data.post_id) is None:
        raise NotFound("Post not found")

    if data.parent_id is not None:
        parent = await db.get(Comment, data.parent_id)
        if parent is None:
            raise NotFound("Parent comment not found")
        if parent.post_id != data.post_id:
            raise ValidationError(
                "Parent comment belongs to a different post",
                errors=[{"field": "parent_id", "message": "Parent comment belongs to a different post"}],
            )

    comment = Comment(
        content=data.content,
        post_id=data.post_id,
        parent_id=data.parent_id,
        author_id=identity.id,
    )
    db.add(comment)
    await db.flush()

    comment = await _load_comment(db, comment.id, refresh=True)
    return serialize_comment(comment)


async def update_comment(
    db: AsyncSession, identity: Identity, comment_id: int, data: CommentUpdate
) -> dict:
    """Only the author may edit a comment; admins get no override here."""
    comment = await db.get(Comment, comment_id)
    if comment is None:
        raise NotFound("Comment not found")
    ensure_can_mutate(
        identity, comment.author_id, admin_override=False,
        message="You do not have permission to modify this comment",
    )

    comment.content = data.content
    await db.flush()

    comment = await _load_comment(db, comment_id, refresh=True)
    return serialize_comment(comment)


async def delete_comment(db: AsyncSession, identity: Identity, comment_id: int) -> None:
    """The author or an admin may delete a comment; its replies go with it."""
    comment = await db.get(Comment, comment_id)
    if comment is None:
        raise NotFound("Comment not found")
    ensure_can_mutate(
        identity, comment.author_id, admin_override=True,
        message="You do not have permission to delete this comment",
    )

    await db.execute(delete(Comment).where(Comment.parent_id == comment_id))
    await db.execute(delete(Comment).where(Comment.id == comment_id))
    logger.info("Comment id=%s deleted by user id=%s", comment_id, identity.id)
