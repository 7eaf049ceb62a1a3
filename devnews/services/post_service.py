"""
Post service: business logic for the Post aggregate.

Design notes
------------
- Published reads go through the cache-aside pattern (Redis, then the
  database).  Only published posts are ever cached, so a cache hit never
  leaks a draft.
- Tags are resolved get-or-create by name.  On every write that supplies
  tags the post's associations are replaced wholesale: all existing
  ``post_tags`` rows are deleted and the resolved set is inserted.  Tag
  rows themselves are never deleted, even when no post uses them.
- Mutations are allowed to the author or an admin (``ensure_can_mutate``
  with the admin override).
- Service functions flush but do not commit; the transaction boundary is
  owned by the ``get_db`` dependency.
"""
import logging

from sqlalchemy import asc, delete, desc, func, insert, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload, selectinload

from devnews.auth import Identity, can_mutate, ensure_can_mutate
from devnews.cache import cache, post_detail_key, post_list_key
from devnews.config import settings
from devnews.errors import NotFound, ValidationError
from devnews.models import Category, Comment, Post, Tag, post_tags
from devnews.schemas import Pagination, PostCreate, PostUpdate

logger = logging.getLogger(__name__)

# Columns that are safe to sort by; guards against arbitrary attribute access.
_SORTABLE_COLUMNS: frozenset[str] = frozenset({"created_at", "updated_at", "title"})


def _resolve_sort_column(sort_by: str):
    if sort_by in _SORTABLE_COLUMNS:
        return getattr(Post, sort_by)
    return Post.created_at


def _iso(value) -> str | None:
    return value.isoformat() if value else None


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def serialize_post(post: Post) -> dict:
    author = post.author
    category = post.category
    return {
        "id": post.id,
        "title": post.title,
        "content": post.content,
        "published": post.published,
        "created_at": _iso(post.created_at),
        "updated_at": _iso(post.updated_at),
        "author_id": post.author_id,
        "author": (
            {"id": author.id, "name": author.name, "email": author.email} if author else None
        ),
        "category_id": post.category_id,
        "category": {"id": category.id, "name": category.name} if category else None,
        "tags": sorted(({"id": t.id, "name": t.name} for t in post.tags), key=lambda t: t["name"]),
    }


# ---------------------------------------------------------------------------
# Query helpers
# ---------------------------------------------------------------------------

def _post_query():
    return select(Post).options(
        joinedload(Post.author),
        joinedload(Post.category),
        selectinload(Post.tags),
    )


async def _load_post(db: AsyncSession, post_id: int, refresh: bool = False) -> Post | None:
    q = _post_query().where(Post.id == post_id)
    if refresh:
        q = q.execution_options(populate_existing=True)
    result = await db.execute(q)
    return result.unique().scalar_one_or_none()


async def _ensure_category(db: AsyncSession, category_id: int) -> None:
    if await db.get(Category, category_id) is None:
        raise ValidationError(
            "Category does not exist",
            errors=[{"field": "category_id", "message": "Category does not exist"}],
        )


def _clean_tag_names(names: list[str]) -> list[str]:
    """Strip, drop blanks and de-duplicate while keeping first-seen order."""
    seen: dict[str, None] = {}
    for name in names:
        name = name.strip()
        if name:
            seen.setdefault(name, None)
    return list(seen)


async def resolve_tags(db: AsyncSession, tag_names: list[str]) -> list[Tag]:
    """
    Return Tag rows for each name in *tag_names*, creating the missing ones
    within the caller's transaction.
    """
    tags: list[Tag] = []
    for name in _clean_tag_names(tag_names):
        tag = (await db.execute(select(Tag).where(Tag.name == name))).scalar_one_or_none()
        if tag is None:
            tag = Tag(name=name)
            db.add(tag)
            await db.flush()
        tags.append(tag)
    return tags


async def replace_post_tags(db: AsyncSession, post_id: int, tag_names: list[str]) -> None:
    """Delete every tag link of *post_id*, then link exactly the resolved *tag_names*."""
    tags = await resolve_tags(db, tag_names)
    await db.execute(delete(post_tags).where(post_tags.c.post_id == post_id))
    if tags:
        await db.execute(
            insert(post_tags),
            [{"post_id": post_id, "tag_id": tag.id} for tag in tags],
        )


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def get_posts(
    db: AsyncSession,
    page: int = 1,
    page_size: int = 10,
    sort_by: str = "created_at",
    sort_order: str = "desc",
) -> dict:
    """
    Return ``{"items": [...], "pagination": {...}}`` for published posts.

    On a cache miss two statements run: a COUNT and the paginated SELECT
    with author, category and tags eager-loaded.
    """
    cache_key = post_list_key(page, page_size, sort_by, sort_order)
    cached = await cache.get(cache_key)
    if cached:
        return cached

    total: int = (
        await db.execute(
            select(func.count()).select_from(Post).where(Post.published.is_(True))
        )
    ).scalar_one()

    sort_col = _resolve_sort_column(sort_by)
    order = desc if sort_order == "desc" else asc
    q = (
        _post_query()
        .where(Post.published.is_(True))
        .order_by(order(sort_col), order(Post.id))
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    posts = (await db.execute(q)).unique().scalars().all()

    pagination = Pagination.build(total, page, page_size)
    response = {
        "items": [serialize_post(p) for p in posts],
        "pagination": pagination.model_dump(),
    }
    await cache.set(cache_key, response, ttl=settings.CACHE_TTL_LIST)
    return response


async def get_post(db: AsyncSession, post_id: int, identity: Identity | None = None) -> dict:
    """
    Return a post.

    Published posts are visible to everyone.  A draft is visible only to
    its author or an admin; anyone else gets a 404 as if it did not exist.
    """
    cached = await cache.get(post_detail_key(post_id))
    if cached:
        return cached

    post = await _load_post(db, post_id)
    if post is None:
        raise NotFound("Post not found")

    if not post.published:
        if identity is None or not can_mutate(identity, post.author_id, admin_override=True):
            raise NotFound("Post not found")
        return serialize_post(post)

    data = serialize_post(post)
    await cache.set(post_detail_key(post_id), data, ttl=settings.CACHE_TTL_DETAIL)
    return data


async def create_post(db: AsyncSession, identity: Identity, data: PostCreate) -> dict:
    if data.category_id is not None:
        await _ensure_category(db, data.category_id)

    post = Post(
        title=data.title,
        content=data.content,
        published=data.published,
        category_id=data.category_id,
        author_id=identity.id,
    )
    db.add(post)
    await db.flush()

    if data.tags:
        await replace_post_tags(db, post.id, data.tags)

    post = await _load_post(db, post.id, refresh=True)
    await cache.invalidate_post()
    logger.info("Post id=%s created by user id=%s", post.id, identity.id)
    return serialize_post(post)


async def update_post(
    db: AsyncSession, identity: Identity, post_id: int, data: PostUpdate
) -> dict:
    """
    Partially update a post; only fields present in the payload change.

    When ``tags`` is present the associations are replaced in full.
    """
    post = await db.get(Post, post_id)
    if post is None:
        raise NotFound("Post not found")
    ensure_can_mutate(
        identity, post.author_id, admin_override=True,
        message="You do not have permission to modify this post",
    )

    changes = data.model_dump(exclude_unset=True)
    tag_names: list[str] | None = changes.pop("tags", None)

    if changes.get("category_id") is not None:
        await _ensure_category(db, changes["category_id"])

    for field in ("title", "content", "published"):
        if changes.get(field) is not None:
            setattr(post, field, changes[field])
    if "category_id" in changes:
        post.category_id = changes["category_id"]

    await db.flush()

    if tag_names is not None:
        await replace_post_tags(db, post_id, tag_names)

    post = await _load_post(db, post_id, refresh=True)
    await cache.invalidate_post(post_id)
    return serialize_post(post)


async def delete_post(db: AsyncSession, identity: Identity, post_id: int) -> None:
    """Delete a post together with its comments and tag links."""
    post = await db.get(Post, post_id)
    if post is None:
        raise NotFound("Post not found")
    ensure_can_mutate(
        identity, post.author_id, admin_override=True,
        message="You do not have permission to delete this post",
    )

    await db.execute(delete(post_tags).where(post_tags.c.post_id == post_id))
    await db.execute(delete(Comment).where(Comment.post_id == post_id))
    await db.execute(delete(Post).where(Post.id == post_id))
    await cache.invalidate_post(post_id)
    logger.info("Post id=%s deleted by user id=%s", post_id, identity.id)
