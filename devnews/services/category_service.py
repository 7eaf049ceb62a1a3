"""
Category service.  Reads are public; every write is admin-only, which the
router enforces with ``require_admin`` before any of these run.
"""
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from devnews.errors import NotFound, ValidationError
from devnews.models import Category, Post
from devnews.schemas import CategoryCreate, CategoryUpdate


def _iso(value) -> str | None:
    return value.isoformat() if value else None


def _serialize_category(category: Category) -> dict:
    return {
        "id": category.id,
        "name": category.name,
        "description": category.description,
        "created_at": _iso(category.created_at),
        "updated_at": _iso(category.updated_at),
    }


async def _ensure_unique_name(db: AsyncSession, name: str, exclude_id: int | None = None) -> None:
    q = select(Category.id).where(Category.name == name)
    if exclude_id is not None:
        q = q.where(Category.id != exclude_id)
    if (await db.execute(q)).first() is not None:
        raise ValidationError(
            "Category name already exists",
            errors=[{"field": "name", "message": "Category name already exists"}],
        )


async def list_categories(db: AsyncSession) -> list[dict]:
    """All categories, each with a short summary of its posts."""
    q = select(Category).options(selectinload(Category.posts)).order_by(Category.id)
    categories = (await db.execute(q)).scalars().all()
    items = []
    for category in categories:
        data = _serialize_category(category)
        data["posts"] = [
            {"id": p.id, "title": p.title, "published": p.published}
            for p in sorted(category.posts, key=lambda p: p.id)
        ]
        items.append(data)
    return items


async def get_category(db: AsyncSession, category_id: int) -> dict:
    q = (
        select(Category)
        .where(Category.id == category_id)
        .options(selectinload(Category.posts).joinedload(Post.author))
    )
    category = (await db.execute(q)).unique().scalar_one_or_none()
    if category is None:
        raise NotFound("Category not found")

    data = _serialize_category(category)
    data["posts"] = [
        {
            "id": p.id,
            "title": p.title,
            "content": p.content,
            "published": p.published,
            "author": {"id": p.author.id, "name": p.author.name} if p.author else None,
        }
        for p in sorted(category.posts, key=lambda p: p.id)
    ]
    return data


async def create_category(db: AsyncSession, data: CategoryCreate) -> dict:
    await _ensure_unique_name(db, data.name)
    category = Category(name=data.name, description=data.description)
    db.add(category)
    await db.flush()
    return _serialize_category(category)


async def update_category(db: AsyncSession, category_id: int, data: CategoryUpdate) -> dict:
    category = await db.get(Category, category_id)
    if category is None:
        raise NotFound("Category not found")
    await _ensure_unique_name(db, data.name, exclude_id=category_id)

    category.name = data.name
    category.description = data.description
    await db.flush()
    return _serialize_category(category)


async def delete_category(db: AsyncSession, category_id: int) -> None:
    """Delete a category; its posts stay and lose their category."""
    category = await db.get(Category, category_id)
    if category is None:
        raise NotFound("Category not found")

    await db.execute(
        update(Post).where(Post.category_id == category_id).values(category_id=None)
    )
    await db.execute(delete(Category).where(Category.id == category_id))
