"""
Admin dashboard statistics.

The six reads are independent and run concurrently, each on its own
session, so the result is a best-effort snapshot: counts and "recent" lists
may come from slightly different moments.
"""
import asyncio

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import joinedload

from devnews.cache import cache
from devnews.models import Category, Comment, Post, User

RECENT_LIMIT = 5


def _iso(value) -> str | None:
    return value.isoformat() if value else None


async def _count(session_factory: async_sessionmaker[AsyncSession], model) -> int:
    async with session_factory() as session:
        return (await session.execute(select(func.count()).select_from(model))).scalar_one()


async def _recent_users(session_factory: async_sessionmaker[AsyncSession]) -> list[dict]:
    async with session_factory() as session:
        q = select(User).order_by(User.created_at.desc(), User.id.desc()).limit(RECENT_LIMIT)
        users = (await session.execute(q)).scalars().all()
        return [
            {"id": u.id, "email": u.email, "name": u.name, "created_at": _iso(u.created_at)}
            for u in users
        ]


async def _recent_posts(session_factory: async_sessionmaker[AsyncSession]) -> list[dict]:
    async with session_factory() as session:
        q = (
            select(Post)
            .options(joinedload(Post.author))
            .order_by(Post.created_at.desc(), Post.id.desc())
            .limit(RECENT_LIMIT)
        )
        posts = (await session.execute(q)).scalars().all()
        return [
            {
                "id": p.id,
                "title": p.title,
                "published": p.published,
                "created_at": _iso(p.created_at),
                "author": {"name": p.author.name} if p.author else None,
            }
            for p in posts
        ]


async def get_stats(session_factory: async_sessionmaker[AsyncSession]) -> dict:
    users, posts, comments, categories, recent_users, recent_posts = await asyncio.gather(
        _count(session_factory, User),
        _count(session_factory, Post),
        _count(session_factory, Comment),
        _count(session_factory, Category),
        _recent_users(session_factory),
        _recent_posts(session_factory),
    )
    return {
        "counts": {
            "users": users,
            "posts": posts,
            "comments": comments,
            "categories": categories,
        },
        "recent_users": recent_users,
        "recent_posts": recent_posts,
        "cache_info": cache.stats,
    }
