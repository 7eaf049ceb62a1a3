"""Seed roles, an admin account and (optionally) demo content."""
import argparse
import asyncio
import random
import time

from sqlalchemy import select

from devnews.auth import ADMIN_ROLE, USER_ROLE
from devnews.database import Base, async_session, engine
from devnews.models import Category, Comment, Post, Role, Tag, User, UserStatus
from devnews.security import hash_password

TAGS = ["python", "fastapi", "postgresql", "redis", "docker", "security", "testing", "devops"]
CATEGORIES = {
    "Backend": "Servers, APIs and databases",
    "Frontend": "Browsers and UI",
    "Ops": "Deploying and running things",
}


async def _get_or_create_role(session, name: str) -> Role:
    role = (await session.execute(select(Role).where(Role.name == name))).scalar_one_or_none()
    if role is None:
        role = Role(name=name)
        session.add(role)
        await session.flush()
    return role


async def seed(admin_email: str, admin_password: str, demo: bool = False, reset: bool = False):
    start = time.perf_counter()

    async with engine.begin() as conn:
        if reset:
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    async with async_session() as session:
        user_role = await _get_or_create_role(session, USER_ROLE)
        admin_role = await _get_or_create_role(session, ADMIN_ROLE)
        print(f"  Roles: {user_role.name}, {admin_role.name}")

        admin = (
            await session.execute(select(User).where(User.email == admin_email))
        ).scalar_one_or_none()
        if admin is None:
            admin = User(
                email=admin_email,
                name="admin",
                password_hash=hash_password(admin_password),
                status=UserStatus.ACTIVE,
                role_id=admin_role.id,
            )
            session.add(admin)
            await session.flush()
            print(f"  Created admin {admin_email}")
        else:
            print(f"  Admin {admin_email} already exists")

        if demo:
            tags = []
            for name in TAGS:
                tag = Tag(name=name)
                session.add(tag)
                tags.append(tag)

            categories = []
            for name, description in CATEGORIES.items():
                category = Category(name=name, description=description)
                session.add(category)
                categories.append(category)

            writers = []
            for i in range(5):
                writer = User(
                    email=f"writer{i}@example.com",
                    name=f"writer{i}",
                    password_hash=hash_password("password123"),
                    role_id=user_role.id,
                )
                session.add(writer)
                writers.append(writer)
            await session.flush()

            for i in range(20):
                post = Post(
                    title=f"Post {i}: notes on {random.choice(TAGS)}",
                    content=f"Body of post {i}. " * 20,
                    published=random.random() > 0.2,
                    author_id=random.choice(writers).id,
                    category_id=random.choice(categories).id,
                )
                post.tags.extend(random.sample(tags, k=random.randint(1, 3)))
                session.add(post)
                await session.flush()

                top = Comment(content="Nice write-up.", author_id=random.choice(writers).id, post_id=post.id)
                session.add(top)
                await session.flush()
                session.add(
                    Comment(content="Agreed.", author_id=admin.id, post_id=post.id, parent_id=top.id)
                )
            print(f"  Demo data: {len(writers)} writers, 20 posts, {len(tags)} tags")

        await session.commit()

    print(f"\nSeeding complete in {time.perf_counter() - start:.1f}s")


def main():
    parser = argparse.ArgumentParser(description="Seed the DevNews database")
    parser.add_argument("--admin-email", default="admin@example.com")
    parser.add_argument("--admin-password", default="admin123")
    parser.add_argument("--demo", action="store_true", help="Add demo users, posts and comments")
    parser.add_argument("--reset", action="store_true", help="Drop all tables first")
    args = parser.parse_args()
    asyncio.run(seed(args.admin_email, args.admin_password, demo=args.demo, reset=args.reset))


if __name__ == "__main__":
    main()
