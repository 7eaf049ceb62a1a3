"""
User service: profile reads, profile/role updates and soft deletion.

Users are never removed from the database.  "Deleting" one flips its
status to ``disabled``, which the authentication stage treats as absent.
"""
import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from devnews.auth import Identity, ensure_can_mutate
from devnews.errors import Forbidden, NotFound, ValidationError
from devnews.models import Role, User, UserStatus
from devnews.schemas import Pagination, UserUpdate

logger = logging.getLogger(__name__)


def _iso(value) -> str | None:
    return value.isoformat() if value else None


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def serialize_role(role: Role | None) -> dict | None:
    if role is None:
        return None
    return {"id": role.id, "name": role.name}


def serialize_user(user: User) -> dict:
    """Public view of a user; never includes the password hash or reset token."""
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "role": serialize_role(user.role),
        "active": user.active,
        "status": user.status.value,
        "created_at": _iso(user.created_at),
        "updated_at": _iso(user.updated_at),
    }


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

async def load_user(db: AsyncSession, user_id: int, refresh: bool = False) -> User | None:
    """Return the user with its role loaded, or None."""
    q = select(User).where(User.id == user_id).options(joinedload(User.role))
    if refresh:
        q = q.execution_options(populate_existing=True)
    result = await db.execute(q)
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def get_users(db: AsyncSession, page: int = 1, page_size: int = 10) -> tuple[list[dict], Pagination]:
    """Return one page of users (newest first) including disabled ones."""
    total: int = (await db.execute(select(func.count()).select_from(User))).scalar_one()

    q = (
        select(User)
        .options(joinedload(User.role))
        .order_by(User.created_at.desc(), User.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    users = (await db.execute(q)).scalars().all()

    pagination = Pagination.build(total, page, page_size)
    return [serialize_user(u) for u in users], pagination


async def get_user(db: AsyncSession, identity: Identity, user_id: int) -> dict:
    """Self or admin only; the permission check runs before the existence check."""
    ensure_can_mutate(identity, user_id, admin_override=True, message="You may not view this user")

    user = await load_user(db, user_id)
    if user is None:
        raise NotFound("User not found")
    return serialize_user(user)


async def update_user(db: AsyncSession, identity: Identity, user_id: int, data: UserUpdate) -> dict:
    """
    Update a profile.

    Anyone may rename themselves; only admins may change ``active`` or
    ``role_id`` (their own or anyone else's).
    """
    ensure_can_mutate(identity, user_id, admin_override=True, message="You may not update this user")

    changes = data.model_dump(exclude_unset=True)
    restricted = {"active", "role_id"} & changes.keys()
    if restricted and not identity.is_admin:
        raise Forbidden("Only administrators may change a user's role or active state")

    user = await load_user(db, user_id)
    if user is None:
        raise NotFound("User not found")

    if changes.get("name") is not None:
        user.name = changes["name"]

    if changes.get("active") is not None:
        user.status = UserStatus.ACTIVE if changes["active"] else UserStatus.DISABLED

    if changes.get("role_id") is not None:
        role = await db.get(Role, changes["role_id"])
        if role is None:
            raise ValidationError(
                "Role does not exist",
                errors=[{"field": "role_id", "message": "Role does not exist"}],
            )
        user.role_id = role.id

    await db.flush()
    user = await load_user(db, user_id, refresh=True)
    return serialize_user(user)


async def disable_user(db: AsyncSession, identity: Identity, user_id: int) -> None:
    """Soft-delete *user_id*; an admin cannot disable their own account."""
    user = await db.get(User, user_id)
    if user is None:
        raise NotFound("User not found")

    if user.id == identity.id:
        raise ValidationError("You cannot disable the account you are logged in with")

    user.status = UserStatus.DISABLED
    await db.flush()
    logger.info("User id=%s disabled by admin id=%s", user_id, identity.id)
