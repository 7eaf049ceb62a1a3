"""
Access control: bearer authentication, role gates and the ownership policy.

Stage 1 (``get_current_user``) turns the ``Authorization`` header into an
``Identity``.  Stage 2 (``require_roles``) is declared per route.  Ownership
is not a route concern: services look the resource up and call
``ensure_can_mutate`` with its owner id.
"""
import logging
from dataclasses import dataclass

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from devnews.database import get_db
from devnews.errors import Forbidden, Unauthenticated
from devnews.models import User
from devnews.security import decode_access_token

logger = logging.getLogger(__name__)

ADMIN_ROLE = "admin"
USER_ROLE = "user"

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Identity:
    """The authenticated requester attached to a request."""

    id: int
    email: str
    name: str | None
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE

    @classmethod
    def from_user(cls, user: User) -> "Identity":
        return cls(id=user.id, email=user.email, name=user.name, role=user.role.name)


# ---------------------------------------------------------------------------
# Stage 1: authenticate
# ---------------------------------------------------------------------------

async def _identity_from_credentials(
    credentials: HTTPAuthorizationCredentials | None, db: AsyncSession
) -> Identity:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise Unauthenticated()

    user_id = decode_access_token(credentials.credentials)
    if user_id is None:
        raise Unauthenticated()

    result = await db.execute(
        select(User).where(User.id == user_id).options(joinedload(User.role))
    )
    user = result.scalar_one_or_none()
    if user is None or not user.active:
        logger.info("Rejected token for missing or disabled user id=%s", user_id)
        raise Forbidden("User not found or disabled")

    return Identity.from_user(user)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> Identity:
    return await _identity_from_credentials(credentials, db)


async def get_optional_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> Identity | None:
    """
    Like ``get_current_user`` for public routes: a missing, invalid or
    expired token, or one for a disabled user, yields None.
    """
    if credentials is None:
        return None
    try:
        return await _identity_from_credentials(credentials, db)
    except (Unauthenticated, Forbidden):
        logger.debug("Ignoring unusable credentials on a public route")
        return None


# ---------------------------------------------------------------------------
# Stage 2: authorize
# ---------------------------------------------------------------------------

def require_roles(*roles: str):
    """Dependency factory: the requester's role name must be one of *roles*."""

    async def _check(identity: Identity = Depends(get_current_user)) -> Identity:
        if identity.role not in roles:
            raise Forbidden("Your role is not allowed to perform this action")
        return identity

    return _check


require_admin = require_roles(ADMIN_ROLE)


# ---------------------------------------------------------------------------
# Ownership policy
# ---------------------------------------------------------------------------

def can_mutate(identity: Identity, owner_id: int, admin_override: bool) -> bool:
    """Owners may always mutate; admins only where the entity allows an override."""
    if identity.id == owner_id:
        return True
    return admin_override and identity.is_admin


def ensure_can_mutate(
    identity: Identity,
    owner_id: int,
    admin_override: bool,
    message: str | None = None,
) -> None:
    if not can_mutate(identity, owner_id, admin_override):
        raise Forbidden(message)
