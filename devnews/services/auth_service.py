"""
Registration, login and the password-reset flow.
"""
import logging
import re
from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from devnews.auth import USER_ROLE
from devnews.config import settings
from devnews.errors import NotFound, Unauthenticated, Unexpected, ValidationError
from devnews.mailer import (
    PASSWORD_CHANGED_HTML,
    PASSWORD_CHANGED_SUBJECT,
    PASSWORD_RESET_HTML,
    PASSWORD_RESET_SUBJECT,
    MailDeliveryError,
    Mailer,
)
from devnews.models import Role, User, UserStatus
from devnews.schemas import LoginRequest, RegisterRequest
from devnews.security import (
    create_access_token,
    generate_reset_token,
    hash_password,
    verify_password,
)
from devnews.services.user_service import load_user, serialize_user

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def _session_payload(user: User) -> dict:
    return {"user": serialize_user(user), "token": create_access_token(user.id)}


async def register(db: AsyncSession, data: RegisterRequest) -> dict:
    """Create a user with the default role and return it with a fresh token."""
    existing = await db.execute(select(User.id).where(User.email == data.email))
    if existing.scalar_one_or_none() is not None:
        raise ValidationError(
            "Email is already registered",
            errors=[{"field": "email", "message": "Email is already registered"}],
        )

    role = (await db.execute(select(Role).where(Role.name == USER_ROLE))).scalar_one_or_none()
    if role is None:
        logger.error("Default role %r is missing; run the seed script", USER_ROLE)
        raise Unexpected("Default user role is not configured")

    user = User(
        email=data.email,
        name=data.name,
        password_hash=hash_password(data.password),
        status=UserStatus.ACTIVE,
        role_id=role.id,
    )
    db.add(user)
    await db.flush()

    user = await load_user(db, user.id, refresh=True)
    logger.info("Registered user id=%s", user.id)
    return _session_payload(user)


async def login(db: AsyncSession, data: LoginRequest) -> dict:
    """
    Authenticate by email or by user name.

    The identifier is treated as an email when it looks like one, otherwise
    it is matched against ``User.name``.
    """
    q = select(User).options(joinedload(User.role))
    if _EMAIL_RE.match(data.email):
        q = q.where(User.email == data.email)
    else:
        q = q.where(User.name == data.email).order_by(User.id).limit(1)
    user = (await db.execute(q)).scalars().first()

    if user is None or not user.active:
        logger.info("Login rejected for %r: unknown or disabled", data.email)
        raise Unauthenticated("User not found or disabled")

    if not verify_password(data.password, user.password_hash):
        logger.info("Login rejected for user id=%s: bad password", user.id)
        raise Unauthenticated("Invalid email/name or password")

    return _session_payload(user)


async def request_password_reset(
    db: AsyncSession, mailer: Mailer, email: str, base_url: str
) -> None:
    """Store a fresh reset token on the user and email them a reset link."""
    user = (await db.execute(select(User).where(User.email == email))).scalar_one_or_none()
    if user is None:
        raise NotFound("No user is registered with this email")

    user.reset_password_token = generate_reset_token()
    user.reset_password_expires = datetime.now(timezone.utc) + timedelta(
        minutes=settings.RESET_TOKEN_TTL_MINUTES
    )
    await db.flush()

    reset_url = f"{base_url.rstrip('/')}/reset-password/{user.reset_password_token}"
    await mailer.send(
        user.email,
        PASSWORD_RESET_SUBJECT,
        PASSWORD_RESET_HTML.format(url=reset_url, ttl=settings.RESET_TOKEN_TTL_MINUTES),
    )
    logger.info("Password reset issued for user id=%s", user.id)


async def reset_password(db: AsyncSession, mailer: Mailer, token: str, password: str) -> None:
    """Consume *token* and set *password*; the token cannot be used again."""
    now = datetime.now(timezone.utc)
    q = select(User).where(
        User.reset_password_token == token,
        User.reset_password_expires > now,
    )
    user = (await db.execute(q)).scalar_one_or_none()
    if user is None:
        raise ValidationError("Password reset token is invalid or expired")

    user.password_hash = hash_password(password)
    user.reset_password_token = None
    user.reset_password_expires = None
    await db.flush()

    # The notice is informational; the reset stands even if it cannot be sent.
    try:
        await mailer.send(
            user.email, PASSWORD_CHANGED_SUBJECT, PASSWORD_CHANGED_HTML.format(email=user.email)
        )
    except MailDeliveryError as exc:
        logger.warning("Password-changed notice for user id=%s not sent: %s", user.id, exc)
    logger.info("Password reset completed for user id=%s", user.id)
