"""
Credential hashing and session tokens.

Both halves are leaves: they depend on nothing but ``settings``.
"""
import logging
import secrets
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt

from devnews.config import settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------

def hash_password(password: str, rounds: int | None = None) -> str:
    """Return a salted bcrypt digest of *password*; a new salt on every call."""
    salt = bcrypt.gensalt(rounds=rounds or settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Return True iff *password* matches *password_hash*; never raises."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except (ValueError, TypeError, AttributeError):
        return False


def generate_reset_token() -> str:
    return secrets.token_hex(32)


# ---------------------------------------------------------------------------
# Session tokens
# ---------------------------------------------------------------------------

def create_access_token(
    user_id: int,
    expires_delta: timedelta | None = None,
    secret: str | None = None,
) -> str:
    """Sign a token carrying *user_id* that expires after the configured lifetime."""
    now = datetime.now(timezone.utc)
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.JWT_EXPIRES_MINUTES)
    payload = {
        "sub": str(user_id),
        "iat": now,
        "exp": now + expires_delta,
    }
    return jwt.encode(payload, secret or settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str, secret: str | None = None) -> int | None:
    """
    Return the user id embedded in *token*, or None.

    Bad signatures, malformed tokens and expired tokens all yield None;
    callers must treat them the same way (the session is over).
    """
    try:
        payload = jwt.decode(
            token,
            secret or settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        logger.debug("Rejected expired token")
        return None
    except jwt.InvalidTokenError as exc:
        logger.debug("Rejected invalid token: %s", exc)
        return None

    try:
        return int(payload["sub"])
    except (TypeError, ValueError):
        return None
