"""
Authentication flow tests: registration, login by email or name, and the
password-reset round trip including single use and expiry.
"""
from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from conftest import DEFAULT_PASSWORD, create_user, fetch
from devnews.models import User, UserStatus
from devnews.security import decode_access_token


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Register
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_register_returns_user_and_token(async_client: AsyncClient):
    resp = await async_client.post("/api/auth/register", json={
        "email": "new@example.com",
        "password": "hunter22",
        "name": "newbie",
    })
    assert resp.status_code == 201
    body = resp.json()
    assert body["status"] == "success"
    user = body["data"]["user"]
    assert user["email"] == "new@example.com"
    assert user["name"] == "newbie"
    assert user["role"]["name"] == "user"
    assert user["active"] is True

    # The issued token resolves to the user just created.
    assert decode_access_token(body["data"]["token"]) == user["id"]
    me = await async_client.get(
        "/api/auth/me", headers={"Authorization": f"Bearer {body['data']['token']}"}
    )
    assert me.json()["data"]["id"] == user["id"]


@pytest.mark.asyncio
async def test_register_stores_a_hash_not_the_password(async_client: AsyncClient):
    resp = await async_client.post("/api/auth/register", json={
        "email": "hash@example.com", "password": "hunter22",
    })
    stored = await fetch(User, resp.json()["data"]["user"]["id"])
    assert stored.password_hash != "hunter22"
    assert stored.password_hash.startswith("$2")


@pytest.mark.asyncio
async def test_register_duplicate_email_is_400(async_client: AsyncClient, user):
    resp = await async_client.post("/api/auth/register", json={
        "email": user.email, "password": "hunter22",
    })
    assert resp.status_code == 400
    assert resp.json()["status"] == "error"


@pytest.mark.asyncio
async def test_register_reports_every_invalid_field(async_client: AsyncClient):
    """All violated fields come back together, not only the first."""
    resp = await async_client.post("/api/auth/register", json={
        "email": "not-an-email", "password": "123",
    })
    assert resp.status_code == 400
    fields = {err["field"] for err in resp.json()["errors"]}
    assert fields == {"email", "password"}


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_login_with_email(async_client: AsyncClient, user):
    resp = await async_client.post("/api/auth/login", json={
        "email": user.email, "password": DEFAULT_PASSWORD,
    })
    assert resp.status_code == 200
    assert decode_access_token(resp.json()["data"]["token"]) == user.id


@pytest.mark.asyncio
async def test_login_with_name(async_client: AsyncClient, user):
    resp = await async_client.post("/api/auth/login", json={
        "email": "alice", "password": DEFAULT_PASSWORD,
    })
    assert resp.status_code == 200
    assert resp.json()["data"]["user"]["id"] == user.id


@pytest.mark.asyncio
async def test_login_wrong_password_is_401(async_client: AsyncClient, user):
    resp = await async_client.post("/api/auth/login", json={
        "email": user.email, "password": "wrong-password",
    })
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_login_unknown_user_is_401(async_client: AsyncClient):
    resp = await async_client.post("/api/auth/login", json={
        "email": "nobody@example.com", "password": DEFAULT_PASSWORD,
    })
    assert resp.status_code == 401
    assert resp.json()["message"].lower() == "user not found or disabled"


@pytest.mark.asyncio
async def test_login_disabled_user_is_401(async_client: AsyncClient):
    await create_user("off@example.com", "off", status=UserStatus.DISABLED)
    resp = await async_client.post("/api/auth/login", json={
        "email": "off@example.com", "password": DEFAULT_PASSWORD,
    })
    assert resp.status_code == 401
    assert resp.json()["message"].lower() == "user not found or disabled"


@pytest.mark.asyncio
async def test_logout(async_client: AsyncClient):
    resp = await async_client.post("/api/auth/logout")
    assert resp.status_code == 200
    assert resp.json()["status"] == "success"


# ---------------------------------------------------------------------------
# Password reset
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_forgot_password_unknown_email_is_404(async_client: AsyncClient, mailer):
    resp = await async_client.post("/api/auth/forgot-password", json={"email": "ghost@example.com"})
    assert resp.status_code == 404
    assert mailer.sent == []


@pytest.mark.asyncio
async def test_forgot_password_issues_one_hour_token(async_client: AsyncClient, mailer, user):
    before = datetime.now(timezone.utc)
    resp = await async_client.post("/api/auth/forgot-password", json={"email": user.email})
    assert resp.status_code == 200

    stored = await fetch(User, user.id)
    assert stored.reset_password_token
    expires = _aware(stored.reset_password_expires)
    assert before + timedelta(minutes=59) < expires <= before + timedelta(minutes=61)

    assert len(mailer.sent) == 1
    assert mailer.sent[0]["to"] == user.email
    assert f"/reset-password/{stored.reset_password_token}" in mailer.sent[0]["html"]


@pytest.mark.asyncio
async def test_reset_password_is_single_use(async_client: AsyncClient, mailer, user):
    await async_client.post("/api/auth/forgot-password", json={"email": user.email})
    token = (await fetch(User, user.id)).reset_password_token

    resp = await async_client.post(f"/api/auth/reset-password/{token}", json={"password": "brandnew1"})
    assert resp.status_code == 200

    stored = await fetch(User, user.id)
    assert stored.reset_password_token is None
    assert stored.reset_password_expires is None

    # New password works, old one does not.
    ok = await async_client.post("/api/auth/login", json={"email": user.email, "password": "brandnew1"})
    assert ok.status_code == 200
    old = await async_client.post("/api/auth/login", json={"email": user.email, "password": DEFAULT_PASSWORD})
    assert old.status_code == 401

    # Reusing the token fails.
    again = await async_client.post(f"/api/auth/reset-password/{token}", json={"password": "another1"})
    assert again.status_code == 400
    assert "invalid or expired" in again.json()["message"].lower()


@pytest.mark.asyncio
async def test_reset_password_with_expired_token_fails(async_client: AsyncClient, mailer, user, db_session):
    await async_client.post("/api/auth/forgot-password", json={"email": user.email})

    stored = (await db_session.execute(select(User).where(User.id == user.id))).scalar_one()
    token = stored.reset_password_token
    stored.reset_password_expires = datetime.now(timezone.utc) - timedelta(minutes=1)
    await db_session.commit()

    resp = await async_client.post(f"/api/auth/reset-password/{token}", json={"password": "brandnew1"})
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_reset_password_validates_length(async_client: AsyncClient, mailer):
    resp = await async_client.post("/api/auth/reset-password/whatever", json={"password": "123"})
    assert resp.status_code == 400
    assert resp.json()["errors"][0]["field"] == "password"


@pytest.mark.asyncio
async def test_mail_failure_is_500_and_keeps_old_state(async_client: AsyncClient, mailer, user):
    mailer.fail = True
    resp = await async_client.post("/api/auth/forgot-password", json={"email": user.email})
    assert resp.status_code == 500
    body = resp.json()
    assert body["status"] == "error"
    assert "SMTP" not in body["message"]

    # The request's transaction was rolled back, so no token was stored.
    assert (await fetch(User, user.id)).reset_password_token is None


@pytest.mark.asyncio
async def test_register_multibyte_password_within_72_bytes(async_client: AsyncClient):
    """Thirty-six two-byte characters fit bcrypt's limit and register normally."""
    password = "é" * 36
    resp = await async_client.post("/api/auth/register", json={
        "email": "accent@example.com", "password": password,
    })
    assert resp.status_code == 201

    login = await async_client.post("/api/auth/login", json={
        "email": "accent@example.com", "password": password,
    })
    assert login.status_code == 200


@pytest.mark.asyncio
async def test_register_password_over_72_bytes_is_400(async_client: AsyncClient):
    resp = await async_client.post("/api/auth/register", json={
        "email": "accent@example.com", "password": "é" * 40,
    })
    assert resp.status_code == 400
    assert resp.json()["errors"][0]["field"] == "password"


@pytest.mark.asyncio
async def test_reset_password_over_72_bytes_is_400(async_client: AsyncClient, mailer):
    resp = await async_client.post("/api/auth/reset-password/whatever", json={"password": "é" * 40})
    assert resp.status_code == 400
    assert resp.json()["errors"][0]["field"] == "password"


@pytest.mark.asyncio
async def test_reset_succeeds_when_changed_notice_cannot_be_sent(async_client: AsyncClient, mailer, user):
    await async_client.post("/api/auth/forgot-password", json={"email": user.email})
    token = (await fetch(User, user.id)).reset_password_token

    mailer.fail = True
    resp = await async_client.post(f"/api/auth/reset-password/{token}", json={"password": "brandnew1"})
    assert resp.status_code == 200
    assert (await fetch(User, user.id)).reset_password_token is None

    login = await async_client.post("/api/auth/login", json={"email": user.email, "password": "brandnew1"})
    assert login.status_code == 200
