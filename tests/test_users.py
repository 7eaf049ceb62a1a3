"""
User endpoint tests: admin-only listing, self-or-admin reads and updates,
and soft deletion.
"""
import pytest
from httpx import AsyncClient
from sqlalchemy import select

from conftest import DEFAULT_PASSWORD, async_session_test, bearer, fetch
from devnews.models import Role, User, UserStatus


async def _role_id(name: str) -> int:
    async with async_session_test() as session:
        return (await session.execute(select(Role.id).where(Role.name == name))).scalar_one()


# ---------------------------------------------------------------------------
# List users
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_list_users_requires_admin(async_client: AsyncClient, user):
    resp = await async_client.get("/api/users", headers=bearer(user.id))
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_list_users_as_admin(async_client: AsyncClient, user, other_user, admin):
    resp = await async_client.get("/api/users", headers=bearer(admin.id))
    assert resp.status_code == 200
    body = resp.json()
    assert {u["email"] for u in body["data"]} == {user.email, other_user.email, admin.email}
    assert body["pagination"]["total"] == 3
    assert all("password_hash" not in u for u in body["data"])


@pytest.mark.asyncio
async def test_list_users_paginates(async_client: AsyncClient, user, other_user, admin):
    resp = await async_client.get("/api/users?page=2&page_size=2", headers=bearer(admin.id))
    body = resp.json()
    assert len(body["data"]) == 1
    assert body["pagination"]["pages"] == 2


# ---------------------------------------------------------------------------
# Get user
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_user_can_read_self(async_client: AsyncClient, user):
    resp = await async_client.get(f"/api/users/{user.id}", headers=bearer(user.id))
    assert resp.status_code == 200
    assert resp.json()["data"]["email"] == user.email


@pytest.mark.asyncio
async def test_user_cannot_read_others(async_client: AsyncClient, user, other_user):
    resp = await async_client.get(f"/api/users/{other_user.id}", headers=bearer(user.id))
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_permission_checked_before_existence(async_client: AsyncClient, user):
    """A non-admin probing a missing id gets 403, not 404."""
    resp = await async_client.get("/api/users/9999", headers=bearer(user.id))
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_admin_can_read_anyone(async_client: AsyncClient, user, admin):
    assert (await async_client.get(f"/api/users/{user.id}", headers=bearer(admin.id))).status_code == 200
    assert (await async_client.get("/api/users/9999", headers=bearer(admin.id))).status_code == 404


# ---------------------------------------------------------------------------
# Update user
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_user_can_rename_self(async_client: AsyncClient, user):
    resp = await async_client.put(f"/api/users/{user.id}", json={"name": "alicia"}, headers=bearer(user.id))
    assert resp.status_code == 200
    assert resp.json()["data"]["name"] == "alicia"


@pytest.mark.asyncio
async def test_user_cannot_update_others(async_client: AsyncClient, user, other_user):
    resp = await async_client.put(
        f"/api/users/{other_user.id}", json={"name": "hacked"}, headers=bearer(user.id)
    )
    assert resp.status_code == 403
    assert (await fetch(User, other_user.id)).name == "bob"


@pytest.mark.asyncio
async def test_user_cannot_promote_self(async_client: AsyncClient, user):
    admin_role = await _role_id("admin")
    resp = await async_client.put(
        f"/api/users/{user.id}", json={"role_id": admin_role}, headers=bearer(user.id)
    )
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_admin_can_change_role_and_active(async_client: AsyncClient, user, admin):
    admin_role = await _role_id("admin")
    resp = await async_client.put(
        f"/api/users/{user.id}",
        json={"role_id": admin_role, "active": False},
        headers=bearer(admin.id),
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["role"]["name"] == "admin"
    assert data["active"] is False
    assert data["status"] == "disabled"


@pytest.mark.asyncio
async def test_update_with_unknown_role_is_400(async_client: AsyncClient, user, admin):
    resp = await async_client.put(
        f"/api/users/{user.id}", json={"role_id": 9999}, headers=bearer(admin.id)
    )
    assert resp.status_code == 400
    assert resp.json()["errors"][0]["field"] == "role_id"


# ---------------------------------------------------------------------------
# Delete (soft)
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_delete_user_disables_instead_of_removing(async_client: AsyncClient, user, admin):
    resp = await async_client.delete(f"/api/users/{user.id}", headers=bearer(admin.id))
    assert resp.status_code == 200

    stored = await fetch(User, user.id)
    assert stored is not None
    assert stored.status == UserStatus.DISABLED

    login = await async_client.post(
        "/api/auth/login", json={"email": user.email, "password": DEFAULT_PASSWORD}
    )
    assert login.status_code == 401

    # The old token no longer authenticates.
    assert (await async_client.get("/api/auth/me", headers=bearer(user.id))).status_code == 403


@pytest.mark.asyncio
async def test_admin_cannot_delete_self(async_client: AsyncClient, admin):
    resp = await async_client.delete(f"/api/users/{admin.id}", headers=bearer(admin.id))
    assert resp.status_code == 400
    assert (await fetch(User, admin.id)).status == UserStatus.ACTIVE


@pytest.mark.asyncio
async def test_delete_user_requires_admin(async_client: AsyncClient, user, other_user):
    resp = await async_client.delete(f"/api/users/{other_user.id}", headers=bearer(user.id))
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_delete_missing_user_is_404(async_client: AsyncClient, admin):
    resp = await async_client.delete("/api/users/9999", headers=bearer(admin.id))
    assert resp.status_code == 404
