"""User administration: role guards and role changes."""

import pytest
from httpx import AsyncClient

from app.models.user import UserRole
from conftest import bearer, login


@pytest.mark.asyncio
async def test_plain_user_cannot_list(client: AsyncClient, factory):
    await factory.user("ada")
    tokens = await login(client, "ada")
    resp = await client.get("/v1/users", headers=bearer(tokens["access_token"]))
    assert resp.status_code == 403
    body = resp.json()
    assert body["error"] == "Insufficient role"
    assert body["required"] == ["SUPER_ADMIN", "ADMIN"]
    assert body["userRole"] == "USER"


@pytest.mark.asyncio
async def test_admin_lists_users(client: AsyncClient, factory):
    await factory.user("boss", role=UserRole.ADMIN)
    await factory.user("ada")
    tokens = await login(client, "boss")
    resp = await client.get("/v1/users", headers=bearer(tokens["access_token"]))
    assert resp.status_code == 200
    assert {u["username"] for u in resp.json()} == {"boss", "ada"}
    assert "password_hash" not in resp.json()[0]


@pytest.mark.asyncio
async def test_list_paging_bounds(client: AsyncClient, factory):
    await factory.user("boss", role=UserRole.ADMIN)
    await factory.user("ada")
    headers = bearer((await login(client, "boss"))["access_token"])

    for params in ({"limit": -1}, {"limit": 0}, {"limit": 201}, {"offset": -1}):
        resp = await client.get("/v1/users", params=params, headers=headers)
        assert resp.status_code == 422, params

    resp = await client.get("/v1/users", params={"limit": 1, "offset": 1}, headers=headers)
    assert resp.status_code == 200
    assert len(resp.json()) == 1


@pytest.mark.asyncio
async def test_only_super_admin_changes_roles(client: AsyncClient, factory):
    await factory.user("boss", role=UserRole.ADMIN)
    await factory.user("root", role=UserRole.SUPER_ADMIN)
    ada = await factory.user("ada")

    admin_tokens = await login(client, "boss")
    resp = await client.patch(
        f"/v1/users/{ada.id}/role",
        json={"role": "ENGINEER"},
        headers=bearer(admin_tokens["access_token"]),
    )
    assert resp.status_code == 403

    root_tokens = await login(client, "root")
    resp = await client.patch(
        f"/v1/users/{ada.id}/role",
        json={"role": "ENGINEER"},
        headers=bearer(root_tokens["access_token"]),
    )
    assert resp.status_code == 200
    assert resp.json()["role"] == "ENGINEER"

    ada_tokens = await login(client, "ada")
    resp = await client.get("/v1/auth/profile", headers=bearer(ada_tokens["access_token"]))
    assert "calculations:write" in resp.json()["user"]["permissions"]


@pytest.mark.asyncio
async def test_role_change_unknown_user(client: AsyncClient, factory):
    await factory.user("root", role=UserRole.SUPER_ADMIN)
    tokens = await login(client, "root")
    resp = await client.patch(
        "/v1/users/00000000-0000-0000-0000-000000000000/role",
        json={"role": "VIEWER"},
        headers=bearer(tokens["access_token"]),
    )
    assert resp.status_code == 404
