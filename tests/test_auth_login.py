"""Login credential checks and the failed-attempt lockout."""

import pytest
from httpx import AsyncClient

from conftest import login


async def _bad_login(client: AsyncClient, email: str = "ada@example.com"):
    return await client.post("/v1/auth/login", json={"email": email, "password": "wrongpassword"})


@pytest.mark.asyncio
async def test_login_success_returns_identity(client: AsyncClient, factory):
    user = await factory.user("ada")
    resp = await client.post("/v1/auth/login", json={
        "email": "ADA@example.com", "password": "testpass123",
    })
    assert resp.status_code == 200
    data = resp.json()
    assert data["message"] == "Login successful"
    assert data["user"]["id"] == str(user.id)
    assert data["user"]["permissions"] == ["profile:read", "profile:write", "projects:read"]
    assert user.last_login_at is not None


@pytest.mark.asyncio
async def test_unknown_email_and_wrong_password_look_the_same(client: AsyncClient, factory):
    await factory.user("ada")
    unknown = await _bad_login(client, "nobody@example.com")
    wrong = await _bad_login(client)
    assert unknown.status_code == wrong.status_code == 401
    assert unknown.json()["code"] == wrong.json()["code"] == "INVALID_CREDENTIALS"
    assert unknown.json()["message"] == wrong.json()["message"]


@pytest.mark.asyncio
async def test_disabled_account(client: AsyncClient, factory, session):
    user = await factory.user("ada")
    user.is_active = False
    session.add(user)
    await session.commit()

    resp = await client.post("/v1/auth/login", json={
        "email": "ada@example.com", "password": "testpass123",
    })
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_lockout_after_max_attempts(client: AsyncClient, factory, session_store):
    await factory.user("ada")

    remaining = []
    for _ in range(5):
        resp = await _bad_login(client)
        assert resp.status_code == 401
        remaining.append(resp.json()["remainingAttempts"])
    assert remaining == [4, 3, 2, 1, 0]

    # Even the right password is refused while locked
    resp = await client.post("/v1/auth/login", json={
        "email": "ada@example.com", "password": "testpass123",
    })
    assert resp.status_code == 429
    assert resp.json()["code"] == "ACCOUNT_LOCKED"


@pytest.mark.asyncio
async def test_lock_lifts_after_window(client: AsyncClient, factory, session_store, fake_redis):
    await factory.user("ada")
    for _ in range(5):
        await _bad_login(client)

    fake_redis.advance(session_store.lock_seconds + 1)
    await login(client, "ada")


@pytest.mark.asyncio
async def test_success_clears_failed_attempts(client: AsyncClient, factory, session_store):
    await factory.user("ada")
    for _ in range(4):
        await _bad_login(client)

    await login(client, "ada")

    resp = await _bad_login(client)
    assert resp.json()["remainingAttempts"] == 4


@pytest.mark.asyncio
async def test_no_lockout_without_store(client: AsyncClient, factory):
    await factory.user("ada")
    for _ in range(8):
        resp = await _bad_login(client)
        assert resp.status_code == 401
    await login(client, "ada")


@pytest.mark.asyncio
async def test_remember_me_extends_refresh_token(client: AsyncClient, factory, services):
    await factory.user("ada")
    resp = await client.post("/v1/auth/login", json={
        "email": "ada@example.com", "password": "testpass123", "remember": True,
    })
    payload = services.tokens.verify_refresh_token(resp.json()["tokens"]["refresh_token"])
    assert payload["exp"] - payload["iat"] == 30 * 24 * 3600
