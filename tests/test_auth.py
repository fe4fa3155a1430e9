"""Sign-up, sign-in and session cookie behaviour of the auth endpoints."""
import pytest
from httpx import AsyncClient

from app.auth import DEFAULT_USER
from app.config import settings
from app.services import user_service
from tests.conftest import async_session_test


REGISTRATION = {
    "first_name": "Linus",
    "last_name": "Reader",
    "email": "linus@example.com",
    "phone": "555-0142",
    "password": "hunter22",
}


@pytest.mark.asyncio
async def test_register_assigns_default_role(async_client: AsyncClient):
    resp = await async_client.post("/api/v1/auth/register", json=REGISTRATION)
    assert resp.status_code == 201
    data = resp.json()
    assert data["role"]["name"] == DEFAULT_USER
    assert "password" not in data


@pytest.mark.asyncio
async def test_register_duplicate_email(async_client: AsyncClient):
    await async_client.post("/api/v1/auth/register", json=REGISTRATION)
    resp = await async_client.post("/api/v1/auth/register", json=REGISTRATION)
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_register_short_password_rejected(async_client: AsyncClient):
    resp = await async_client.post(
        "/api/v1/auth/register", json={**REGISTRATION, "password": "abc"}
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_login_sets_session_cookie(async_client: AsyncClient):
    await async_client.post("/api/v1/auth/register", json=REGISTRATION)
    resp = await async_client.post(
        "/api/v1/auth/login",
        json={"email": REGISTRATION["email"], "password": REGISTRATION["password"]},
    )
    assert resp.status_code == 200
    assert settings.SESSION_COOKIE in resp.cookies

    resp = await async_client.get("/api/v1/auth/me")
    assert resp.status_code == 200
    assert resp.json()["email"] == REGISTRATION["email"]


@pytest.mark.asyncio
async def test_login_wrong_password(async_client: AsyncClient):
    await async_client.post("/api/v1/auth/register", json=REGISTRATION)
    resp = await async_client.post(
        "/api/v1/auth/login",
        json={"email": REGISTRATION["email"], "password": "wrong-one"},
    )
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_me_requires_session(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/auth/me")
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_logout_clears_session(author_client: AsyncClient):
    resp = await author_client.post("/api/v1/auth/logout")
    assert resp.status_code == 204

    resp = await author_client.get("/api/v1/auth/me")
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_session_of_deleted_user_is_dropped(author_client: AsyncClient, author: dict):
    # The cookie still names the author after the account is removed.
    async with async_session_test() as session:
        await user_service.delete_user(session, author["id"])
        await session.commit()

    resp = await author_client.get("/api/v1/auth/me")
    assert resp.status_code == 401
