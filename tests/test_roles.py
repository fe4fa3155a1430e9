"""Role endpoint tests: default tiers, administrator-only writes and delete restriction."""
import pytest
from httpx import AsyncClient

from app.auth import ADMINISTRATOR, DEFAULT_USER, MODERATOR


@pytest.mark.asyncio
async def test_default_roles_exist(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/roles")
    assert resp.status_code == 200
    names = {r["name"] for r in resp.json()}
    assert names == {ADMINISTRATOR, MODERATOR, DEFAULT_USER}


@pytest.mark.asyncio
async def test_get_role_lists_users(admin_client: AsyncClient, admin: dict):
    resp = await admin_client.get(f"/api/v1/roles/{admin['role_id']}")
    assert resp.status_code == 200
    data = resp.json()
    assert data["name"] == ADMINISTRATOR
    assert [u["email"] for u in data["users"]] == [admin["email"]]


@pytest.mark.asyncio
async def test_non_admin_cannot_create_role(author_client: AsyncClient):
    resp = await author_client.post(
        "/api/v1/roles", json={"name": "Editor", "description": "Edits things"}
    )
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_admin_role_lifecycle(admin_client: AsyncClient):
    resp = await admin_client.post(
        "/api/v1/roles", json={"name": "Editor", "description": "Edits things"}
    )
    assert resp.status_code == 201
    role_id = resp.json()["id"]

    resp = await admin_client.put(
        f"/api/v1/roles/{role_id}", json={"name": "Reviewer", "description": "Reviews"}
    )
    assert resp.status_code == 200
    assert resp.json()["name"] == "Reviewer"

    resp = await admin_client.delete(f"/api/v1/roles/{role_id}")
    assert resp.status_code == 204
    resp = await admin_client.get(f"/api/v1/roles/{role_id}")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_duplicate_role_name_conflict(admin_client: AsyncClient):
    resp = await admin_client.post(
        "/api/v1/roles", json={"name": MODERATOR, "description": "Again"}
    )
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_delete_role_in_use_conflict(admin_client: AsyncClient, admin: dict):
    resp = await admin_client.delete(f"/api/v1/roles/{admin['role_id']}")
    assert resp.status_code == 409

    resp = await admin_client.get(f"/api/v1/roles/{admin['role_id']}")
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_delete_missing_role(admin_client: AsyncClient):
    resp = await admin_client.delete("/api/v1/roles/99999")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_role_holders_hidden_from_non_admins(author_client: AsyncClient, author: dict):
    resp = await author_client.get(f"/api/v1/roles/{author['role_id']}")
    assert resp.status_code == 403

    await author_client.post("/api/v1/auth/logout")
    resp = await author_client.get(f"/api/v1/roles/{author['role_id']}")
    assert resp.status_code == 401
