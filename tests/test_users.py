"""
User endpoint tests: administrator management, self-service updates,
role changes and the cascade delete of a user's content.
"""
import pytest
from httpx import AsyncClient

from app.auth import DEFAULT_USER, MODERATOR
from tests.conftest import create_account, create_article, login, seed_tags


def _payload(email: str, role_id: int | None = None, **overrides) -> dict:
    body = {
        "first_name": "Grace",
        "last_name": "Hopper",
        "email": email,
        "phone": "555-0199",
        "password": "cobol-rules",
    }
    if role_id is not None:
        body["role_id"] = role_id
    body.update(overrides)
    return body


async def _role_id(client: AsyncClient, name: str) -> int:
    roles = (await client.get("/api/v1/roles")).json()
    return next(r["id"] for r in roles if r["name"] == name)


@pytest.mark.asyncio
async def test_list_users_admin_only(author_client: AsyncClient):
    resp = await author_client.get("/api/v1/users")
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_list_users_never_exposes_password(admin_client: AsyncClient):
    resp = await admin_client.get("/api/v1/users")
    assert resp.status_code == 200
    for user in resp.json():
        assert "password" not in user
        assert "password_hash" not in user
        assert user["role"]["name"]


@pytest.mark.asyncio
async def test_admin_creates_user_with_role(admin_client: AsyncClient):
    role_id = await _role_id(admin_client, MODERATOR)
    resp = await admin_client.post("/api/v1/users", json=_payload("grace@example.com", role_id))
    assert resp.status_code == 201
    data = resp.json()
    assert data["role"]["name"] == MODERATOR
    assert data["registration_date"] is not None

    await login(admin_client, "grace@example.com", "cobol-rules")


@pytest.mark.asyncio
async def test_create_user_duplicate_email(admin_client: AsyncClient, admin: dict):
    role_id = await _role_id(admin_client, DEFAULT_USER)
    resp = await admin_client.post("/api/v1/users", json=_payload(admin["email"], role_id))
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_create_user_unknown_role(admin_client: AsyncClient):
    resp = await admin_client.post("/api/v1/users", json=_payload("nobody@example.com", 99999))
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_create_user_invalid_email(admin_client: AsyncClient):
    role_id = await _role_id(admin_client, DEFAULT_USER)
    resp = await admin_client.post("/api/v1/users", json=_payload("not-an-email", role_id))
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_user_reads_own_profile_only(author_client: AsyncClient, author: dict):
    resp = await author_client.get(f"/api/v1/users/{author['id']}")
    assert resp.status_code == 200
    assert resp.json()["email"] == author["email"]

    other = await create_account(DEFAULT_USER, "other@example.com")
    resp = await author_client.get(f"/api/v1/users/{other['id']}")
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_self_update_cannot_change_role(author_client: AsyncClient, author: dict):
    moderator_role = await _role_id(author_client, MODERATOR)
    resp = await author_client.put(
        f"/api/v1/users/{author['id']}",
        json=_payload(author["email"], moderator_role, first_name="Renamed", password=None),
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["first_name"] == "Renamed"
    assert data["role"]["name"] == DEFAULT_USER

    # Password unchanged when omitted.
    await login(author_client, author["email"])


@pytest.mark.asyncio
async def test_admin_changes_role(admin_client: AsyncClient, author: dict):
    moderator_role = await _role_id(admin_client, MODERATOR)
    resp = await admin_client.put(
        f"/api/v1/users/{author['id']}",
        json=_payload(author["email"], moderator_role, password=None),
    )
    assert resp.status_code == 200
    assert resp.json()["role"]["name"] == MODERATOR


@pytest.mark.asyncio
async def test_admin_update_unknown_role(admin_client: AsyncClient, author: dict):
    resp = await admin_client.put(
        f"/api/v1/users/{author['id']}",
        json=_payload(author["email"], 99999, password=None),
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_user_articles_endpoint(author_client: AsyncClient, author: dict):
    tag, = await seed_tags("python")
    await create_article(author_client, "Mine", [tag["id"]])

    resp = await author_client.get(f"/api/v1/users/{author['id']}/articles")
    assert resp.status_code == 200
    assert [a["title"] for a in resp.json()] == ["Mine"]

    resp = await author_client.get("/api/v1/users/99999/articles")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_delete_user_cascades_content(author_client: AsyncClient, author: dict, admin: dict):
    tag, = await seed_tags("python")
    article = await create_article(author_client, "Soon gone", [tag["id"]])
    await author_client.post(
        "/api/v1/comments", json={"article_id": article["id"], "content": "bye"}
    )

    await login(author_client, admin["email"])
    resp = await author_client.delete(f"/api/v1/users/{author['id']}")
    assert resp.status_code == 204

    resp = await author_client.get(f"/api/v1/articles/{article['id']}")
    assert resp.status_code == 404
    resp = await author_client.get("/api/v1/comments")
    assert resp.json() == []
    tags = (await author_client.get("/api/v1/tags")).json()
    assert tags[0]["article_count"] == 0


@pytest.mark.asyncio
async def test_delete_missing_user(admin_client: AsyncClient):
    resp = await admin_client.delete("/api/v1/users/99999")
    assert resp.status_code == 404
