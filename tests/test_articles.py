"""
Article endpoint tests: CRUD lifecycle, ownership rules, tag association,
pagination and the diagnostic response headers.
"""
import pytest
from httpx import AsyncClient

from tests.conftest import create_account, create_article, login, seed_tags
from app.auth import DEFAULT_USER


# ---------------------------------------------------------------------------
# Infrastructure / health
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_health(async_client: AsyncClient):
    resp = await async_client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_diagnostic_headers(async_client: AsyncClient):
    """Every response carries the timing and query-count headers."""
    resp = await async_client.get("/api/v1/articles")
    assert "x-response-time-ms" in resp.headers
    assert int(resp.headers["x-query-count"]) >= 0


# ---------------------------------------------------------------------------
# List / read
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_list_articles_empty(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/articles")
    assert resp.status_code == 200
    data = resp.json()
    assert data["items"] == []
    assert data["total"] == 0


@pytest.mark.asyncio
async def test_list_articles_pagination(author_client: AsyncClient):
    tag, = await seed_tags("python")
    for i in range(5):
        await create_article(author_client, f"Article {i}", [tag["id"]])

    resp = await author_client.get("/api/v1/articles?page=2&page_size=2")
    assert resp.status_code == 200
    data = resp.json()
    assert data["total"] == 5
    assert data["pages"] == 3
    assert data["page"] == 2
    assert len(data["items"]) == 2


@pytest.mark.asyncio
async def test_list_articles_sorted_by_title(author_client: AsyncClient):
    tag, = await seed_tags("python")
    for title in ("Charlie", "Alpha", "Bravo"):
        await create_article(author_client, title, [tag["id"]])

    resp = await author_client.get("/api/v1/articles?sort_by=title&sort_order=asc")
    titles = [a["title"] for a in resp.json()["items"]]
    assert titles == ["Alpha", "Bravo", "Charlie"]


@pytest.mark.asyncio
async def test_page_size_above_limit_rejected(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/articles?page_size=500")
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_get_article_not_found(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/articles/99999")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_get_article_is_public(author_client: AsyncClient):
    tag, = await seed_tags("python")
    article = await create_article(author_client, "Public", [tag["id"]], content="Hello")
    await author_client.post("/api/v1/auth/logout")

    resp = await author_client.get(f"/api/v1/articles/{article['id']}")
    assert resp.status_code == 200
    data = resp.json()
    assert data["content"] == "Hello"
    assert data["view_count"] == 0
    assert data["comments"] == []


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_article_requires_login(async_client: AsyncClient):
    resp = await async_client.post(
        "/api/v1/articles", json={"title": "T", "content": "C", "tag_ids": [1]}
    )
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_create_article_sets_author_and_tags(author_client: AsyncClient, author: dict):
    python, fastapi = await seed_tags("python", "fastapi")
    data = await create_article(author_client, "Tagged", [python["id"], fastapi["id"]])

    assert data["user_id"] == author["id"]
    assert data["author"]["email"] == author["email"]
    assert data["view_count"] == 0
    assert data["publication_date"] is not None
    assert sorted(t["name"] for t in data["tags"]) == ["fastapi", "python"]


@pytest.mark.asyncio
async def test_create_article_without_tags_rejected(author_client: AsyncClient):
    resp = await author_client.post(
        "/api/v1/articles", json={"title": "Untagged", "content": "C", "tag_ids": []}
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_create_article_ignores_unknown_tags(author_client: AsyncClient):
    tag, = await seed_tags("python")
    data = await create_article(author_client, "Mixed", [tag["id"], 9999])
    assert [t["id"] for t in data["tags"]] == [tag["id"]]


# ---------------------------------------------------------------------------
# Update / delete
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_update_article_replaces_tags(author_client: AsyncClient):
    python, fastapi = await seed_tags("python", "fastapi")
    article = await create_article(author_client, "Before", [python["id"]])

    resp = await author_client.put(
        f"/api/v1/articles/{article['id']}",
        json={"title": "After", "content": "New", "tag_ids": [fastapi["id"]]},
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["title"] == "After"
    assert data["content"] == "New"
    assert [t["name"] for t in data["tags"]] == ["fastapi"]


@pytest.mark.asyncio
async def test_update_article_by_other_user_forbidden(author_client: AsyncClient):
    tag, = await seed_tags("python")
    article = await create_article(author_client, "Mine", [tag["id"]])

    await create_account(DEFAULT_USER, "other@example.com")
    await login(author_client, "other@example.com")
    resp = await author_client.put(
        f"/api/v1/articles/{article['id']}",
        json={"title": "Hijacked", "content": "x", "tag_ids": []},
    )
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_admin_can_delete_any_article(author_client: AsyncClient, admin: dict):
    tag, = await seed_tags("python")
    article = await create_article(author_client, "Doomed", [tag["id"]])

    await login(author_client, admin["email"])
    resp = await author_client.delete(f"/api/v1/articles/{article['id']}")
    assert resp.status_code == 204

    resp = await author_client.get(f"/api/v1/articles/{article['id']}")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_update_missing_article(author_client: AsyncClient):
    resp = await author_client.put(
        "/api/v1/articles/99999", json={"title": "x", "content": "y", "tag_ids": []}
    )
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_delete_article_removes_comments(author_client: AsyncClient):
    tag, = await seed_tags("python")
    article = await create_article(author_client, "With comments", [tag["id"]])
    comment = await author_client.post(
        "/api/v1/comments", json={"article_id": article["id"], "content": "First"}
    )
    assert comment.status_code == 201

    await author_client.delete(f"/api/v1/articles/{article['id']}")
    resp = await author_client.get(f"/api/v1/comments/{comment.json()['id']}")
    assert resp.status_code == 404
