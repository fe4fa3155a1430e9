"""
Comment endpoint tests: creation against existing and missing articles,
ownership checks and moderator overrides.
"""
import pytest
from httpx import AsyncClient

from app.auth import DEFAULT_USER
from tests.conftest import create_account, create_article, login, seed_tags


async def _article(client: AsyncClient) -> dict:
    tag, = await seed_tags("general")
    return await create_article(client, "Commented article", [tag["id"]])


@pytest.mark.asyncio
async def test_create_comment(author_client: AsyncClient, author: dict):
    article = await _article(author_client)
    resp = await author_client.post(
        "/api/v1/comments", json={"article_id": article["id"], "content": "Nice post"}
    )
    assert resp.status_code == 201
    data = resp.json()
    assert data["content"] == "Nice post"
    assert data["user_id"] == author["id"]
    assert data["author"]["first_name"] == author["first_name"]
    assert data["comment_date"] is not None


@pytest.mark.asyncio
async def test_create_comment_requires_login(async_client: AsyncClient):
    resp = await async_client.post("/api/v1/comments", json={"article_id": 1, "content": "x"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_create_comment_on_missing_article(author_client: AsyncClient):
    resp = await author_client.post(
        "/api/v1/comments", json={"article_id": 99999, "content": "Orphan"}
    )
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_create_empty_comment_rejected(author_client: AsyncClient):
    article = await _article(author_client)
    resp = await author_client.post(
        "/api/v1/comments", json={"article_id": article["id"], "content": ""}
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_comments_appear_in_article_detail(author_client: AsyncClient):
    article = await _article(author_client)
    for text in ("first", "second"):
        await author_client.post(
            "/api/v1/comments", json={"article_id": article["id"], "content": text}
        )

    resp = await author_client.get(f"/api/v1/articles/{article['id']}")
    assert [c["content"] for c in resp.json()["comments"]] == ["first", "second"]


@pytest.mark.asyncio
async def test_list_comments(author_client: AsyncClient):
    article = await _article(author_client)
    await author_client.post("/api/v1/comments", json={"article_id": article["id"], "content": "a"})
    await author_client.post("/api/v1/comments", json={"article_id": article["id"], "content": "b"})

    resp = await author_client.get("/api/v1/comments")
    assert resp.status_code == 200
    assert len(resp.json()) == 2


@pytest.mark.asyncio
async def test_update_own_comment(author_client: AsyncClient):
    article = await _article(author_client)
    comment = (await author_client.post(
        "/api/v1/comments", json={"article_id": article["id"], "content": "tpyo"}
    )).json()

    resp = await author_client.put(f"/api/v1/comments/{comment['id']}", json={"content": "typo"})
    assert resp.status_code == 200
    assert resp.json()["content"] == "typo"


@pytest.mark.asyncio
async def test_other_user_cannot_edit_or_delete(author_client: AsyncClient):
    article = await _article(author_client)
    comment = (await author_client.post(
        "/api/v1/comments", json={"article_id": article["id"], "content": "mine"}
    )).json()

    await create_account(DEFAULT_USER, "stranger@example.com")
    await login(author_client, "stranger@example.com")

    resp = await author_client.put(f"/api/v1/comments/{comment['id']}", json={"content": "x"})
    assert resp.status_code == 403
    resp = await author_client.delete(f"/api/v1/comments/{comment['id']}")
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_moderator_can_delete_any_comment(author_client: AsyncClient, moderator: dict):
    article = await _article(author_client)
    comment = (await author_client.post(
        "/api/v1/comments", json={"article_id": article["id"], "content": "spam"}
    )).json()

    await login(author_client, moderator["email"])
    resp = await author_client.delete(f"/api/v1/comments/{comment['id']}")
    assert resp.status_code == 204

    resp = await author_client.get(f"/api/v1/comments/{comment['id']}")
    assert resp.status_code == 404
