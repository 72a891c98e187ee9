"""
Integration tests for threaded comments.

Tests:
- Posting comments and replies
- The reply forest returned for an article
- Orphaned replies surfacing at the top level
- Validation of empty, oversized and malformed input
- The per-caller posting throttle
- Admin moderation
"""

from uuid import uuid4

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from api.middleware.rate_limit import comment_rate_limiter
from infrastructure.database.models import AdminAuditLog, Comment, User

pytestmark = pytest.mark.asyncio


async def post(client: AsyncClient, article_id: str, headers: dict, body: str, parent_id=None):
    payload = {"body": body}
    if parent_id:
        payload["parent_id"] = parent_id
    return await client.post(f"/api/v1/articles/{article_id}/comments", headers=headers, json=payload)


class TestPostComment:
    async def test_post(self, async_client: AsyncClient, test_user: User, auth_headers: dict, article):
        response = await post(async_client, article.id, auth_headers, "  Great piece.  ")

        assert response.status_code == 201
        data = response.json()
        assert data["body"] == "Great piece."
        assert data["user_id"] == test_user.id
        assert data["parent_id"] is None
        assert data["author_name"] == "Test User"
        assert data["replies"] == []

    async def test_requires_auth(self, async_client: AsyncClient, article):
        response = await async_client.post(
            f"/api/v1/articles/{article.id}/comments", json={"body": "hi"}
        )
        assert response.status_code == 401

    @pytest.mark.parametrize("body", ["", "   \n\t "])
    async def test_empty_body(self, async_client: AsyncClient, auth_headers: dict, article, body: str):
        response = await post(async_client, article.id, auth_headers, body)

        assert response.status_code == 400
        assert response.json()["detail"] == "Comment body cannot be empty"

    async def test_too_long(self, async_client: AsyncClient, auth_headers: dict, article):
        response = await post(async_client, article.id, auth_headers, "x" * 2001)
        assert response.status_code == 400

    async def test_malformed_parent(self, async_client: AsyncClient, auth_headers: dict, article):
        response = await post(async_client, article.id, auth_headers, "reply", parent_id="not-an-id")
        assert response.status_code == 422

    async def test_unknown_article(self, async_client: AsyncClient, auth_headers: dict):
        response = await post(async_client, str(uuid4()), auth_headers, "hello")
        assert response.status_code == 404

    async def test_throttled_after_window_is_full(
        self, async_client: AsyncClient, auth_headers: dict, article, monkeypatch
    ):
        monkeypatch.setattr(comment_rate_limiter, "max_requests", 2)

        statuses = [(await post(async_client, article.id, auth_headers, "again")).status_code for _ in range(3)]

        assert statuses == [201, 201, 429]


class TestCommentThreads:
    async def test_forest_shape(
        self,
        async_client: AsyncClient,
        auth_headers: dict,
        other_headers: dict,
        article,
    ):
        first = (await post(async_client, article.id, auth_headers, "First")).json()
        second = (await post(async_client, article.id, other_headers, "Second")).json()
        reply = (await post(async_client, article.id, other_headers, "Reply", first["id"])).json()
        nested = (await post(async_client, article.id, auth_headers, "Nested", reply["id"])).json()

        response = await async_client.get(f"/api/v1/articles/{article.id}/comments")

        assert response.status_code == 200
        forest = response.json()
        assert [node["id"] for node in forest] == [first["id"], second["id"]]
        assert [node["id"] for node in forest[0]["replies"]] == [reply["id"]]
        assert forest[0]["replies"][0]["replies"][0]["id"] == nested["id"]
        assert forest[0]["replies"][0]["replies"][0]["replies"] == []
        assert forest[1]["replies"] == []
        assert forest[1]["author_name"] == "Other User"

    async def test_orphan_reply_is_top_level(
        self,
        async_client: AsyncClient,
        db_session: AsyncSession,
        test_user: User,
        auth_headers: dict,
        article,
    ):
        root = (await post(async_client, article.id, auth_headers, "Root")).json()
        db_session.add(
            Comment(article_id=article.id, user_id=test_user.id, parent_id=str(uuid4()), body="Lost")
        )
        await db_session.commit()

        forest = (await async_client.get(f"/api/v1/articles/{article.id}/comments")).json()

        assert [node["body"] for node in forest] == ["Root", "Lost"]
        assert forest[0]["id"] == root["id"]

    async def test_no_comments(self, async_client: AsyncClient, article):
        response = await async_client.get(f"/api/v1/articles/{article.id}/comments")
        assert response.json() == []

    async def test_unknown_article(self, async_client: AsyncClient):
        response = await async_client.get(f"/api/v1/articles/{uuid4()}/comments")
        assert response.status_code == 404


class TestModeration:
    async def test_admin_lists_recent(
        self, async_client: AsyncClient, auth_headers: dict, admin_headers: dict, article
    ):
        await post(async_client, article.id, auth_headers, "Older")
        await post(async_client, article.id, auth_headers, "Newer")

        response = await async_client.get("/api/v1/admin/comments", headers=admin_headers)

        assert response.status_code == 200
        assert [c["body"] for c in response.json()] == ["Newer", "Older"]

    async def test_reader_cannot_moderate(self, async_client: AsyncClient, auth_headers: dict):
        response = await async_client.get("/api/v1/admin/comments", headers=auth_headers)

        assert response.status_code == 403
        assert response.json()["detail"] == "Admin access required"

    async def test_delete_promotes_replies(
        self,
        async_client: AsyncClient,
        db_session: AsyncSession,
        admin_user: User,
        auth_headers: dict,
        admin_headers: dict,
        article,
    ):
        parent = (await post(async_client, article.id, auth_headers, "Parent")).json()
        reply = (await post(async_client, article.id, auth_headers, "Reply", parent["id"])).json()

        response = await async_client.delete(f"/api/v1/comments/{parent['id']}", headers=admin_headers)
        assert response.status_code == 204

        forest = (await async_client.get(f"/api/v1/articles/{article.id}/comments")).json()
        assert [node["id"] for node in forest] == [reply["id"]]
        assert forest[0]["parent_id"] == parent["id"]

        log = (await db_session.execute(select(AdminAuditLog))).scalar_one()
        assert log.action == "comment_deleted"
        assert log.admin_user_id == admin_user.id
        assert log.details["body"] == "Parent"

    async def test_delete_unknown(self, async_client: AsyncClient, admin_headers: dict):
        response = await async_client.delete(f"/api/v1/comments/{uuid4()}", headers=admin_headers)

        assert response.status_code == 404
        assert response.json()["detail"] == "Comment not found"
