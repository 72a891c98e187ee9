"""Integration tests for the API-key protected public article API."""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.security.api_keys import display_prefix, generate_api_key, hash_api_key
from infrastructure.config.settings import settings
from infrastructure.database.models import ApiKey, User

pytestmark = pytest.mark.asyncio


@pytest.fixture
async def stored_key(db_session: AsyncSession, pro_user: User) -> str:
    plaintext = generate_api_key()
    db_session.add(
        ApiKey(
            user_id=pro_user.id,
            name="integration",
            key_hash=hash_api_key(plaintext),
            key_prefix=display_prefix(plaintext),
        )
    )
    await db_session.commit()
    return plaintext


class TestAuthentication:
    async def test_missing_key(self, async_client: AsyncClient):
        response = await async_client.get("/api/v1/public/articles")

        assert response.status_code == 401
        assert response.json()["detail"] == "API key required"

    async def test_unknown_key(self, async_client: AsyncClient):
        response = await async_client.get("/api/v1/public/articles", headers={"X-API-Key": "nh_nope"})

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid API key"

    async def test_configured_key(self, async_client: AsyncClient):
        response = await async_client.get(
            "/api/v1/public/articles", headers={"X-API-Key": settings.public_api_key}
        )
        assert response.status_code == 200

    async def test_key_as_query_parameter(self, async_client: AsyncClient, stored_key: str):
        response = await async_client.get("/api/v1/public/articles", params={"api_key": stored_key})
        assert response.status_code == 200

    async def test_stored_key_records_use(
        self, async_client: AsyncClient, db_session: AsyncSession, stored_key: str
    ):
        await async_client.get("/api/v1/public/articles", headers={"X-API-Key": stored_key})

        key = (await db_session.execute(select(ApiKey))).scalar_one()
        await db_session.refresh(key)
        assert key.last_used_at is not None


class TestArticles:
    async def test_lists_visible_articles(self, async_client: AsyncClient, make_article):
        older = await make_article(title="Older", published_at=datetime.now(timezone.utc) - timedelta(hours=5))
        newer = await make_article(title="Newer")
        later = datetime.now(timezone.utc) + timedelta(days=1)
        await make_article(title="Embargoed", scheduled_for=later, published_at=later)

        response = await async_client.get(
            "/api/v1/public/articles", headers={"X-API-Key": settings.public_api_key}
        )

        assert [a["id"] for a in response.json()] == [newer.id, older.id]

    async def test_category_group_and_paging(self, async_client: AsyncClient, make_article):
        for hours in range(3):
            await make_article(category="markets", published_at=datetime.now(timezone.utc) - timedelta(hours=hours + 1))
        await make_article(category="sports")

        response = await async_client.get(
            "/api/v1/public/articles",
            headers={"X-API-Key": settings.public_api_key},
            params={"category": "business", "page": 2, "limit": 2},
        )

        assert len(response.json()) == 1

    async def test_single_article(self, async_client: AsyncClient, article):
        headers = {"X-API-Key": settings.public_api_key}

        found = await async_client.get(f"/api/v1/public/articles/{article.id}", headers=headers)
        missing = await async_client.get(f"/api/v1/public/articles/{uuid4()}", headers=headers)

        assert found.json()["title"] == article.title
        assert missing.status_code == 404
