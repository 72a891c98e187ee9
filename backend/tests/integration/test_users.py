"""
Integration tests for the reader account API.

Tests:
- Profile read and update
- Settings: defaults, full replacement, partial objects refused
- Saved articles and search history
- Data export
- Notifications
- API keys and self-serve ads behind plan perks
"""

from uuid import uuid4

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.domain.settings_mapping import default_settings
from infrastructure.database.models import ApiKey, Notification, SearchHistory, User, UserSettings

pytestmark = pytest.mark.asyncio


class TestProfile:
    async def test_get_profile(self, async_client: AsyncClient, test_user: User, auth_headers: dict):
        response = await async_client.get("/api/v1/users/me", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == test_user.id
        assert data["saved_article_ids"] == []
        assert data["search_history"] == []
        assert data["ads"] == []
        assert data["payment_history"] == []

    async def test_update_profile(self, async_client: AsyncClient, auth_headers: dict):
        response = await async_client.put(
            "/api/v1/users/me",
            headers=auth_headers,
            json={"bio": "Covers markets.", "socials": {"twitter": "@reader"}},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["bio"] == "Covers markets."
        assert data["socials"] == {"twitter": "@reader"}
        assert data["name"] == "Test User"

    async def test_requires_auth(self, async_client: AsyncClient):
        response = await async_client.get("/api/v1/users/me")
        assert response.status_code == 401


class TestSettings:
    async def test_defaults_for_new_user(self, async_client: AsyncClient, auth_headers: dict):
        response = await async_client.get("/api/v1/users/me/settings", headers=auth_headers)

        assert response.status_code == 200
        assert response.json() == default_settings()

    async def test_replace_and_read_back(
        self,
        async_client: AsyncClient,
        db_session: AsyncSession,
        test_user: User,
        auth_headers: dict,
    ):
        body = default_settings()
        body["theme"]["name"] = "dark"
        body["reading"]["lineHeight"] = 2.0
        body["highContrast"] = True
        body["preferences"] = {"categories": ["science"], "tags": ["space"]}

        response = await async_client.put("/api/v1/users/me/settings", headers=auth_headers, json=body)
        assert response.status_code == 200
        assert response.json() == body

        response = await async_client.get("/api/v1/users/me/settings", headers=auth_headers)
        assert response.json() == body

        row = await db_session.get(UserSettings, test_user.id)
        await db_session.refresh(row)
        assert row.theme_name == "dark"
        assert row.high_contrast is True
        assert row.preferred_categories == ["science"]

    async def test_partial_object_is_rejected(self, async_client: AsyncClient, auth_headers: dict):
        response = await async_client.put(
            "/api/v1/users/me/settings",
            headers=auth_headers,
            json={"theme": {"name": "dark", "accent": "blue"}},
        )
        assert response.status_code == 422

    async def test_out_of_range_value_is_rejected(self, async_client: AsyncClient, auth_headers: dict):
        body = default_settings()
        body["reading"]["lineHeight"] = 9
        response = await async_client.put("/api/v1/users/me/settings", headers=auth_headers, json=body)
        assert response.status_code == 422


class TestSavedArticles:
    async def test_toggle(self, async_client: AsyncClient, auth_headers: dict, article):
        url = f"/api/v1/users/me/saved-articles/{article.id}"

        first = await async_client.post(url, headers=auth_headers)
        assert first.json() == {"article_id": article.id, "saved": True}

        saved = await async_client.get("/api/v1/users/me/saved-articles", headers=auth_headers)
        assert [a["id"] for a in saved.json()] == [article.id]

        profile = await async_client.get("/api/v1/users/me", headers=auth_headers)
        assert profile.json()["saved_article_ids"] == [article.id]

        second = await async_client.post(url, headers=auth_headers)
        assert second.json()["saved"] is False

    async def test_unknown_article(self, async_client: AsyncClient, auth_headers: dict):
        response = await async_client.post(
            f"/api/v1/users/me/saved-articles/{uuid4()}", headers=auth_headers
        )
        assert response.status_code == 404


class TestSearchHistory:
    async def test_clear(
        self,
        async_client: AsyncClient,
        db_session: AsyncSession,
        test_user: User,
        auth_headers: dict,
    ):
        db_session.add(SearchHistory(user_id=test_user.id, query="elections"))
        await db_session.commit()

        profile = await async_client.get("/api/v1/users/me", headers=auth_headers)
        assert [s["query"] for s in profile.json()["search_history"]] == ["elections"]

        response = await async_client.delete("/api/v1/users/me/search-history", headers=auth_headers)
        assert response.status_code == 204

        profile = await async_client.get("/api/v1/users/me", headers=auth_headers)
        assert profile.json()["search_history"] == []


class TestExport:
    async def test_export_is_a_download(
        self,
        async_client: AsyncClient,
        db_session: AsyncSession,
        test_user: User,
        auth_headers: dict,
    ):
        db_session.add(Notification(user_id=test_user.id, message="Welcome"))
        await db_session.commit()

        response = await async_client.get("/api/v1/users/me/export", headers=auth_headers)

        assert response.status_code == 200
        assert "attachment" in response.headers["content-disposition"]
        data = response.json()
        assert data["profile"]["email"] == test_user.email
        assert data["settings"] == default_settings()
        assert [n["message"] for n in data["notifications"]] == ["Welcome"]
        assert data["comments"] == []


class TestNotifications:
    @pytest.fixture
    async def notifications(self, db_session: AsyncSession, test_user: User, other_user: User):
        mine = [
            Notification(user_id=test_user.id, message="Breaking: one"),
            Notification(user_id=test_user.id, message="Breaking: two"),
        ]
        theirs = Notification(user_id=other_user.id, message="Not yours")
        db_session.add_all([*mine, theirs])
        await db_session.commit()
        return mine, theirs

    async def test_list_only_own(self, async_client: AsyncClient, auth_headers: dict, notifications):
        response = await async_client.get("/api/v1/users/me/notifications", headers=auth_headers)

        assert response.status_code == 200
        assert sorted(n["message"] for n in response.json()) == ["Breaking: one", "Breaking: two"]

    async def test_mark_read(self, async_client: AsyncClient, auth_headers: dict, notifications):
        mine, _ = notifications

        response = await async_client.put(
            f"/api/v1/users/me/notifications/{mine[0].id}/read", headers=auth_headers
        )

        assert response.status_code == 200
        assert response.json()["is_read"] is True

    async def test_mark_all_read(self, async_client: AsyncClient, auth_headers: dict, notifications):
        response = await async_client.post(
            "/api/v1/users/me/notifications/read-all", headers=auth_headers
        )
        assert response.json() == {"updated": 2}

    async def test_cannot_touch_someone_elses(
        self, async_client: AsyncClient, auth_headers: dict, notifications
    ):
        _, theirs = notifications

        response = await async_client.delete(
            f"/api/v1/users/me/notifications/{theirs.id}", headers=auth_headers
        )

        assert response.status_code == 404
        assert response.json()["detail"] == "Notification not found"

    async def test_delete(self, async_client: AsyncClient, auth_headers: dict, notifications):
        mine, _ = notifications

        response = await async_client.delete(
            f"/api/v1/users/me/notifications/{mine[1].id}", headers=auth_headers
        )
        assert response.status_code == 204

        remaining = await async_client.get("/api/v1/users/me/notifications", headers=auth_headers)
        assert [n["id"] for n in remaining.json()] == [mine[0].id]


class TestApiKeys:
    async def test_free_plan_cannot_create(self, async_client: AsyncClient, auth_headers: dict):
        response = await async_client.post(
            "/api/v1/users/me/api-keys", headers=auth_headers, json={"name": "scraper"}
        )

        assert response.status_code == 403
        assert response.json()["detail"] == "Your plan does not include this feature"

    async def test_create_use_and_revoke(
        self,
        async_client: AsyncClient,
        db_session: AsyncSession,
        pro_headers: dict,
        article,
    ):
        created = await async_client.post(
            "/api/v1/users/me/api-keys", headers=pro_headers, json={"name": "dashboard"}
        )
        assert created.status_code == 201
        data = created.json()
        plaintext = data["key"]
        assert plaintext.startswith(data["key_prefix"])

        stored = (await db_session.execute(select(ApiKey))).scalar_one()
        assert stored.key_hash != plaintext

        listed = await async_client.get("/api/v1/users/me/api-keys", headers=pro_headers)
        assert [k["id"] for k in listed.json()] == [data["id"]]
        assert "key" not in listed.json()[0]

        public = await async_client.get("/api/v1/public/articles", headers={"X-API-Key": plaintext})
        assert public.status_code == 200
        assert [a["id"] for a in public.json()] == [article.id]

        revoked = await async_client.delete(
            f"/api/v1/users/me/api-keys/{data['id']}", headers=pro_headers
        )
        assert revoked.status_code == 204

        public = await async_client.get("/api/v1/public/articles", headers={"X-API-Key": plaintext})
        assert public.status_code == 401

    async def test_revoke_unknown(self, async_client: AsyncClient, pro_headers: dict):
        response = await async_client.delete(
            f"/api/v1/users/me/api-keys/{uuid4()}", headers=pro_headers
        )
        assert response.status_code == 404


class TestSelfServeAds:
    async def test_free_plan_refused(self, async_client: AsyncClient, auth_headers: dict):
        response = await async_client.post(
            "/api/v1/users/me/ads",
            headers=auth_headers,
            json={"headline": "Buy now", "url": "https://shop.example.com"},
        )
        assert response.status_code == 403

    async def test_pro_plan_creates_own_ad(
        self, async_client: AsyncClient, pro_user: User, pro_headers: dict
    ):
        response = await async_client.post(
            "/api/v1/users/me/ads",
            headers=pro_headers,
            json={"headline": "Buy now", "url": "https://shop.example.com"},
        )

        assert response.status_code == 201
        assert response.json()["user_id"] == pro_user.id

        profile = await async_client.get("/api/v1/users/me", headers=pro_headers)
        assert [a["headline"] for a in profile.json()["ads"]] == ["Buy now"]

    async def test_admin_passes_any_perk(self, async_client: AsyncClient, admin_headers: dict):
        response = await async_client.post(
            "/api/v1/users/me/ads",
            headers=admin_headers,
            json={"headline": "House ad", "url": "https://example.com"},
        )
        assert response.status_code == 201
