"""
Game Platform Backend: Game Catalog Tests
===========================================

What we test:
    ✅ slugify and unique slug suffixes
    ✅ Only verified developers (or admins) create games; publishers must be verified
    ✅ Draft games are hidden from everyone but the owner
    ✅ Listing filters (genre, tag, q, price), sorting, Cache-Control
    ✅ Update/delete/analytics restricted to owner or admin
    ✅ Cached game pages still count views and show the new count
"""

import uuid
from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import pytest

from conftest import VERIFIED_STUDIO
from gameplatform.services.game_service import GameService, slugify

SPACE_QUEST = {
    "title": "Space Quest",
    "description": "A sci-fi adventure",
    "price": "19.99",
    "genres": ["Adventure", "Sci-Fi"],
    "tags": ["singleplayer"],
    "platforms": ["pc"],
}


async def create_game(client, account, **overrides):
    response = await client.post("/api/games", json={**SPACE_QUEST, **overrides}, headers=account["headers"])
    assert response.status_code == 201, response.text
    return response.json()


class TestSlugify:

    def test_punctuation_removed(self):
        assert slugify("Space Quest: Part II!") == "space-quest-part-ii"

    def test_whitespace_and_underscores_collapse(self):
        assert slugify("  Hello__World   Again ") == "hello-world-again"

    def test_empty_falls_back(self):
        assert slugify("!!!") == "game"


class TestCreateGame:

    @pytest.mark.asyncio
    async def test_verified_developer_creates(self, test_client, verified_developer):
        nova = await verified_developer("nova")

        game = await create_game(test_client, nova)

        assert game["slug"] == "space-quest"
        assert game["developer_id"] == nova["user"]["id"]
        assert game["developer_name"] == "Pixel Forge"
        assert game["price"] == 19.99
        assert game["currency"] == "USD"
        assert game["status"] == "published"
        assert game["average_rating"] == 0.0

    @pytest.mark.asyncio
    async def test_plain_user_forbidden(self, test_client, register):
        rex = await register("rex")
        response = await test_client.post("/api/games", json=SPACE_QUEST, headers=rex["headers"])
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_admin_may_create(self, test_client, register, make_admin):
        boss = await register("boss", display_name="The Boss")
        await make_admin(boss["user"]["id"])

        game = await create_game(test_client, boss)

        assert game["developer_name"] == "The Boss"

    @pytest.mark.asyncio
    async def test_duplicate_title_gets_suffix(self, test_client, verified_developer):
        nova = await verified_developer("nova")

        first = await create_game(test_client, nova)
        second = await create_game(test_client, nova)
        third = await create_game(test_client, nova)

        assert [first["slug"], second["slug"], third["slug"]] == ["space-quest", "space-quest-1", "space-quest-2"]

    @pytest.mark.asyncio
    async def test_unverified_publisher_rejected(self, test_client, verified_developer, register):
        nova = await verified_developer("nova")
        rex = await register("rex")

        response = await test_client.post(
            "/api/games", json={**SPACE_QUEST, "publisher_id": rex["user"]["id"]}, headers=nova["headers"]
        )

        assert response.status_code == 400
        assert response.json()["details"]["field"] == "publisher_id"

    @pytest.mark.asyncio
    async def test_verified_publisher_attached(self, test_client, verified_developer, register):
        nova = await verified_developer("nova")
        rex = await register("rex")
        await test_client.post(
            "/api/studios/verification",
            json={"kind": "publisher", **VERIFIED_STUDIO, "company_name": "Big Box"},
            headers=rex["headers"],
        )

        game = await create_game(test_client, nova, publisher_id=rex["user"]["id"])

        assert game["publisher_id"] == rex["user"]["id"]
        assert game["publisher_name"] == "Big Box"

    @pytest.mark.asyncio
    async def test_negative_price_rejected(self, test_client, verified_developer):
        nova = await verified_developer("nova")
        response = await test_client.post("/api/games", json={**SPACE_QUEST, "price": "-1"}, headers=nova["headers"])
        assert response.status_code == 422


class TestGamePage:

    @pytest.mark.asyncio
    async def test_views_are_counted(self, test_client, verified_developer):
        nova = await verified_developer("nova")
        game = await create_game(test_client, nova)

        first = await test_client.get(f"/api/games/{game['id']}")
        second = await test_client.get(f"/api/games/slug/{game['slug']}")

        assert first.json()["views_count"] == 1
        assert second.json()["views_count"] == 2

    @pytest.mark.asyncio
    async def test_draft_hidden_from_others(self, test_client, verified_developer, register):
        nova = await verified_developer("nova")
        rex = await register("rex")
        draft = await create_game(test_client, nova, status="draft")

        assert (await test_client.get(f"/api/games/{draft['id']}")).status_code == 404
        assert (await test_client.get(f"/api/games/{draft['id']}", headers=rex["headers"])).status_code == 404
        assert (await test_client.get(f"/api/games/{draft['id']}", headers=nova["headers"])).status_code == 200

        listing = await test_client.get("/api/games")
        assert listing.json()["total"] == 0

    @pytest.mark.asyncio
    async def test_developer_listing_includes_drafts_for_owner(self, test_client, verified_developer):
        nova = await verified_developer("nova")
        await create_game(test_client, nova)
        await create_game(test_client, nova, title="Secret Sequel", status="draft")

        public = await test_client.get(f"/api/games/developer/{nova['user']['id']}")
        own = await test_client.get(f"/api/games/developer/{nova['user']['id']}", headers=nova["headers"])

        assert public.json()["total"] == 1
        assert own.json()["total"] == 2

    @pytest.mark.asyncio
    async def test_unknown_game(self, test_client):
        assert (await test_client.get(f"/api/games/{uuid.uuid4()}")).status_code == 404
        assert (await test_client.get("/api/games/slug/nope")).status_code == 404


class TestListing:

    @pytest.mark.asyncio
    async def test_filters(self, test_client, verified_developer):
        nova = await verified_developer("nova")
        await create_game(test_client, nova)
        await create_game(
            test_client, nova, title="Farm Days", description="Cozy farming", price="4.99",
            genres=["Simulation"], tags=["cozy"],
        )

        by_genre = await test_client.get("/api/games?genre=adventure")
        by_tag = await test_client.get("/api/games?tag=cozy")
        by_text = await test_client.get("/api/games?q=farming")
        by_price = await test_client.get("/api/games?min_price=5&max_price=20")

        assert [g["title"] for g in by_genre.json()["items"]] == ["Space Quest"]
        assert [g["title"] for g in by_tag.json()["items"]] == ["Farm Days"]
        assert [g["title"] for g in by_text.json()["items"]] == ["Farm Days"]
        assert [g["title"] for g in by_price.json()["items"]] == ["Space Quest"]

    @pytest.mark.asyncio
    async def test_sort_and_pagination(self, test_client, verified_developer):
        nova = await verified_developer("nova")
        for title, price in (("Alpha", "30"), ("Bravo", "10"), ("Charlie", "20")):
            await create_game(test_client, nova, title=title, price=price)

        response = await test_client.get("/api/games?sort=price_asc&limit=2")

        body = response.json()
        assert [g["title"] for g in body["items"]] == ["Bravo", "Charlie"]
        assert body["total"] == 3
        assert body["pages"] == 2
        assert response.headers["cache-control"] == "public, max-age=60"

    @pytest.mark.asyncio
    async def test_invalid_sort_rejected(self, test_client):
        response = await test_client.get("/api/games?sort=popularity")
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_search(self, test_client, verified_developer):
        nova = await verified_developer("nova")
        await create_game(test_client, nova)
        await create_game(test_client, nova, title="Quest for Loot", status="draft")

        response = await test_client.get("/api/games/search?q=quest")

        assert [g["title"] for g in response.json()] == ["Space Quest"]


class TestManageGame:

    @pytest.mark.asyncio
    async def test_owner_updates_and_slug_follows_title(self, test_client, verified_developer):
        nova = await verified_developer("nova")
        game = await create_game(test_client, nova)

        response = await test_client.patch(
            f"/api/games/{game['id']}",
            json={"title": "Space Quest Remastered", "price": "9.99", "currency": "eur"},
            headers=nova["headers"],
        )

        assert response.status_code == 200
        body = response.json()
        assert body["slug"] == "space-quest-remastered"
        assert body["price"] == 9.99
        assert body["currency"] == "EUR"

    @pytest.mark.asyncio
    async def test_other_user_cannot_modify(self, test_client, verified_developer):
        nova = await verified_developer("nova")
        rex = await verified_developer("rex")
        game = await create_game(test_client, nova)

        update = await test_client.patch(f"/api/games/{game['id']}", json={"price": "0"}, headers=rex["headers"])
        delete = await test_client.delete(f"/api/games/{game['id']}", headers=rex["headers"])
        analytics = await test_client.get(f"/api/games/{game['id']}/analytics", headers=rex["headers"])

        assert update.status_code == 403
        assert delete.status_code == 403
        assert analytics.status_code == 403

    @pytest.mark.asyncio
    async def test_admin_can_delete(self, test_client, verified_developer, register, make_admin):
        nova = await verified_developer("nova")
        boss = await register("boss")
        await make_admin(boss["user"]["id"])
        game = await create_game(test_client, nova)

        response = await test_client.delete(f"/api/games/{game['id']}", headers=boss["headers"])

        assert response.status_code == 204
        assert (await test_client.get(f"/api/games/{game['id']}")).status_code == 404

    @pytest.mark.asyncio
    async def test_analytics(self, test_client, verified_developer):
        nova = await verified_developer("nova")
        game = await create_game(test_client, nova)
        await test_client.get(f"/api/games/{game['id']}")

        response = await test_client.get(f"/api/games/{game['id']}/analytics", headers=nova["headers"])

        assert response.json() == {
            "game_id": game["id"],
            "title": "Space Quest",
            "status": "published",
            "views_count": 1,
            "average_rating": 0.0,
            "reviews_count": 0,
        }


class TestCachedGamePage:

    def setup_method(self):
        self.service = GameService()
        self.game_id = uuid.uuid4()
        now = datetime(2026, 1, 1, tzinfo=timezone.utc).isoformat()
        self.cached = {
            "id": str(self.game_id),
            "title": "Space Quest",
            "slug": "space-quest",
            "description": "",
            "developer_id": str(uuid.uuid4()),
            "price": 19.99,
            "currency": "USD",
            "status": "published",
            "average_rating": 0.0,
            "reviews_count": 0,
            "views_count": 7,
            "created_at": now,
            "updated_at": now,
        }

    @pytest.mark.asyncio
    async def test_cache_hit_counts_view(self, mock_db_session):
        fake_cache = AsyncMock()
        fake_cache.get.return_value = self.cached

        with patch("gameplatform.services.game_service.cache", fake_cache):
            response = await self.service.get_game(mock_db_session, self.game_id)

        assert response.views_count == 8
        mock_db_session.execute.assert_awaited_once()
        key, stored = fake_cache.set.await_args.args
        assert key == f"games:item:{self.game_id}"
        assert stored["views_count"] == 8
        assert fake_cache.set.await_args.kwargs == {"keep_ttl": True}
