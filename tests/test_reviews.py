"""
Game Platform Backend: Review & Rating Tests
=============================================

What we test:
    ✅ One review per user and game (409 on the second)
    ✅ Only published games can be reviewed
    ✅ Game rating and catalog aggregates follow every create/update/delete
    ✅ Developer is notified of new reviews (not of their own)
    ✅ Only the author edits or deletes a review
    ✅ Top-rated list and platform statistics
"""

import uuid

import pytest


async def publish_game(client, account, **overrides):
    response = await client.post(
        "/api/games",
        json={"title": "Space Quest", "price": "9.99", **overrides},
        headers=account["headers"],
    )
    assert response.status_code == 201, response.text
    return response.json()


async def review(client, account, game_id, rating, content="Fun"):
    return await client.post(
        f"/api/reviews/games/{game_id}",
        json={"rating": rating, "content": content},
        headers=account["headers"],
    )


class TestCreateReview:

    @pytest.mark.asyncio
    async def test_review_updates_rating(self, test_client, verified_developer, register):
        nova = await verified_developer("nova")
        game = await publish_game(test_client, nova)
        rex = await register("rex")
        kai = await register("kai")

        created = await review(test_client, rex, game["id"], 5, "Loved it")
        await review(test_client, kai, game["id"], 2)

        assert created.status_code == 201
        assert created.json()["username"] == "rex"
        rating = await test_client.get(f"/api/reviews/games/{game['id']}/rating")
        assert rating.json() == {"game_id": game["id"], "average_rating": 3.5, "total_reviews": 2}

        page = await test_client.get(f"/api/games/{game['id']}")
        assert page.json()["average_rating"] == 3.5
        assert page.json()["reviews_count"] == 2

    @pytest.mark.asyncio
    async def test_second_review_conflicts(self, test_client, verified_developer, register):
        nova = await verified_developer("nova")
        game = await publish_game(test_client, nova)
        rex = await register("rex")

        await review(test_client, rex, game["id"], 4)
        again = await review(test_client, rex, game["id"], 1)

        assert again.status_code == 409

    @pytest.mark.asyncio
    async def test_draft_game_cannot_be_reviewed(self, test_client, verified_developer, register):
        nova = await verified_developer("nova")
        draft = await publish_game(test_client, nova, status="draft")
        rex = await register("rex")

        response = await review(test_client, rex, draft["id"], 4)

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_rating_out_of_range(self, test_client, verified_developer, register):
        nova = await verified_developer("nova")
        game = await publish_game(test_client, nova)
        rex = await register("rex")

        assert (await review(test_client, rex, game["id"], 0)).status_code == 422
        assert (await review(test_client, rex, game["id"], 6)).status_code == 422

    @pytest.mark.asyncio
    async def test_developer_notified(self, test_client, verified_developer, register):
        nova = await verified_developer("nova")
        game = await publish_game(test_client, nova)
        rex = await register("rex")

        await review(test_client, rex, game["id"], 4)
        await review(test_client, nova, game["id"], 5)

        notes = (await test_client.get("/api/notifications?type=review", headers=nova["headers"])).json()
        assert notes["total"] == 1
        assert notes["items"][0]["message"] == "rex rated Space Quest 4/5"
        assert notes["items"][0]["data"]["game_id"] == game["id"]

    @pytest.mark.asyncio
    async def test_unknown_game(self, test_client, register):
        rex = await register("rex")
        response = await review(test_client, rex, str(uuid.uuid4()), 4)
        assert response.status_code == 404


class TestEditReview:

    @pytest.mark.asyncio
    async def test_author_updates_rating(self, test_client, verified_developer, register):
        nova = await verified_developer("nova")
        game = await publish_game(test_client, nova)
        rex = await register("rex")
        created = await review(test_client, rex, game["id"], 2)

        response = await test_client.patch(
            f"/api/reviews/{created.json()['id']}", json={"rating": 4}, headers=rex["headers"]
        )

        assert response.status_code == 200
        assert response.json()["rating"] == 4
        assert response.json()["content"] == "Fun"
        rating = await test_client.get(f"/api/reviews/games/{game['id']}/rating")
        assert rating.json()["average_rating"] == 4.0

    @pytest.mark.asyncio
    async def test_only_author_may_edit_or_delete(self, test_client, verified_developer, register):
        nova = await verified_developer("nova")
        game = await publish_game(test_client, nova)
        rex = await register("rex")
        created = await review(test_client, rex, game["id"], 2)

        edit = await test_client.patch(
            f"/api/reviews/{created.json()['id']}", json={"rating": 5}, headers=nova["headers"]
        )
        delete = await test_client.delete(f"/api/reviews/{created.json()['id']}", headers=nova["headers"])

        assert edit.status_code == 403
        assert delete.status_code == 403

    @pytest.mark.asyncio
    async def test_delete_resets_rating(self, test_client, verified_developer, register):
        nova = await verified_developer("nova")
        game = await publish_game(test_client, nova)
        rex = await register("rex")
        created = await review(test_client, rex, game["id"], 3)

        response = await test_client.delete(f"/api/reviews/{created.json()['id']}", headers=rex["headers"])

        assert response.status_code == 204
        rating = await test_client.get(f"/api/reviews/games/{game['id']}/rating")
        assert rating.json()["total_reviews"] == 0
        assert rating.json()["average_rating"] == 0.0
        assert (await test_client.get(f"/api/reviews/{created.json()['id']}")).status_code == 404


class TestListings:

    @pytest.mark.asyncio
    async def test_game_and_user_review_lists(self, test_client, verified_developer, register):
        nova = await verified_developer("nova")
        first = await publish_game(test_client, nova)
        second = await publish_game(test_client, nova, title="Farm Days")
        rex = await register("rex")
        await review(test_client, rex, first["id"], 4)
        await review(test_client, rex, second["id"], 3)

        by_game = await test_client.get(f"/api/reviews/games/{first['id']}")
        by_user = await test_client.get(f"/api/reviews/users/{rex['user']['id']}")

        assert by_game.json()["total"] == 1
        assert by_game.json()["items"][0]["username"] == "rex"
        assert by_user.json()["total"] == 2

    @pytest.mark.asyncio
    async def test_top_rated_respects_min_reviews(self, test_client, verified_developer, register):
        nova = await verified_developer("nova")
        hit = await publish_game(test_client, nova, title="Hit")
        niche = await publish_game(test_client, nova, title="Niche")
        players = [await register(f"player{i}") for i in range(3)]
        for player in players:
            await review(test_client, player, hit["id"], 4)
        await review(test_client, players[0], niche["id"], 5)

        strict = await test_client.get("/api/reviews/top-rated?min_reviews=3")
        loose = await test_client.get("/api/reviews/top-rated?min_reviews=1")

        assert [g["title"] for g in strict.json()] == ["Hit"]
        assert [g["title"] for g in loose.json()] == ["Niche", "Hit"]

    @pytest.mark.asyncio
    async def test_stats(self, test_client, verified_developer, register):
        nova = await verified_developer("nova")
        game = await publish_game(test_client, nova)
        rex = await register("rex")
        kai = await register("kai")
        await review(test_client, rex, game["id"], 5)
        await review(test_client, kai, game["id"], 2)

        response = await test_client.get("/api/reviews/stats")

        assert response.json() == {"games_with_ratings": 1, "overall_average": 3.5, "total_reviews": 2}

    @pytest.mark.asyncio
    async def test_recalculate_requires_admin(self, test_client, verified_developer, register, make_admin):
        nova = await verified_developer("nova")
        game = await publish_game(test_client, nova)
        assert (
            await test_client.post(f"/api/reviews/games/{game['id']}/rating/recalculate", headers=nova["headers"])
        ).status_code == 403

        boss = await register("boss")
        await make_admin(boss["user"]["id"])
        response = await test_client.post(
            f"/api/reviews/games/{game['id']}/rating/recalculate", headers=boss["headers"]
        )
        assert response.status_code == 200
        assert response.json()["total_reviews"] == 0
