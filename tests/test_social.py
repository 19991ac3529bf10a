"""
Game Platform Backend: Social Graph Tests
===========================================

What we test:
    ✅ Friend request lifecycle: send, incoming/outgoing, accept, decline, remove
    ✅ Request rules: not to self (400), unknown user (404), duplicates (409)
    ✅ Messages only between friends (403), per-sender rate limit (429)
    ✅ Conversations: latest message per partner, unread counts, mark read
"""

import uuid

import pytest


async def befriend(client, a, b):
    """a sends, b accepts."""
    sent = await client.post("/api/social/friends/requests", json={"user_id": b["user"]["id"]}, headers=a["headers"])
    assert sent.status_code == 201, sent.text
    accepted = await client.post(f"/api/social/friends/requests/{sent.json()['id']}/accept", headers=b["headers"])
    assert accepted.status_code == 200, accepted.text


class TestFriendRequests:

    @pytest.mark.asyncio
    async def test_send_and_accept(self, test_client, register):
        nova = await register("nova")
        rex = await register("rex")

        sent = await test_client.post(
            "/api/social/friends/requests", json={"user_id": rex["user"]["id"]}, headers=nova["headers"]
        )
        assert sent.status_code == 201
        assert sent.json()["status"] == "pending"
        assert sent.json()["user"]["username"] == "rex"

        incoming = await test_client.get("/api/social/friends/requests/incoming", headers=rex["headers"])
        assert [r["user"]["username"] for r in incoming.json()] == ["nova"]
        outgoing = await test_client.get("/api/social/friends/requests/outgoing", headers=nova["headers"])
        assert len(outgoing.json()) == 1

        accepted = await test_client.post(
            f"/api/social/friends/requests/{sent.json()['id']}/accept", headers=rex["headers"]
        )
        assert accepted.status_code == 200
        assert accepted.json()["status"] == "accepted"

        friends = await test_client.get("/api/social/friends", headers=nova["headers"])
        assert friends.json()["total"] == 1
        assert friends.json()["items"][0]["user"]["username"] == "rex"

        status = await test_client.get(f"/api/social/friends/{nova['user']['id']}/status", headers=rex["headers"])
        assert status.json()["are_friends"] is True

    @pytest.mark.asyncio
    async def test_request_and_acceptance_notify(self, test_client, register):
        nova = await register("nova")
        rex = await register("rex")
        await befriend(test_client, nova, rex)

        rex_types = [n["type"] for n in (await test_client.get("/api/notifications", headers=rex["headers"])).json()["items"]]
        nova_types = [n["type"] for n in (await test_client.get("/api/notifications", headers=nova["headers"])).json()["items"]]
        assert "friend_request" in rex_types
        assert "friend_accepted" in nova_types

    @pytest.mark.asyncio
    async def test_only_addressee_can_accept(self, test_client, register):
        nova = await register("nova")
        rex = await register("rex")
        sent = await test_client.post(
            "/api/social/friends/requests", json={"user_id": rex["user"]["id"]}, headers=nova["headers"]
        )

        response = await test_client.post(
            f"/api/social/friends/requests/{sent.json()['id']}/accept", headers=nova["headers"]
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_request_to_self_rejected(self, test_client, register):
        nova = await register("nova")
        response = await test_client.post(
            "/api/social/friends/requests", json={"user_id": nova["user"]["id"]}, headers=nova["headers"]
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_request_to_unknown_user(self, test_client, register):
        nova = await register("nova")
        response = await test_client.post(
            "/api/social/friends/requests", json={"user_id": str(uuid.uuid4())}, headers=nova["headers"]
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_duplicate_request_in_either_direction(self, test_client, register):
        nova = await register("nova")
        rex = await register("rex")
        await test_client.post(
            "/api/social/friends/requests", json={"user_id": rex["user"]["id"]}, headers=nova["headers"]
        )

        again = await test_client.post(
            "/api/social/friends/requests", json={"user_id": rex["user"]["id"]}, headers=nova["headers"]
        )
        reverse = await test_client.post(
            "/api/social/friends/requests", json={"user_id": nova["user"]["id"]}, headers=rex["headers"]
        )
        assert again.status_code == 409
        assert reverse.status_code == 409

    @pytest.mark.asyncio
    async def test_already_friends_conflict(self, test_client, register):
        nova = await register("nova")
        rex = await register("rex")
        await befriend(test_client, nova, rex)

        response = await test_client.post(
            "/api/social/friends/requests", json={"user_id": nova["user"]["id"]}, headers=rex["headers"]
        )
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_declined_request_can_be_resent(self, test_client, register):
        nova = await register("nova")
        rex = await register("rex")
        sent = await test_client.post(
            "/api/social/friends/requests", json={"user_id": rex["user"]["id"]}, headers=nova["headers"]
        )

        declined = await test_client.post(
            f"/api/social/friends/requests/{sent.json()['id']}/decline", headers=rex["headers"]
        )
        assert declined.status_code == 204
        incoming = await test_client.get("/api/social/friends/requests/incoming", headers=rex["headers"])
        assert incoming.json() == []

        resent = await test_client.post(
            "/api/social/friends/requests", json={"user_id": rex["user"]["id"]}, headers=nova["headers"]
        )
        assert resent.status_code == 201
        assert resent.json()["status"] == "pending"

    @pytest.mark.asyncio
    async def test_requester_can_cancel(self, test_client, register):
        nova = await register("nova")
        rex = await register("rex")
        sent = await test_client.post(
            "/api/social/friends/requests", json={"user_id": rex["user"]["id"]}, headers=nova["headers"]
        )

        response = await test_client.post(
            f"/api/social/friends/requests/{sent.json()['id']}/decline", headers=nova["headers"]
        )
        assert response.status_code == 204
        outgoing = await test_client.get("/api/social/friends/requests/outgoing", headers=nova["headers"])
        assert outgoing.json() == []

    @pytest.mark.asyncio
    async def test_remove_friend(self, test_client, register):
        nova = await register("nova")
        rex = await register("rex")
        await befriend(test_client, nova, rex)

        response = await test_client.delete(f"/api/social/friends/{nova['user']['id']}", headers=rex["headers"])
        assert response.status_code == 204

        friends = await test_client.get("/api/social/friends", headers=nova["headers"])
        assert friends.json()["total"] == 0
        again = await test_client.delete(f"/api/social/friends/{nova['user']['id']}", headers=rex["headers"])
        assert again.status_code == 404

    @pytest.mark.asyncio
    async def test_friend_list_status_filter(self, test_client, register):
        nova = await register("nova")
        rex = await register("rex")
        await befriend(test_client, nova, rex)
        await test_client.patch("/api/users/me", json={"online_status": "offline"}, headers=rex["headers"])

        online = await test_client.get("/api/social/friends?status=online", headers=nova["headers"])
        offline = await test_client.get("/api/social/friends?status=offline", headers=nova["headers"])
        assert online.json()["total"] == 0
        assert offline.json()["total"] == 1


class TestMessages:

    @pytest.mark.asyncio
    async def test_message_requires_friendship(self, test_client, register):
        nova = await register("nova")
        rex = await register("rex")

        response = await test_client.post(
            "/api/social/messages",
            json={"recipient_id": rex["user"]["id"], "content": "hi"},
            headers=nova["headers"],
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_send_message_notifies_recipient(self, test_client, register):
        nova = await register("nova")
        rex = await register("rex")
        await befriend(test_client, nova, rex)

        response = await test_client.post(
            "/api/social/messages",
            json={"recipient_id": rex["user"]["id"], "content": "gg"},
            headers=nova["headers"],
        )
        assert response.status_code == 201
        assert response.json()["is_read"] is False

        unread = await test_client.get("/api/social/messages/unread-count", headers=rex["headers"])
        assert unread.json() == {"count": 1}
        notes = (await test_client.get("/api/notifications", headers=rex["headers"])).json()["items"]
        assert notes[0]["type"] == "new_message"
        assert notes[0]["message"] == "gg"

    @pytest.mark.asyncio
    async def test_message_rate_limit(self, test_client, register):
        nova = await register("nova")
        rex = await register("rex")
        await befriend(test_client, nova, rex)

        for i in range(20):
            sent = await test_client.post(
                "/api/social/messages",
                json={"recipient_id": rex["user"]["id"], "content": f"spam {i}"},
                headers=nova["headers"],
            )
            assert sent.status_code == 201

        blocked = await test_client.post(
            "/api/social/messages",
            json={"recipient_id": rex["user"]["id"], "content": "one more"},
            headers=nova["headers"],
        )
        assert blocked.status_code == 429
        assert "retry-after" in blocked.headers

    @pytest.mark.asyncio
    async def test_conversations_and_read_marks(self, test_client, register):
        nova = await register("nova")
        rex = await register("rex")
        await befriend(test_client, nova, rex)

        for text in ("first", "second"):
            await test_client.post(
                "/api/social/messages",
                json={"recipient_id": rex["user"]["id"], "content": text},
                headers=nova["headers"],
            )

        conversations = await test_client.get("/api/social/conversations", headers=rex["headers"])
        assert len(conversations.json()) == 1
        summary = conversations.json()[0]
        assert summary["partner"]["username"] == "nova"
        assert summary["last_message"]["content"] == "second"
        assert summary["unread_count"] == 2

        history = await test_client.get(f"/api/social/conversations/{nova['user']['id']}", headers=rex["headers"])
        assert [m["content"] for m in history.json()["items"]] == ["first", "second"]
        assert history.json()["total"] == 2

        marked = await test_client.post(f"/api/social/conversations/{nova['user']['id']}/read", headers=rex["headers"])
        assert marked.json() == {"updated": 2}
        unread = await test_client.get("/api/social/messages/unread-count", headers=rex["headers"])
        assert unread.json() == {"count": 0}

    @pytest.mark.asyncio
    async def test_mark_single_message_read(self, test_client, register):
        nova = await register("nova")
        rex = await register("rex")
        await befriend(test_client, nova, rex)
        sent = await test_client.post(
            "/api/social/messages",
            json={"recipient_id": rex["user"]["id"], "content": "ping"},
            headers=nova["headers"],
        )
        message_id = sent.json()["id"]

        by_sender = await test_client.post(f"/api/social/messages/{message_id}/read", headers=nova["headers"])
        assert by_sender.status_code == 404

        by_recipient = await test_client.post(f"/api/social/messages/{message_id}/read", headers=rex["headers"])
        assert by_recipient.status_code == 200
        assert by_recipient.json()["is_read"] is True
        assert by_recipient.json()["read_at"] is not None

    @pytest.mark.asyncio
    async def test_conversation_with_stranger_forbidden(self, test_client, register):
        nova = await register("nova")
        rex = await register("rex")
        response = await test_client.get(f"/api/social/conversations/{rex['user']['id']}", headers=nova["headers"])
        assert response.status_code == 403
