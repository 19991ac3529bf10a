"""
Game Platform Backend: Authentication Tests
=============================================

What:  API tests for /api/auth/* against a real (SQLite) database.

What we test:
    ✅ Registration: token pair, welcome notification, duplicates, password policy
    ✅ Login: success, wrong password (401 + failed_login trail), locked account
    ✅ Per-user login rate limit (429) and the failed-login alert
    ✅ Refresh rotation: the old refresh token stops working
    ✅ Logout / logout-all / password change revoke sessions immediately
    ✅ Token validation endpoint never errors
    ✅ Session cap: the oldest session is invalidated and logged
"""

import uuid

import pytest
from sqlalchemy import select

from gameplatform.database import async_session_factory
from gameplatform.models.security_event import SecurityAlert, SecurityEvent
from conftest import DEFAULT_PASSWORD, auth


async def login(client, username: str, password: str = DEFAULT_PASSWORD, **kwargs):
    return await client.post(
        "/api/auth/login",
        json={"email": f"{username}@playmail.net", "password": password},
        **kwargs,
    )


class TestRegistration:

    @pytest.mark.asyncio
    async def test_register_returns_tokens_and_profile(self, test_client):
        response = await test_client.post(
            "/api/auth/register",
            json={"email": "Nova@PlayMail.net", "username": "nova", "password": "starlight9"},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["token_type"] == "bearer"
        assert body["access_token"] and body["refresh_token"]
        assert body["user"]["email"] == "nova@playmail.net"
        assert body["user"]["role"] == "user"
        assert body["user"]["display_name"] == "nova"

    @pytest.mark.asyncio
    async def test_register_sends_welcome_notification(self, test_client, register):
        """A fresh account finds one unread system notification waiting."""
        nova = await register("nova")

        response = await test_client.get("/api/notifications", headers=nova["headers"])

        assert response.status_code == 200
        items = response.json()["items"]
        assert len(items) == 1
        assert items[0]["type"] == "system"
        assert items[0]["is_read"] is False

    @pytest.mark.asyncio
    async def test_duplicate_email_rejected(self, test_client, register):
        await register("nova")
        response = await test_client.post(
            "/api/auth/register",
            json={"email": "nova@playmail.net", "username": "nova2", "password": DEFAULT_PASSWORD},
        )
        assert response.status_code == 409
        assert response.json()["error"] == "conflict"

    @pytest.mark.asyncio
    async def test_duplicate_username_rejected(self, test_client, register):
        await register("nova")
        response = await test_client.post(
            "/api/auth/register",
            json={"email": "other@playmail.net", "username": "nova", "password": DEFAULT_PASSWORD},
        )
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_password_needs_letter_and_digit(self, test_client):
        response = await test_client.post(
            "/api/auth/register",
            json={"email": "weak@playmail.net", "username": "weak", "password": "onlyletters"},
        )
        assert response.status_code == 400
        assert response.json()["details"]["field"] == "password"

    @pytest.mark.asyncio
    async def test_short_password_fails_validation(self, test_client):
        response = await test_client.post(
            "/api/auth/register",
            json={"email": "weak@playmail.net", "username": "weak", "password": "a1"},
        )
        assert response.status_code == 422


class TestLogin:

    @pytest.mark.asyncio
    async def test_login_success(self, test_client, register):
        await register("nova")
        response = await login(test_client, "nova")

        assert response.status_code == 200
        assert response.json()["user"]["username"] == "nova"
        assert response.json()["user"]["last_login_at"] is not None

    @pytest.mark.asyncio
    async def test_email_is_case_insensitive(self, test_client, register):
        await register("nova")
        response = await test_client.post(
            "/api/auth/login", json={"email": "NOVA@playmail.net", "password": DEFAULT_PASSWORD}
        )
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_wrong_password_is_401_and_logged(self, test_client, register):
        """The failed attempt must be committed even though the request fails."""
        nova = await register("nova")
        response = await login(test_client, "nova", password="wrongpass1")

        assert response.status_code == 401
        assert response.json()["error"] == "authentication_error"

        async with async_session_factory() as session:
            result = await session.execute(
                select(SecurityEvent).where(
                    SecurityEvent.type == "failed_login",
                    SecurityEvent.user_id == uuid.UUID(nova["user"]["id"]),
                )
            )
            assert len(result.scalars().all()) == 1

    @pytest.mark.asyncio
    async def test_unknown_email_is_401(self, test_client):
        response = await login(test_client, "ghost")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_failed_logins_raise_one_alert(self, test_client, register):
        nova = await register("nova")
        for _ in range(6):
            await login(test_client, "nova", password="wrongpass1")

        async with async_session_factory() as session:
            result = await session.execute(
                select(SecurityAlert).where(SecurityAlert.type == "multiple_failed_logins")
            )
            alerts = result.scalars().all()
        assert len(alerts) == 1
        assert alerts[0].user_id == uuid.UUID(nova["user"]["id"])

    @pytest.mark.asyncio
    async def test_per_user_login_rate_limit(self, test_client, register):
        await register("nova")
        for _ in range(10):
            await login(test_client, "nova", password="wrongpass1")

        response = await login(test_client, "nova")
        assert response.status_code == 429
        assert response.headers["retry-after"] == "60"

    @pytest.mark.asyncio
    async def test_deactivated_account_is_locked(self, test_client, register, make_admin):
        nova = await register("nova")
        admin = await register("boss")
        await make_admin(admin["user"]["id"])

        deactivate = await test_client.patch(
            f"/api/users/{nova['user']['id']}/status",
            json={"is_active": False},
            headers=admin["headers"],
        )
        assert deactivate.status_code == 200

        response = await login(test_client, "nova")
        assert response.status_code == 403
        assert response.json()["message"] == "Account is locked"

        # Existing sessions were invalidated as well
        me = await test_client.get("/api/auth/me", headers=nova["headers"])
        assert me.status_code == 401


class TestTokens:

    @pytest.mark.asyncio
    async def test_me_requires_token(self, test_client):
        response = await test_client.get("/api/auth/me")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_garbage_token_rejected(self, test_client):
        response = await test_client.get("/api/auth/me", headers=auth("not-a-jwt"))
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_refresh_rotates_pair(self, test_client, register):
        nova = await register("nova")

        rotated = await test_client.post("/api/auth/refresh", json={"refresh_token": nova["refresh_token"]})
        assert rotated.status_code == 200
        new_pair = rotated.json()
        assert new_pair["refresh_token"] != nova["refresh_token"]

        # Old refresh token and its access token are dead
        replay = await test_client.post("/api/auth/refresh", json={"refresh_token": nova["refresh_token"]})
        assert replay.status_code == 401
        old_access = await test_client.get("/api/auth/me", headers=nova["headers"])
        assert old_access.status_code == 401

        fresh = await test_client.get("/api/auth/me", headers=auth(new_pair["access_token"]))
        assert fresh.status_code == 200

    @pytest.mark.asyncio
    async def test_access_token_cannot_refresh(self, test_client, register):
        nova = await register("nova")
        response = await test_client.post("/api/auth/refresh", json={"refresh_token": nova["access_token"]})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_logout_revokes_access_token(self, test_client, register):
        nova = await register("nova")

        response = await test_client.post(
            "/api/auth/logout",
            json={"refresh_token": nova["refresh_token"]},
            headers=nova["headers"],
        )
        assert response.status_code == 200

        assert (await test_client.get("/api/auth/me", headers=nova["headers"])).status_code == 401
        refresh = await test_client.post("/api/auth/refresh", json={"refresh_token": nova["refresh_token"]})
        assert refresh.status_code == 401

    @pytest.mark.asyncio
    async def test_logout_without_body(self, test_client, register):
        nova = await register("nova")
        response = await test_client.post("/api/auth/logout", headers=nova["headers"])
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_logout_all_ends_every_session(self, test_client, register):
        nova = await register("nova")
        second = (await login(test_client, "nova")).json()

        response = await test_client.post("/api/auth/logout-all", headers=auth(second["access_token"]))

        assert response.status_code == 200
        assert response.json()["count"] == 2
        assert (await test_client.get("/api/auth/me", headers=nova["headers"])).status_code == 401

    @pytest.mark.asyncio
    async def test_change_password_invalidates_sessions(self, test_client, register):
        nova = await register("nova")

        response = await test_client.post(
            "/api/auth/change-password",
            json={"current_password": DEFAULT_PASSWORD, "new_password": "newsecret42"},
            headers=nova["headers"],
        )
        assert response.status_code == 200

        assert (await test_client.get("/api/auth/me", headers=nova["headers"])).status_code == 401
        assert (await login(test_client, "nova")).status_code == 401
        assert (await login(test_client, "nova", password="newsecret42")).status_code == 200

    @pytest.mark.asyncio
    async def test_change_password_wrong_current(self, test_client, register):
        nova = await register("nova")
        response = await test_client.post(
            "/api/auth/change-password",
            json={"current_password": "nope12345", "new_password": "newsecret42"},
            headers=nova["headers"],
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_validate_token(self, test_client, register):
        nova = await register("nova")

        valid = await test_client.post("/api/auth/validate", json={"token": nova["access_token"]})
        assert valid.json() == {
            "valid": True,
            "user_id": nova["user"]["id"],
            "email": "nova@playmail.net",
            "role": "user",
        }

        invalid = await test_client.post("/api/auth/validate", json={"token": "garbage"})
        assert invalid.status_code == 200
        assert invalid.json()["valid"] is False


class TestSessionLimit:

    @pytest.mark.asyncio
    async def test_oldest_session_evicted_past_the_cap(self, test_client, register):
        """Registration opens session one; five logins push the total to six."""
        nova = await register("nova")
        tokens = [nova["access_token"]]
        for _ in range(5):
            response = await login(test_client, "nova")
            assert response.status_code == 200
            tokens.append(response.json()["access_token"])

        statuses = [
            (await test_client.get("/api/auth/me", headers=auth(token))).status_code for token in tokens
        ]
        assert statuses == [401, 200, 200, 200, 200, 200]

        async with async_session_factory() as session:
            result = await session.execute(
                select(SecurityEvent).where(
                    SecurityEvent.type == "session_limit",
                    SecurityEvent.user_id == uuid.UUID(nova["user"]["id"]),
                )
            )
            events = result.scalars().all()
        assert len(events) == 1
        assert events[0].data["invalidated_sessions"] == 1
        assert events[0].data["limit"] == 5
