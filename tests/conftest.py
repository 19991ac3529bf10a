"""
Game Platform Backend: Test Configuration (conftest.py)
=========================================================

What:  Shared pytest fixtures for the entire test suite.
Why:   Provides reusable test infrastructure (database, API client, accounts).
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.
Who:   Used by all test files in the tests/ directory.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── database: empty SQLite schema, dropped afterwards
    │   ├── db_session: AsyncSession for service-level tests
    │   └── test_client: HTTPX AsyncClient bound to the platform app
    ├── register: factory that signs up an account through the API
    ├── make_admin / verified_developer: promote an account
    ├── create_user: inserts a User row through db_session
    └── mock_db_session: AsyncMock session for pure unit tests
"""

import os
import tempfile
import uuid

# Override settings for testing BEFORE any gameplatform imports
# Why: the settings singleton and the engine are built at import time
_TEST_DIR = tempfile.mkdtemp(prefix="gameplatform_test_")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DIR}/test.db"
os.environ["REDIS_ENABLED"] = "false"
os.environ["PASSWORD_SCHEMES"] = "pbkdf2_sha256"  # bcrypt is slow on purpose
os.environ["JWT_SECRET"] = "test-secret-not-for-production"
os.environ["SERVICE_TOKEN"] = "test-service-token"
os.environ["RATE_LIMIT_REQUESTS"] = "100000"
os.environ["EMAIL_WEBHOOK_URL"] = ""
os.environ["ENABLED_SERVICES"] = "all"
os.environ["LOG_LEVEL"] = "WARNING"  # Reduce noise during tests

from typing import Any, Awaitable, Callable, Dict  # noqa: E402
from unittest.mock import AsyncMock, MagicMock  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

import gameplatform.models  # noqa: E402,F401
from gameplatform.database import Base, async_session_factory, engine  # noqa: E402
from gameplatform.models.user import User  # noqa: E402

DEFAULT_PASSWORD = "hunter2pass"

VERIFIED_STUDIO = {
    "company_name": "Pixel Forge",
    "website": "https://pixelforge.dev",
    "contact_email": "legal@pixelforge.dev",
    "tax_id": "PF-123456",
    "country": "us",
    "documents": ["https://pixelforge.dev/cert.pdf", "https://pixelforge.dev/license.pdf"],
}


def auth(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


# ══════════════════════════════════════════════════════════════════════════
# Database
# ══════════════════════════════════════════════════════════════════════════


@pytest_asyncio.fixture
async def database():
    """
    Fresh schema for every test.

    The engine is disposed afterwards so no pooled aiosqlite connection
    outlives the event loop of the test that opened it.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(database):
    async with async_session_factory() as session:
        yield session


@pytest.fixture
def mock_db_session():
    """
    A mock async session for tests that must not touch a database.

    Usage:
        mock_db_session.execute.return_value.scalar.return_value = 3
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.get = AsyncMock(return_value=None)
    session.add = MagicMock()
    return session


# ══════════════════════════════════════════════════════════════════════════
# HTTP client and accounts
# ══════════════════════════════════════════════════════════════════════════


@pytest_asyncio.fixture
async def test_client(database):
    """
    HTTPX AsyncClient routed straight into the platform app (all services).

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    from gameplatform.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def register(test_client) -> Callable[..., Awaitable[Dict[str, Any]]]:
    """
    Factory that registers an account and returns the token response.

    Usage:
        alice = await register("alice")
        await test_client.get("/api/users/me", headers=alice["headers"])
    """

    async def _register(username: str, password: str = DEFAULT_PASSWORD, **extra) -> Dict[str, Any]:
        response = await test_client.post(
            "/api/auth/register",
            json={"email": f"{username}@playmail.net", "username": username, "password": password, **extra},
        )
        assert response.status_code == 201, response.text
        account = response.json()
        account["headers"] = auth(account["access_token"])
        return account

    return _register


@pytest.fixture
def make_admin(database) -> Callable[[str], Awaitable[None]]:
    """Promote an account to admin directly in the database."""

    async def _make_admin(user_id: str) -> None:
        async with async_session_factory() as session:
            user = await session.get(User, uuid.UUID(user_id))
            user.role = "admin"
            await session.commit()

    return _make_admin


@pytest.fixture
def verified_developer(test_client, register) -> Callable[[str], Awaitable[Dict[str, Any]]]:
    """Register an account and get its developer profile auto-approved."""

    async def _verified(username: str) -> Dict[str, Any]:
        account = await register(username)
        response = await test_client.post(
            "/api/studios/verification",
            json={"kind": "developer", **VERIFIED_STUDIO},
            headers=account["headers"],
        )
        assert response.status_code == 201, response.text
        assert response.json()["verification_status"] == "approved"
        return account

    return _verified


@pytest.fixture
def create_user(db_session) -> Callable[..., Awaitable[User]]:
    """Insert a user row directly, bypassing the API (service-level tests)."""

    async def _create_user(username: str, role: str = "user") -> User:
        user = User(
            email=f"{username}@playmail.net",
            username=username,
            password_hash="not-a-real-hash",
            display_name=username,
            role=role,
        )
        db_session.add(user)
        await db_session.flush()
        return user

    return _create_user
