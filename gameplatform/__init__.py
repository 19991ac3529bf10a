"""
Game Platform Backend: Application Package Initializer
========================================================

What: Marks the `gameplatform` directory as a Python package.
Who:  Used by uvicorn (`gameplatform.main:app`, `gameplatform.gateway.main:app`),
      Alembic and pytest.

Architecture Note:

    ┌─────────────────────────────────────┐
    │        Gateway (proxy + breakers)   │  ← gameplatform.gateway
    ├─────────────────────────────────────┤
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │         Services (Business Logic)   │  ← Rules, cross-service calls
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
