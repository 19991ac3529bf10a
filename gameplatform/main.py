"""
Game Platform Backend: FastAPI Application Factory
====================================================

What:  Creates the platform application hosting the domain routers.
Why:   One code base, deployable as a single process (ENABLED_SERVICES=all)
       or as one process per service behind the gateway
       (ENABLED_SERVICES=users, ENABLED_SERVICES=catalog, ...).
Who:   uvicorn gameplatform.main:app

Service → Routers:
    users          /api/auth, /api/users, /api/studios
    catalog        /api/games
    reviews        /api/reviews
    notifications  /api/notifications
    social         /api/social
    security       /api/security
    (always)       /health

Lifecycle:
    Startup:  logging, configuration validation
    Shutdown: close Redis client, dispose database engine
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from gameplatform import __version__
from gameplatform.bootstrap import (
    add_common_middleware,
    register_exception_handlers,
    setup_logging,
)
from gameplatform.cache import cache
from gameplatform.config import settings
from gameplatform.database import dispose_engine
from gameplatform.routes import (
    auth,
    games,
    health,
    notifications,
    reviews,
    security,
    social,
    studios,
    users,
)

logger = logging.getLogger(__name__)

SERVICE_ROUTERS = {
    "users": (auth.router, users.router, studios.router),
    "catalog": (games.router,),
    "reviews": (reviews.router,),
    "notifications": (notifications.router,),
    "social": (social.router,),
    "security": (security.router,),
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging()
    logger.info("=" * 60)
    logger.info("Game Platform Backend starting up (services: %s)", ", ".join(settings.enabled_services_list))

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Keep serving so health checks can report; the error is in the logs
        logger.error("Configuration error: %s", str(e))

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("Game Platform Backend shutting down...")
    await cache.close()
    await dispose_engine()
    logger.info("Shutdown complete.")


def create_app() -> FastAPI:
    """Assemble middleware, exception handlers and the routers of the enabled services."""
    app = FastAPI(
        title="Game Platform API",
        description=(
            "Accounts, developer verification, game catalog, reviews, notifications, "
            "friends and messaging, and security monitoring for a game platform."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    add_common_middleware(app)
    register_exception_handlers(app)

    app.include_router(health.router)
    for service in settings.enabled_services_list:
        for router in SERVICE_ROUTERS[service]:
            app.include_router(router)

    return app


# ── Application Instance ─────────────────────────────────────────────────
app = create_app()
