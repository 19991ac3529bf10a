"""
Game Platform Backend: Gateway Application Factory
====================================================

What:  Creates the gateway FastAPI app that fronts the platform services.
Who:   uvicorn gameplatform.gateway.main:app --port $GATEWAY_PORT

Lifecycle:
    Startup:  logging, upstream table logged
    Shutdown: close the shared upstream HTTP client
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI

from gameplatform import __version__
from gameplatform.bootstrap import (
    add_common_middleware,
    register_exception_handlers,
    setup_logging,
)
from gameplatform.gateway import routes
from gameplatform.gateway.proxy import ServiceProxy

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging()
    proxy: ServiceProxy = app.state.proxy
    logger.info("=" * 60)
    logger.info("Game Platform Gateway starting up")
    for name, url in proxy.upstreams.items():
        logger.info("  %-14s → %s", name, url)
    logger.info("=" * 60)

    yield

    logger.info("Game Platform Gateway shutting down...")
    await proxy.close()
    logger.info("Shutdown complete.")


def create_gateway_app(proxy: Optional[ServiceProxy] = None) -> FastAPI:
    """
    Args:
        proxy: Preconfigured proxy (tests pass one with a mock transport);
               defaults to the upstream table from settings
    """
    app = FastAPI(
        title="Game Platform Gateway",
        description="Routes /api/* requests to the platform services.",
        version=__version__,
        docs_url="/docs",
        redoc_url=None,
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.proxy = proxy or ServiceProxy.from_settings()

    add_common_middleware(app)
    register_exception_handlers(app)
    app.include_router(routes.router)

    return app


# ── Application Instance ─────────────────────────────────────────────────
app = create_gateway_app()
