"""
Game Platform Backend: Health Check Route
===========================================

What:  Liveness/readiness check for load balancers and the gateway.
How:   Runs SELECT 1 against the database and pings Redis.

Status levels:
    healthy    database and cache reachable (HTTP 200)
    degraded   cache down; requests still work, only slower (HTTP 200)
    unhealthy  database down (HTTP 503, stop routing traffic here)
"""

import logging
import time

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text

from gameplatform import __version__
from gameplatform.cache import cache
from gameplatform.config import settings
from gameplatform.database import engine
from gameplatform.schemas.common import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
    responses={503: {"description": "Database unreachable", "model": HealthResponse}},
)
async def health_check():
    db_status = "connected"
    overall = "healthy"

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    if not cache.enabled:
        cache_status = "disabled"
    elif await cache.ping():
        cache_status = "connected"
    else:
        cache_status = "disconnected"
        if overall == "healthy":
            overall = "degraded"

    body = HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        cache=cache_status,
        services=settings.enabled_services_list,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
    return JSONResponse(
        status_code=503 if overall == "unhealthy" else 200,
        content=body.model_dump(),
    )
