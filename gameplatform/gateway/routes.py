"""
Game Platform Backend: Gateway Routes
=======================================

What:  The gateway's own endpoints plus the catch-all proxy routes.

Endpoints:
    GET  /health                   aggregated upstream health
    GET  /gateway/circuits         breaker state per upstream
    POST /gateway/circuits/reset   reset all breakers, or ?service=<name>
    ANY  /api/{resource}[/{path}]  forwarded to the owning service

The circuits endpoints require X-Service-Token when SERVICE_TOKEN is set.
"""

import asyncio
import hmac
import logging
import time
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, Query, Request
from fastapi.responses import JSONResponse, Response

from gameplatform import __version__
from gameplatform.config import settings
from gameplatform.exceptions import ForbiddenError, NotFoundError
from gameplatform.gateway.proxy import ServiceProxy, forwarded_headers, relayed_headers
from gameplatform.middleware.request_id import request_id_var
from gameplatform.schemas.gateway import (
    CircuitResetResponse,
    CircuitStats,
    GatewayHealthResponse,
    UpstreamHealth,
)

logger = logging.getLogger(__name__)

router = APIRouter()

PROXY_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"]

_start_time = time.time()


def get_proxy(request: Request) -> ServiceProxy:
    return request.app.state.proxy


def require_service_token(x_service_token: Optional[str] = Header(default=None)) -> None:
    if not settings.service_token:
        return
    if not x_service_token or not hmac.compare_digest(x_service_token, settings.service_token):
        raise ForbiddenError("A valid X-Service-Token is required")


# ── Gateway endpoints ─────────────────────────────────────────────────────


@router.get(
    "/health",
    response_model=GatewayHealthResponse,
    tags=["Health"],
    summary="Aggregated upstream health",
    responses={503: {"description": "No upstream is healthy", "model": GatewayHealthResponse}},
)
async def gateway_health(proxy: ServiceProxy = Depends(get_proxy)):
    results = await asyncio.gather(*(proxy.health_check(name) for name in proxy.upstreams))
    upstreams = [UpstreamHealth(**r) for r in results]

    healthy = sum(1 for u in upstreams if u.status == "healthy")
    if upstreams and healthy == len(upstreams):
        overall = "healthy"
    elif healthy == 0 and not any(u.status == "degraded" for u in upstreams):
        overall = "unhealthy"
    else:
        overall = "degraded"

    body = GatewayHealthResponse(
        status=overall,
        version=__version__,
        upstreams=upstreams,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
    return JSONResponse(status_code=503 if overall == "unhealthy" else 200, content=body.model_dump())


@router.get(
    "/gateway/circuits",
    response_model=List[CircuitStats],
    tags=["Gateway"],
    dependencies=[Depends(require_service_token)],
)
async def list_circuits(proxy: ServiceProxy = Depends(get_proxy)) -> List[CircuitStats]:
    return [CircuitStats(**proxy.breaker(name).stats()) for name in proxy.upstreams]


@router.post(
    "/gateway/circuits/reset",
    response_model=CircuitResetResponse,
    tags=["Gateway"],
    dependencies=[Depends(require_service_token)],
)
async def reset_circuits(
    service: Optional[str] = Query(default=None),
    proxy: ServiceProxy = Depends(get_proxy),
) -> CircuitResetResponse:
    if service is not None and service not in proxy.upstreams:
        raise NotFoundError(resource="service", resource_id=service)
    if service is not None:
        # Materialize the breaker so a reset of a never-used service still reports it
        proxy.breaker(service)
    names = proxy.breakers.reset(service)
    logger.info("Circuit breakers reset: %s", ", ".join(names) or "none")
    return CircuitResetResponse(reset=names)


# ── Proxy ─────────────────────────────────────────────────────────────────


async def _proxy(request: Request, resource: str, proxy: ServiceProxy) -> Response:
    headers = forwarded_headers(
        request.headers.items(),
        client_host=request.client.host if request.client else "unknown",
        host=request.headers.get("host", ""),
        scheme=request.url.scheme,
        request_id=request_id_var.get(""),
    )
    upstream = await proxy.forward(
        resource=resource,
        method=request.method,
        path=request.url.path,
        query=request.url.query,
        headers=headers,
        body=await request.body(),
    )
    response = Response(content=upstream.content, status_code=upstream.status_code)
    # append keeps repeated headers such as Set-Cookie
    for name, value in relayed_headers(upstream.headers):
        response.headers.append(name, value)
    return response


@router.api_route("/api/{resource}", methods=PROXY_METHODS, include_in_schema=False)
async def proxy_root(request: Request, resource: str, proxy: ServiceProxy = Depends(get_proxy)) -> Response:
    return await _proxy(request, resource, proxy)


@router.api_route("/api/{resource}/{path:path}", methods=PROXY_METHODS, include_in_schema=False)
async def proxy_path(
    request: Request, resource: str, path: str, proxy: ServiceProxy = Depends(get_proxy)
) -> Response:
    return await _proxy(request, resource, proxy)
