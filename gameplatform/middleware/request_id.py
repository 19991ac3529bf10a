"""
Game Platform Backend: Request ID Middleware
==============================================

What:  Assigns a correlation ID to each request and returns it in the response.
Why:   Every log line of a request, and every upstream call the gateway makes
       for it, carries the same ID.
How:   Client-provided X-Request-ID is reused; otherwise a short UUID is
       generated. The ID lives in a ContextVar for loggers and error handlers.
When:  Before logging, after rate limiting.

Propagation:
    Client (X-Request-ID: abc) → Gateway → users/catalog/... service
    The gateway forwards the header, so the upstream logs the same ID.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Coroutine-local: concurrent requests on one event loop each see their own ID
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def client_ip(request: Request) -> str:
    """
    Originating client address.

    Behind the gateway (or any proxy) the first X-Forwarded-For entry is the
    real client; the socket peer is only the proxy.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return request.client.host if request.client else "unknown"


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Behavior:
        1. Reuse X-Request-ID from the client when present
        2. Otherwise generate an 8-character ID
        3. Store it in the ContextVar and request.state
        4. Echo it in the response headers
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request.headers.get("X-Request-ID") or str(uuid.uuid4())[:8]
        request_id_var.set(rid)
        request.state.request_id = rid

        response = await call_next(request)
        response.headers["X-Request-ID"] = rid
        return response
