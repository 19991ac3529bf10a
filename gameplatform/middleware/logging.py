"""
Game Platform Backend: Request Logging Middleware
===================================================

What:  One access-log line per HTTP request with status and duration.
How:   Logged on the `gameplatform.access` logger after the response is
       produced; the level follows the status class.

Log line:
    GET /api/games 200 12.3ms [a1b2c3d4] from 203.0.113.7

Never logged: request bodies (passwords, messages) and Authorization headers.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from gameplatform.middleware.request_id import client_ip, request_id_var

logger = logging.getLogger("gameplatform.access")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Level by status:
        5xx → ERROR, 4xx → WARNING, otherwise INFO.
    Health checks are not logged.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path == "/health":
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start_time) * 1000

        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        rid = request_id_var.get("")
        ip = client_ip(request)
        logger.log(
            log_level,
            "%s %s %d %.1fms [%s] from %s",
            request.method,
            path,
            status,
            duration_ms,
            rid,
            ip,
            extra={
                "request_id": rid,
                "method": request.method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": ip,
            },
        )
        return response
