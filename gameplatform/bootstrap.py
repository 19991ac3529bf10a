"""
Game Platform Backend: Application Bootstrap
==============================================

What:  Logging setup, exception handlers and the middleware stack shared by
       the platform app (gameplatform.main) and the gateway
       (gameplatform.gateway.main).
Why:   Both processes must log, fail and trace requests identically so that
       an error relayed by the gateway looks the same as one raised locally.

Error Response Format (every handler):
    {"error": "<code>", "message": "...", "details": {...}, "request_id": "..."}
"""

import logging
import sys

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from gameplatform.config import settings
from gameplatform.exceptions import (
    CircuitBreakerOpenError,
    DatabaseError,
    GamePlatformError,
    RateLimitExceededError,
    ValidationError,
)
from gameplatform.middleware.logging import RequestLoggingMiddleware
from gameplatform.middleware.rate_limit import RateLimitMiddleware
from gameplatform.middleware.request_id import RequestIDMiddleware, request_id_var

logger = logging.getLogger(__name__)

GENERIC_SERVER_ERROR = "An internal error occurred. Please try again later."


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure the root logger once per process.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s

    Noisy third-party loggers (uvicorn access log, SQL echo, httpx) are
    raised to WARNING; our own access log replaces uvicorn's.
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_body(error: str, message: str, details=None) -> dict:
    return {
        "error": error,
        "message": message,
        "details": details or {},
        "request_id": request_id_var.get(""),
    }


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exceptions to HTTP responses.

    Handler hierarchy:
        ValidationError          → 400 (field in details)
        RateLimitExceededError   → 429 + Retry-After
        CircuitBreakerOpenError  → 503 + Retry-After
        DatabaseError            → 500, generic message
        GamePlatformError        → the exception's own status_code/error_code
        SQLAlchemyError          → 500, generic message
        Exception                → 500, generic message

    Internal details (SQL, stack traces) are only logged, never returned.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.error_code, exc.message, exc.context),
        )

    @app.exception_handler(RateLimitExceededError)
    async def handle_rate_limit(request: Request, exc: RateLimitExceededError):
        return JSONResponse(
            status_code=429,
            content=_error_body(exc.error_code, exc.message, exc.context),
            headers={"Retry-After": str(exc.retry_after)},
        )

    @app.exception_handler(CircuitBreakerOpenError)
    async def handle_circuit_breaker(request: Request, exc: CircuitBreakerOpenError):
        logger.warning("[%s] Circuit breaker open: %s", request_id_var.get(""), exc.message)
        return JSONResponse(
            status_code=503,
            content=_error_body(exc.error_code, exc.message, exc.context),
            headers={"Retry-After": str(exc.recovery_time)},
        )

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        rid = request_id_var.get("")
        logger.error("[%s] Database error: %s | Context: %s", rid, exc.message, exc.context)
        return JSONResponse(status_code=500, content=_error_body("server_error", GENERIC_SERVER_ERROR))

    @app.exception_handler(GamePlatformError)
    async def handle_platform_error(request: Request, exc: GamePlatformError):
        rid = request_id_var.get("")
        if exc.status_code >= 500:
            logger.error("[%s] %s: %s", rid, type(exc).__name__, exc.message)
        else:
            logger.info("[%s] %s: %s", rid, type(exc).__name__, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.error_code, exc.message, exc.context),
        )

    @app.exception_handler(SQLAlchemyError)
    async def handle_sqlalchemy_error(request: Request, exc: SQLAlchemyError):
        logger.error("[%s] Unhandled database error: %s", request_id_var.get(""), str(exc), exc_info=True)
        return JSONResponse(status_code=500, content=_error_body("server_error", GENERIC_SERVER_ERROR))

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error("[%s] Unexpected error: %s", request_id_var.get(""), str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content=_error_body(
                "internal_server_error",
                "An unexpected error occurred. Please try again or contact support.",
            ),
        )


# ══════════════════════════════════════════════════════════════════════════
# Middleware Stack
# ══════════════════════════════════════════════════════════════════════════

def add_common_middleware(app: FastAPI) -> None:
    """
    Middleware executes in REVERSE order of addition, so the effective chain is
    RateLimit → RequestID → Logging → GZip → CORS → route.
    """
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(RateLimitMiddleware)
