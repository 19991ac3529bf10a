"""
Game Platform Backend: Shared Response Schemas
================================================

What:  Error, health and small acknowledgement payloads used by every router.
"""

from typing import List, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """
    Standardized error response format for all API errors.

    Example:
        {
            "error": "conflict",
            "message": "You have already reviewed this game",
            "details": {},
            "request_id": "550e8400"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    cache: str = Field(description="Redis status: connected, disconnected, disabled")
    services: List[str] = Field(description="Domain services mounted in this process")
    uptime_seconds: float = Field(description="Seconds since service started")


class MessageResponse(BaseModel):
    message: str


class CountResponse(BaseModel):
    count: int


class UpdatedResponse(BaseModel):
    updated: int


def page_count(total: int, limit: int) -> int:
    return (total + limit - 1) // limit if limit else 0
