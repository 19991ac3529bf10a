"""
Game Platform Backend: Gateway Schemas
========================================

What:  Health and circuit-breaker payloads served by the gateway itself.
"""

from typing import List, Optional

from pydantic import BaseModel, Field


class UpstreamHealth(BaseModel):
    service: str
    status: str = Field(description="Upstream's own status, or 'unreachable'")
    circuit: str = Field(description="closed, open or half_open")
    response_time_ms: float


class GatewayHealthResponse(BaseModel):
    status: str = Field(description="healthy (all up), degraded (some down), unhealthy (all down)")
    version: str
    upstreams: List[UpstreamHealth]
    uptime_seconds: float


class CircuitStats(BaseModel):
    service: str
    state: str
    failure_count: int
    failure_threshold: int
    total_requests: int
    total_failures: int
    last_failure_time: Optional[float] = None


class CircuitResetResponse(BaseModel):
    reset: List[str]
