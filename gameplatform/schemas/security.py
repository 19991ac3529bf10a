"""
Game Platform Backend: Security Schemas
=========================================
"""

import uuid
from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

SecurityEventType = Literal[
    "login",
    "failed_login",
    "logout",
    "registration",
    "token_refresh",
    "password_change",
    "purchase",
    "suspicious_activity",
    "ip_blocked",
    "session_limit",
]
Severity = Literal["low", "medium", "high", "critical"]


# ── Events ────────────────────────────────────────────────────────────────


class SecurityEventCreate(BaseModel):
    type: SecurityEventType
    user_id: Optional[uuid.UUID] = None
    ip_address: Optional[str] = Field(default=None, max_length=45)
    user_agent: Optional[str] = Field(default=None, max_length=500)
    data: dict = Field(default_factory=dict)
    risk_score: int = Field(default=0, ge=0, le=100)


class SecurityEventResponse(BaseModel):
    id: uuid.UUID
    type: str
    user_id: Optional[uuid.UUID] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    data: dict = Field(default_factory=dict)
    risk_score: int
    created_at: datetime

    model_config = {"from_attributes": True}


class SecurityEventListResponse(BaseModel):
    items: List[SecurityEventResponse]
    total: int
    page: int
    limit: int
    pages: int


# ── Checks ────────────────────────────────────────────────────────────────


class LoginCheckRequest(BaseModel):
    ip_address: str = Field(max_length=45)
    user_id: Optional[uuid.UUID] = None
    user_agent: Optional[str] = Field(default=None, max_length=500)


class TransactionCheckRequest(BaseModel):
    user_id: uuid.UUID
    ip_address: str = Field(max_length=45)
    amount: float = Field(ge=0)
    payment_method: Optional[str] = Field(default=None, max_length=50)


class SecurityCheckResponse(BaseModel):
    allowed: bool
    risk_score: int = Field(ge=0, le=100)
    reason: Optional[str] = None
    recommendations: List[str] = Field(default_factory=list)


class RiskScoreRequest(BaseModel):
    user_id: Optional[uuid.UUID] = None
    ip_address: Optional[str] = Field(default=None, max_length=45)
    amount: Optional[float] = Field(default=None, ge=0)


class RiskScoreResponse(BaseModel):
    risk_score: int
    factors: List[str] = Field(default_factory=list)


class ActivityCheckResponse(BaseModel):
    user_id: uuid.UUID
    allowed: bool
    events_last_minute: int
    limit: int


class FailedLoginCheckRequest(BaseModel):
    user_id: Optional[uuid.UUID] = None
    ip_address: Optional[str] = Field(default=None, max_length=45)


# ── IP blocks ─────────────────────────────────────────────────────────────


class BlockIPRequest(BaseModel):
    ip_address: str = Field(min_length=1, max_length=45)
    reason: str = Field(min_length=1, max_length=500)
    minutes: Optional[int] = Field(default=None, ge=1, le=525600)


class IPBlockResponse(BaseModel):
    id: uuid.UUID
    ip_address: str
    reason: str
    blocked_until: datetime
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class IPStatusResponse(BaseModel):
    ip_address: str
    blocked: bool
    blocked_until: Optional[datetime] = None
    reason: Optional[str] = None


# ── Alerts ────────────────────────────────────────────────────────────────


class AlertCreate(BaseModel):
    type: str = Field(min_length=1, max_length=50)
    severity: Severity
    message: str = Field(min_length=1, max_length=500)
    user_id: Optional[uuid.UUID] = None
    ip_address: Optional[str] = Field(default=None, max_length=45)
    data: dict = Field(default_factory=dict)


class AlertResponse(BaseModel):
    id: uuid.UUID
    type: str
    severity: str
    message: str
    user_id: Optional[uuid.UUID] = None
    ip_address: Optional[str] = None
    data: dict = Field(default_factory=dict)
    resolved: bool
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[uuid.UUID] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class AlertListResponse(BaseModel):
    items: List[AlertResponse]
    total: int
    page: int
    page_size: int


# ── Monitoring ────────────────────────────────────────────────────────────


class SuspiciousActivityResponse(BaseModel):
    user_id: uuid.UUID
    suspicious: bool
    score: int
    event_count: int
    high_risk_events: int
    reasons: List[str] = Field(default_factory=list)


class UserBehaviorResponse(BaseModel):
    user_id: uuid.UUID
    days: int
    total_events: int
    events_by_type: Dict[str, int] = Field(default_factory=dict)
    unique_ips: int
    average_risk_score: float
    last_activity: Optional[datetime] = None
