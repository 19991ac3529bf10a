"""
Game Platform Backend: Security Routes
========================================

What:  /api/security/* endpoints.

Access:
    check/*, events (POST), activity-check, failed-logins/check
        internal: X-Service-Token or an admin token
    everything else
        admin only
"""

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from gameplatform.config import settings
from gameplatform.database import get_db_session
from gameplatform.dependencies import require_admin, require_internal
from gameplatform.models.user import User
from gameplatform.schemas.security import (
    ActivityCheckResponse,
    AlertCreate,
    AlertListResponse,
    AlertResponse,
    BlockIPRequest,
    FailedLoginCheckRequest,
    IPBlockResponse,
    IPStatusResponse,
    LoginCheckRequest,
    RiskScoreRequest,
    RiskScoreResponse,
    SecurityCheckResponse,
    SecurityEventCreate,
    SecurityEventListResponse,
    SecurityEventResponse,
    SuspiciousActivityResponse,
    TransactionCheckRequest,
    UserBehaviorResponse,
)
from gameplatform.services.security_service import security_service

router = APIRouter(prefix="/api/security", tags=["Security"])


# ══════════════════════════════════════════════════════════════════════════
# Internal checks
# ══════════════════════════════════════════════════════════════════════════


@router.post(
    "/events",
    response_model=SecurityEventResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record a security event (internal)",
)
async def log_event(
    body: SecurityEventCreate,
    caller: Optional[User] = Depends(require_internal),
    db: AsyncSession = Depends(get_db_session),
) -> SecurityEventResponse:
    event = await security_service.log_event(db, **body.model_dump())
    return SecurityEventResponse.model_validate(event)


@router.post("/check/login", response_model=SecurityCheckResponse, summary="Pre-login risk check (internal)")
async def check_login(
    body: LoginCheckRequest,
    caller: Optional[User] = Depends(require_internal),
    db: AsyncSession = Depends(get_db_session),
) -> SecurityCheckResponse:
    return await security_service.check_login_security(db, body.ip_address, body.user_id, body.user_agent)


@router.post(
    "/check/transaction",
    response_model=SecurityCheckResponse,
    summary="Pre-purchase risk check (internal)",
)
async def check_transaction(
    body: TransactionCheckRequest,
    caller: Optional[User] = Depends(require_internal),
    db: AsyncSession = Depends(get_db_session),
) -> SecurityCheckResponse:
    return await security_service.check_transaction_security(
        db, body.user_id, body.ip_address, body.amount, body.payment_method
    )


@router.post("/risk-score", response_model=RiskScoreResponse, summary="Risk score for a user/IP/amount (internal)")
async def risk_score(
    body: RiskScoreRequest,
    caller: Optional[User] = Depends(require_internal),
    db: AsyncSession = Depends(get_db_session),
) -> RiskScoreResponse:
    return await security_service.calculate_risk_score(db, body.user_id, body.ip_address, body.amount)


@router.get("/users/{user_id}/activity-check", response_model=ActivityCheckResponse)
async def activity_check(
    user_id: uuid.UUID,
    caller: Optional[User] = Depends(require_internal),
    db: AsyncSession = Depends(get_db_session),
) -> ActivityCheckResponse:
    allowed, count = await security_service.validate_user_activity(db, user_id)
    return ActivityCheckResponse(
        user_id=user_id,
        allowed=allowed,
        events_last_minute=count,
        limit=settings.user_activity_limit_per_minute,
    )


@router.post("/failed-logins/check", response_model=Optional[AlertResponse])
async def check_failed_logins(
    body: FailedLoginCheckRequest,
    caller: Optional[User] = Depends(require_internal),
    db: AsyncSession = Depends(get_db_session),
) -> Optional[AlertResponse]:
    return await security_service.check_multiple_failed_logins(db, body.user_id, body.ip_address)


# ══════════════════════════════════════════════════════════════════════════
# Admin: events and monitoring
# ══════════════════════════════════════════════════════════════════════════


@router.get("/events", response_model=SecurityEventListResponse, summary="Search security events (admin)")
async def list_events(
    type: Optional[str] = Query(default=None),
    user_id: Optional[uuid.UUID] = Query(default=None),
    ip_address: Optional[str] = Query(default=None),
    min_risk: Optional[int] = Query(default=None, ge=0, le=100),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=200),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> SecurityEventListResponse:
    return await security_service.list_events(db, type, user_id, ip_address, min_risk, page, limit)


@router.get("/users/{user_id}/events", response_model=List[SecurityEventResponse])
async def list_user_events(
    user_id: uuid.UUID,
    limit: int = Query(default=100, ge=1, le=500),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> List[SecurityEventResponse]:
    return await security_service.list_user_events(db, user_id, limit)


@router.get("/users/{user_id}/suspicious-activity", response_model=SuspiciousActivityResponse)
async def suspicious_activity(
    user_id: uuid.UUID,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> SuspiciousActivityResponse:
    return await security_service.detect_suspicious_activity(db, user_id)


@router.get("/users/{user_id}/behavior", response_model=UserBehaviorResponse)
async def user_behavior(
    user_id: uuid.UUID,
    days: int = Query(default=7, ge=1, le=90),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> UserBehaviorResponse:
    return await security_service.analyze_user_behavior(db, user_id, days)


# ══════════════════════════════════════════════════════════════════════════
# Admin: IP blocks
# ══════════════════════════════════════════════════════════════════════════


@router.post("/ip-blocks", response_model=IPBlockResponse, status_code=status.HTTP_201_CREATED)
async def block_ip(
    body: BlockIPRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> IPBlockResponse:
    return await security_service.block_ip(db, body.ip_address, body.reason, body.minutes, admin.id)


@router.get("/ip-blocks", response_model=List[IPBlockResponse])
async def list_blocked_ips(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> List[IPBlockResponse]:
    return await security_service.list_blocked_ips(db)


@router.get("/ip-blocks/{ip_address}", response_model=IPStatusResponse)
async def ip_status(
    ip_address: str,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> IPStatusResponse:
    return await security_service.get_ip_status(db, ip_address)


@router.delete("/ip-blocks/{ip_address}", status_code=status.HTTP_204_NO_CONTENT)
async def unblock_ip(
    ip_address: str,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> None:
    await security_service.unblock_ip(db, ip_address)


# ══════════════════════════════════════════════════════════════════════════
# Admin: alerts
# ══════════════════════════════════════════════════════════════════════════


@router.post("/alerts", response_model=AlertResponse, status_code=status.HTTP_201_CREATED)
async def create_alert(
    body: AlertCreate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> AlertResponse:
    alert = await security_service.create_alert(db, **body.model_dump())
    return AlertResponse.model_validate(alert)


@router.get("/alerts", response_model=AlertListResponse)
async def list_alerts(
    type: Optional[str] = Query(default=None),
    severity: Optional[str] = Query(default=None),
    resolved: Optional[bool] = Query(default=None),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=50, ge=1, le=200),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> AlertListResponse:
    return await security_service.list_alerts(db, type, severity, resolved, page, page_size)


@router.get("/alerts/active", response_model=List[AlertResponse])
async def active_alerts(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> List[AlertResponse]:
    return await security_service.active_alerts(db)


@router.post("/alerts/{alert_id}/resolve", response_model=AlertResponse)
async def resolve_alert(
    alert_id: uuid.UUID,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> AlertResponse:
    return await security_service.resolve_alert(db, alert_id, admin.id)
