"""
Game Platform Backend: Security Service
=========================================

What:  Security event log, login/transaction risk checks, IP blocking,
       alerts and behavioural monitoring.
Why:   Every authentication decision and every purchase goes through a
       risk check computed from recent events.
How:   All checks are counts over `security_events` inside a sliding time
       window. IP blocks live in the database with a Redis fast path.
Who:   auth_service (in-process) and the security router (other services,
       admins).

Risk Scoring (login):
    base 10
    + floor(ip_attempts   / ip_limit   * 40)
    + floor(user_attempts / user_limit * 40)
    capped at 95. Over either per-minute limit → not allowed, risk >= 85.
    Blocked IP or locked account → not allowed, risk 100.

Risk Scoring (transaction):
    base 15 + floor(user_purchases / limit * 40), +30 for amounts at or over
    the threshold, capped at 99. Over the limit → not allowed, risk >= 85.
"""

import logging
import math
import uuid
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from gameplatform.cache import cache
from gameplatform.config import settings
from gameplatform.database import as_utc, utcnow
from gameplatform.exceptions import ConflictError, NotFoundError
from gameplatform.models.security_event import (
    SECURITY_EVENT_TYPES,
    IPBlock,
    SecurityAlert,
    SecurityEvent,
)
from gameplatform.models.user import User
from gameplatform.schemas.common import page_count
from gameplatform.schemas.security import (
    AlertListResponse,
    AlertResponse,
    IPBlockResponse,
    IPStatusResponse,
    RiskScoreResponse,
    SecurityCheckResponse,
    SecurityEventListResponse,
    SecurityEventResponse,
    SuspiciousActivityResponse,
    UserBehaviorResponse,
)

logger = logging.getLogger(__name__)

LOGIN_EVENT_TYPES = ("login", "failed_login")
BLOCKED_IP_REASON = "IP is blocked"
LOCKED_ACCOUNT_REASON = "Account is locked"
RATE_LIMIT_REASON = "Rate limit exceeded"


def _blocked_ip_key(ip: str) -> str:
    return f"blocked_ip:{ip}"


class SecurityService:

    # ══════════════════════════════════════════════════════════════════════
    # Events
    # ══════════════════════════════════════════════════════════════════════

    async def log_event(
        self,
        db: AsyncSession,
        type: str,
        user_id: Optional[uuid.UUID] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        data: Optional[dict] = None,
        risk_score: int = 0,
    ) -> SecurityEvent:
        event = SecurityEvent(
            type=type,
            user_id=user_id,
            ip_address=ip_address,
            user_agent=(user_agent or "")[:500] or None,
            data=data or {},
            risk_score=max(0, min(100, risk_score)),
        )
        db.add(event)
        await db.flush()
        if risk_score >= settings.high_risk_score:
            logger.warning(
                "High-risk security event %s (risk=%d) user=%s ip=%s",
                type,
                risk_score,
                user_id,
                ip_address,
            )
        return event

    async def list_events(
        self,
        db: AsyncSession,
        type: Optional[str] = None,
        user_id: Optional[uuid.UUID] = None,
        ip_address: Optional[str] = None,
        min_risk: Optional[int] = None,
        page: int = 1,
        limit: int = 50,
    ) -> SecurityEventListResponse:
        conditions = []
        if type:
            conditions.append(SecurityEvent.type == type)
        if user_id:
            conditions.append(SecurityEvent.user_id == user_id)
        if ip_address:
            conditions.append(SecurityEvent.ip_address == ip_address)
        if min_risk is not None:
            conditions.append(SecurityEvent.risk_score >= min_risk)

        result = await db.execute(
            select(SecurityEvent)
            .where(*conditions)
            .order_by(SecurityEvent.created_at.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )
        total = (await db.execute(select(func.count(SecurityEvent.id)).where(*conditions))).scalar() or 0
        return SecurityEventListResponse(
            items=[SecurityEventResponse.model_validate(e) for e in result.scalars().all()],
            total=total,
            page=page,
            limit=limit,
            pages=page_count(total, limit),
        )

    async def list_user_events(
        self, db: AsyncSession, user_id: uuid.UUID, limit: int = 100
    ) -> List[SecurityEventResponse]:
        result = await db.execute(
            select(SecurityEvent)
            .where(SecurityEvent.user_id == user_id)
            .order_by(SecurityEvent.created_at.desc())
            .limit(limit)
        )
        return [SecurityEventResponse.model_validate(e) for e in result.scalars().all()]

    async def _count_events(
        self,
        db: AsyncSession,
        types: tuple,
        since: datetime,
        user_id: Optional[uuid.UUID] = None,
        ip_address: Optional[str] = None,
    ) -> int:
        conditions = [SecurityEvent.type.in_(types), SecurityEvent.created_at >= since]
        if user_id is not None:
            conditions.append(SecurityEvent.user_id == user_id)
        if ip_address is not None:
            conditions.append(SecurityEvent.ip_address == ip_address)
        result = await db.execute(select(func.count(SecurityEvent.id)).where(*conditions))
        return result.scalar() or 0

    # ══════════════════════════════════════════════════════════════════════
    # Risk checks
    # ══════════════════════════════════════════════════════════════════════

    async def check_login_security(
        self,
        db: AsyncSession,
        ip_address: str,
        user_id: Optional[uuid.UUID] = None,
        user_agent: Optional[str] = None,
    ) -> SecurityCheckResponse:
        if await self.is_ip_blocked(db, ip_address):
            logger.warning("Login attempt from blocked IP %s", ip_address)
            return SecurityCheckResponse(
                allowed=False,
                risk_score=100,
                reason=BLOCKED_IP_REASON,
                recommendations=["Contact support if you believe this is a mistake"],
            )

        if user_id is not None:
            user = await db.get(User, user_id)
            if user is not None and not user.is_active:
                return SecurityCheckResponse(
                    allowed=False,
                    risk_score=100,
                    reason=LOCKED_ACCOUNT_REASON,
                    recommendations=["Contact support to reactivate the account"],
                )

        since = utcnow() - timedelta(minutes=1)
        ip_limit = settings.login_ip_limit_per_minute
        user_limit = settings.login_user_limit_per_minute
        ip_attempts = await self._count_events(db, LOGIN_EVENT_TYPES, since, ip_address=ip_address)
        user_attempts = (
            await self._count_events(db, LOGIN_EVENT_TYPES, since, user_id=user_id)
            if user_id is not None
            else 0
        )

        risk = 10
        risk += math.floor(min(ip_attempts, ip_limit) / ip_limit * 40)
        risk += math.floor(min(user_attempts, user_limit) / user_limit * 40)
        risk = min(risk, 95)

        recommendations: List[str] = []
        if ip_attempts >= ip_limit or user_attempts >= user_limit:
            return SecurityCheckResponse(
                allowed=False,
                risk_score=max(risk, 85),
                reason=RATE_LIMIT_REASON,
                recommendations=["Wait a minute before trying again"],
            )
        if risk >= 50:
            recommendations.append("Require additional verification")
        return SecurityCheckResponse(allowed=True, risk_score=risk, recommendations=recommendations)

    async def check_transaction_security(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        ip_address: str,
        amount: float,
        payment_method: Optional[str] = None,
    ) -> SecurityCheckResponse:
        """
        Pre-purchase check. Each check is recorded as a `purchase` event so
        that repeated attempts count against the per-minute limit.
        """
        if await self.is_ip_blocked(db, ip_address):
            return SecurityCheckResponse(allowed=False, risk_score=100, reason=BLOCKED_IP_REASON)

        since = utcnow() - timedelta(minutes=1)
        limit = settings.transaction_limit_per_minute
        attempts = await self._count_events(db, ("purchase",), since, user_id=user_id)

        risk = 15 + math.floor(min(attempts, limit) / limit * 40)
        reasons: List[str] = []
        recommendations: List[str] = []
        if amount >= settings.transaction_amount_threshold:
            risk += 30
            reasons.append("High amount transaction")
            recommendations.append("Require additional verification")
        allowed = attempts < limit
        if not allowed:
            risk = max(risk, 85)
            reasons.insert(0, "Transaction rate limit exceeded")
        risk = min(risk, 99)

        await self.log_event(
            db,
            "purchase",
            user_id=user_id,
            ip_address=ip_address,
            data={"amount": amount, "payment_method": payment_method, "allowed": allowed},
            risk_score=risk,
        )
        return SecurityCheckResponse(
            allowed=allowed,
            risk_score=risk,
            reason="; ".join(reasons) or None,
            recommendations=recommendations,
        )

    async def calculate_risk_score(
        self,
        db: AsyncSession,
        user_id: Optional[uuid.UUID] = None,
        ip_address: Optional[str] = None,
        amount: Optional[float] = None,
    ) -> RiskScoreResponse:
        factors: List[str] = []
        if ip_address and await self.is_ip_blocked(db, ip_address):
            return RiskScoreResponse(risk_score=100, factors=[BLOCKED_IP_REASON])

        score = 0
        if user_id is not None:
            since = utcnow() - timedelta(minutes=settings.failed_login_window_minutes)
            failed = await self._count_events(db, ("failed_login",), since, user_id=user_id)
            if failed:
                score += min(40, failed * 10)
                factors.append(f"{failed} recent failed logins")

            window = utcnow() - timedelta(minutes=settings.suspicious_window_minutes)
            volume = await self._count_events(
                db, tuple(SECURITY_EVENT_TYPES), window, user_id=user_id
            )
            if volume >= settings.suspicious_event_threshold:
                score += 20
                factors.append("High activity volume")

        if amount is not None and amount >= settings.transaction_amount_threshold:
            score += 30
            factors.append("High amount transaction")

        return RiskScoreResponse(risk_score=min(score, 100), factors=factors)

    async def validate_user_activity(self, db: AsyncSession, user_id: uuid.UUID) -> tuple:
        """Returns (allowed, events in the last minute) against the per-user activity limit."""
        since = utcnow() - timedelta(minutes=1)
        count = await self._count_events(db, tuple(SECURITY_EVENT_TYPES), since, user_id=user_id)
        return count < settings.user_activity_limit_per_minute, count

    # ══════════════════════════════════════════════════════════════════════
    # IP blocking
    # ══════════════════════════════════════════════════════════════════════

    async def block_ip(
        self,
        db: AsyncSession,
        ip_address: str,
        reason: str,
        minutes: Optional[int] = None,
        created_by: Optional[uuid.UUID] = None,
    ) -> IPBlockResponse:
        minutes = minutes or settings.ip_block_default_minutes
        blocked_until = utcnow() + timedelta(minutes=minutes)

        # One active block per address; a new block replaces the old one
        await db.execute(
            update(IPBlock)
            .where(IPBlock.ip_address == ip_address, IPBlock.is_active.is_(True))
            .values(is_active=False)
        )
        block = IPBlock(
            ip_address=ip_address,
            reason=reason,
            blocked_until=blocked_until,
            created_by=created_by,
        )
        db.add(block)
        await db.flush()

        await cache.set(
            _blocked_ip_key(ip_address),
            {"until": blocked_until.isoformat(), "reason": reason},
            ttl=minutes * 60,
        )
        await self.log_event(
            db, "ip_blocked", ip_address=ip_address, data={"reason": reason, "minutes": minutes}, risk_score=90
        )
        logger.warning("Blocked IP %s for %d minutes: %s", ip_address, minutes, reason)
        return IPBlockResponse.model_validate(block)

    async def unblock_ip(self, db: AsyncSession, ip_address: str) -> None:
        result = await db.execute(
            update(IPBlock)
            .where(IPBlock.ip_address == ip_address, IPBlock.is_active.is_(True))
            .values(is_active=False)
        )
        await cache.delete(_blocked_ip_key(ip_address))
        if not result.rowcount:
            raise NotFoundError(resource="ip block", resource_id=ip_address)
        logger.info("Unblocked IP %s", ip_address)

    async def _active_block(self, db: AsyncSession, ip_address: str) -> Optional[IPBlock]:
        result = await db.execute(
            select(IPBlock)
            .where(IPBlock.ip_address == ip_address, IPBlock.is_active.is_(True))
            .order_by(IPBlock.blocked_until.desc())
        )
        now = utcnow()
        active = None
        for block in result.scalars().all():
            if as_utc(block.blocked_until) <= now:
                block.is_active = False
            elif active is None:
                active = block
        await db.flush()
        return active

    async def is_ip_blocked(self, db: AsyncSession, ip_address: str) -> bool:
        if await cache.get(_blocked_ip_key(ip_address)) is not None:
            return True
        return await self._active_block(db, ip_address) is not None

    async def get_ip_status(self, db: AsyncSession, ip_address: str) -> IPStatusResponse:
        block = await self._active_block(db, ip_address)
        if block is None:
            return IPStatusResponse(ip_address=ip_address, blocked=False)
        return IPStatusResponse(
            ip_address=ip_address,
            blocked=True,
            blocked_until=block.blocked_until,
            reason=block.reason,
        )

    async def list_blocked_ips(self, db: AsyncSession) -> List[IPBlockResponse]:
        result = await db.execute(
            select(IPBlock)
            .where(IPBlock.is_active.is_(True), IPBlock.blocked_until > utcnow())
            .order_by(IPBlock.created_at.desc())
        )
        return [IPBlockResponse.model_validate(b) for b in result.scalars().all()]

    # ══════════════════════════════════════════════════════════════════════
    # Alerts
    # ══════════════════════════════════════════════════════════════════════

    async def create_alert(
        self,
        db: AsyncSession,
        type: str,
        severity: str,
        message: str,
        user_id: Optional[uuid.UUID] = None,
        ip_address: Optional[str] = None,
        data: Optional[dict] = None,
    ) -> SecurityAlert:
        alert = SecurityAlert(
            type=type,
            severity=severity,
            message=message[:500],
            user_id=user_id,
            ip_address=ip_address,
            data=data or {},
        )
        db.add(alert)
        await db.flush()
        log = logger.error if severity in ("high", "critical") else logger.warning
        log("Security alert [%s/%s]: %s", type, severity, message)
        return alert

    async def list_alerts(
        self,
        db: AsyncSession,
        type: Optional[str] = None,
        severity: Optional[str] = None,
        resolved: Optional[bool] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> AlertListResponse:
        conditions = []
        if type:
            conditions.append(SecurityAlert.type == type)
        if severity:
            conditions.append(SecurityAlert.severity == severity)
        if resolved is not None:
            conditions.append(SecurityAlert.resolved == resolved)

        result = await db.execute(
            select(SecurityAlert)
            .where(*conditions)
            .order_by(SecurityAlert.created_at.desc())
            .limit(page_size)
            .offset((page - 1) * page_size)
        )
        total = (await db.execute(select(func.count(SecurityAlert.id)).where(*conditions))).scalar() or 0
        return AlertListResponse(
            items=[AlertResponse.model_validate(a) for a in result.scalars().all()],
            total=total,
            page=page,
            page_size=page_size,
        )

    async def active_alerts(self, db: AsyncSession, limit: int = 200) -> List[AlertResponse]:
        result = await db.execute(
            select(SecurityAlert)
            .where(SecurityAlert.resolved.is_(False))
            .order_by(SecurityAlert.created_at.desc())
            .limit(limit)
        )
        return [AlertResponse.model_validate(a) for a in result.scalars().all()]

    async def resolve_alert(
        self, db: AsyncSession, alert_id: uuid.UUID, resolved_by: Optional[uuid.UUID] = None
    ) -> AlertResponse:
        alert = await db.get(SecurityAlert, alert_id)
        if alert is None:
            raise NotFoundError(resource="alert", resource_id=str(alert_id))
        if alert.resolved:
            raise ConflictError("Alert is already resolved")
        alert.resolved = True
        alert.resolved_at = utcnow()
        alert.resolved_by = resolved_by
        await db.flush()
        return AlertResponse.model_validate(alert)

    async def _open_alert(
        self,
        db: AsyncSession,
        type: str,
        since: datetime,
        user_id: Optional[uuid.UUID] = None,
        ip_address: Optional[str] = None,
    ) -> Optional[SecurityAlert]:
        """An unresolved alert of this type for the same subject raised inside the window."""
        conditions = [
            SecurityAlert.type == type,
            SecurityAlert.resolved.is_(False),
            SecurityAlert.created_at >= since,
        ]
        if user_id is not None:
            conditions.append(SecurityAlert.user_id == user_id)
        if ip_address is not None:
            conditions.append(SecurityAlert.ip_address == ip_address)
        result = await db.execute(select(SecurityAlert).where(*conditions).limit(1))
        return result.scalars().first()

    # ══════════════════════════════════════════════════════════════════════
    # Monitoring
    # ══════════════════════════════════════════════════════════════════════

    async def check_multiple_failed_logins(
        self,
        db: AsyncSession,
        user_id: Optional[uuid.UUID] = None,
        ip_address: Optional[str] = None,
    ) -> Optional[AlertResponse]:
        """
        Raise (or return the already open) alert when failed logins inside
        the window reach the threshold. Counted per user when a user is
        known, otherwise per IP.
        """
        if user_id is None and ip_address is None:
            return None
        since = utcnow() - timedelta(minutes=settings.failed_login_window_minutes)
        subject = {"user_id": user_id} if user_id is not None else {"ip_address": ip_address}
        failed = await self._count_events(db, ("failed_login",), since, **subject)
        threshold = settings.failed_login_threshold
        if failed < threshold:
            return None

        existing = await self._open_alert(db, "multiple_failed_logins", since, **subject)
        if existing is not None:
            return AlertResponse.model_validate(existing)

        severity = "high" if failed >= threshold * 2 else "medium"
        alert = await self.create_alert(
            db,
            type="multiple_failed_logins",
            severity=severity,
            message=f"{failed} failed login attempts in {settings.failed_login_window_minutes} minutes",
            user_id=user_id,
            ip_address=ip_address,
            data={"failed_attempts": failed},
        )
        return AlertResponse.model_validate(alert)

    async def detect_suspicious_activity(
        self, db: AsyncSession, user_id: uuid.UUID
    ) -> SuspiciousActivityResponse:
        window = settings.suspicious_window_minutes
        threshold = settings.suspicious_event_threshold
        since = utcnow() - timedelta(minutes=window)

        count = await self._count_events(db, tuple(SECURITY_EVENT_TYPES), since, user_id=user_id)
        high_risk = (
            await db.execute(
                select(func.count(SecurityEvent.id)).where(
                    SecurityEvent.user_id == user_id,
                    SecurityEvent.created_at >= since,
                    SecurityEvent.risk_score >= settings.high_risk_score,
                )
            )
        ).scalar() or 0

        score = min(99, math.floor(count / threshold * 60 + high_risk * 20))
        reasons: List[str] = []
        if count >= threshold:
            reasons.append(f"High activity volume: {count} events in {window} minutes")
        if high_risk:
            reasons.append(f"{high_risk} high-risk events in {window} minutes")
        suspicious = bool(reasons)

        if suspicious and await self._open_alert(db, "suspicious_activity", since, user_id=user_id) is None:
            await self.log_event(
                db, "suspicious_activity", user_id=user_id, data={"reasons": reasons}, risk_score=score
            )
            await self.create_alert(
                db,
                type="suspicious_activity",
                severity="high" if score >= settings.high_risk_score else "medium",
                message="; ".join(reasons),
                user_id=user_id,
                data={"score": score, "event_count": count, "high_risk_events": high_risk},
            )

        return SuspiciousActivityResponse(
            user_id=user_id,
            suspicious=suspicious,
            score=score,
            event_count=count,
            high_risk_events=high_risk,
            reasons=reasons,
        )

    async def analyze_user_behavior(
        self, db: AsyncSession, user_id: uuid.UUID, days: int = 7
    ) -> UserBehaviorResponse:
        since = utcnow() - timedelta(days=days)
        conditions = [SecurityEvent.user_id == user_id, SecurityEvent.created_at >= since]

        by_type = await db.execute(
            select(SecurityEvent.type, func.count(SecurityEvent.id))
            .where(*conditions)
            .group_by(SecurityEvent.type)
        )
        events_by_type = {event_type: count for event_type, count in by_type.all()}

        summary = (
            await db.execute(
                select(
                    func.avg(SecurityEvent.risk_score),
                    func.max(SecurityEvent.created_at),
                    func.count(func.distinct(SecurityEvent.ip_address)),
                ).where(*conditions)
            )
        ).one()
        average_risk, last_activity, unique_ips = summary

        return UserBehaviorResponse(
            user_id=user_id,
            days=days,
            total_events=sum(events_by_type.values()),
            events_by_type=events_by_type,
            unique_ips=unique_ips or 0,
            average_risk_score=round(float(average_risk or 0), 2),
            last_activity=as_utc(last_activity),
        )


# ── Singleton Instance ────────────────────────────────────────────────────
security_service = SecurityService()
