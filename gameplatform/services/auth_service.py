"""
Game Platform Backend: Authentication Service
===============================================

What:  Registration, login, token refresh/rotation, logout, password change
       and per-request token authentication.
Why:   Sessions and revocation live in the database so that logout, password
       changes and account deactivation take effect immediately, even though
       JWTs are otherwise stateless.
How:   Each login creates a UserSession holding the jti of its current
       access/refresh pair. Invalidating a session revokes both jtis.
Who:   auth router, dependencies.get_current_user, user_service.

Login Flow:
    1. Security login check (blocked IP, locked account, per-minute limits)
    2. Credential check; failures are recorded as `failed_login` events and
       committed even though the request fails with 401
    3. Session issued; the oldest sessions beyond MAX_SESSIONS_PER_USER are
       invalidated with reason `session_limit`
"""

import logging
import re
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, Optional, Tuple

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from gameplatform.config import settings
from gameplatform.database import as_utc, utcnow
from gameplatform.exceptions import (
    AuthenticationError,
    ConflictError,
    ForbiddenError,
    RateLimitExceededError,
    ValidationError,
)
from gameplatform.models.user import RevokedToken, User, UserSession
from gameplatform.schemas.user import (
    RegisterRequest,
    TokenResponse,
    TokenValidationResponse,
    UserResponse,
)
from gameplatform.security import (
    ACCESS,
    REFRESH,
    create_token,
    decode_token,
    hash_password,
    verify_password,
)
from gameplatform.services.notification_service import notification_service
from gameplatform.services.security_service import (
    RATE_LIMIT_REASON,
    security_service,
)

logger = logging.getLogger(__name__)

_LETTER = re.compile(r"[A-Za-z]")
_DIGIT = re.compile(r"\d")


def check_password_policy(password: str) -> None:
    if len(password) < 8 or not _LETTER.search(password) or not _DIGIT.search(password):
        raise ValidationError(
            "Password must be at least 8 characters and contain a letter and a digit",
            field="password",
        )


def _expiry(payload: Dict[str, Any]) -> datetime:
    return datetime.fromtimestamp(payload["exp"], tz=timezone.utc)


class AuthService:

    # ══════════════════════════════════════════════════════════════════════
    # Registration & login
    # ══════════════════════════════════════════════════════════════════════

    async def register(
        self,
        db: AsyncSession,
        data: RegisterRequest,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> TokenResponse:
        email = data.email.lower()
        check_password_policy(data.password)

        existing = await db.execute(
            select(User.email, User.username).where(
                or_(User.email == email, User.username == data.username)
            )
        )
        for found_email, found_username in existing.all():
            if found_email == email:
                raise ConflictError("Email is already registered")
            if found_username == data.username:
                raise ConflictError("Username is already taken")

        user = User(
            email=email,
            username=data.username,
            password_hash=hash_password(data.password),
            display_name=data.display_name or data.username,
            online_status="online",
            last_login_at=utcnow(),
        )
        db.add(user)
        try:
            await db.flush()
        except IntegrityError:
            # Concurrent registration with the same e-mail or username
            raise ConflictError("Email or username is already registered")

        tokens = await self._issue_session(db, user, ip_address, user_agent)
        await security_service.log_event(
            db, "registration", user_id=user.id, ip_address=ip_address, user_agent=user_agent
        )
        await notification_service.create_notification(
            db,
            user_id=user.id,
            type="system",
            title="Welcome to the platform!",
            message=f"Hi {user.display_name}, your account is ready.",
        )
        logger.info("Registered user %s (%s)", user.id, user.username)
        return tokens

    async def login(
        self,
        db: AsyncSession,
        email: str,
        password: str,
        ip_address: str,
        user_agent: Optional[str] = None,
    ) -> TokenResponse:
        email = email.lower()
        result = await db.execute(
            select(User).where(User.email == email, User.deleted_at.is_(None))
        )
        user = result.scalars().first()

        check = await security_service.check_login_security(
            db, ip_address, user_id=user.id if user else None, user_agent=user_agent
        )
        if not check.allowed:
            if check.reason == RATE_LIMIT_REASON:
                raise RateLimitExceededError(
                    retry_after=60, message="Too many login attempts, try again in a minute"
                )
            raise ForbiddenError(check.reason or "Login not allowed")

        if user is None or not verify_password(password, user.password_hash):
            await security_service.log_event(
                db,
                "failed_login",
                user_id=user.id if user else None,
                ip_address=ip_address,
                user_agent=user_agent,
                data={"email": email},
                risk_score=check.risk_score,
            )
            await security_service.check_multiple_failed_logins(
                db, user_id=user.id if user else None, ip_address=ip_address
            )
            # The failure trail must survive the 401 rollback
            await db.commit()
            logger.warning("Failed login for %s from %s", email, ip_address)
            raise AuthenticationError("Invalid email or password")

        if not user.is_active:
            raise ForbiddenError("Account is deactivated")

        user.last_login_at = utcnow()
        user.last_seen_at = user.last_login_at
        user.online_status = "online"
        tokens = await self._issue_session(db, user, ip_address, user_agent)
        await security_service.log_event(
            db,
            "login",
            user_id=user.id,
            ip_address=ip_address,
            user_agent=user_agent,
            risk_score=check.risk_score,
        )
        logger.info("User %s logged in from %s", user.id, ip_address)
        return tokens

    # ══════════════════════════════════════════════════════════════════════
    # Sessions
    # ══════════════════════════════════════════════════════════════════════

    async def _issue_session(
        self,
        db: AsyncSession,
        user: User,
        ip_address: Optional[str],
        user_agent: Optional[str],
    ) -> TokenResponse:
        await self._enforce_session_limit(db, user, ip_address)

        now = utcnow()
        access_token, access_jti, _ = create_token(user.id, user.email, user.role, ACCESS, now)
        refresh_token, refresh_jti, refresh_expires = create_token(
            user.id, user.email, user.role, REFRESH, now
        )
        db.add(
            UserSession(
                user_id=user.id,
                access_jti=access_jti,
                refresh_jti=refresh_jti,
                ip_address=ip_address,
                user_agent=(user_agent or "")[:500] or None,
                expires_at=refresh_expires,
            )
        )
        await db.flush()
        return TokenResponse(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=settings.access_token_ttl,
            user=UserResponse.model_validate(user),
        )

    async def _enforce_session_limit(
        self, db: AsyncSession, user: User, ip_address: Optional[str]
    ) -> None:
        """Make room for one more session by invalidating the oldest active ones."""
        result = await db.execute(
            select(UserSession)
            .where(UserSession.user_id == user.id, UserSession.is_active.is_(True))
            .order_by(UserSession.created_at.asc())
        )
        active = list(result.scalars().all())
        excess = len(active) - settings.max_sessions_per_user + 1
        if excess <= 0:
            return
        await self._invalidate(db, active[:excess], reason="session_limit")
        await security_service.log_event(
            db,
            "session_limit",
            user_id=user.id,
            ip_address=ip_address,
            data={"invalidated_sessions": excess, "limit": settings.max_sessions_per_user},
        )
        logger.info("Session limit reached for user %s; invalidated %d session(s)", user.id, excess)

    async def _revoke(
        self,
        db: AsyncSession,
        jti: str,
        user_id: Optional[uuid.UUID],
        token_type: str,
        reason: str,
        expires_at: datetime,
    ) -> None:
        if await db.get(RevokedToken, jti) is None:
            db.add(
                RevokedToken(
                    jti=jti,
                    user_id=user_id,
                    token_type=token_type,
                    reason=reason,
                    expires_at=expires_at,
                )
            )

    async def _invalidate(
        self, db: AsyncSession, sessions: Iterable[UserSession], reason: str
    ) -> int:
        now = utcnow()
        # Upper bound for the access token's expiry; only used for cleanup
        access_expiry = now + timedelta(seconds=settings.access_token_ttl)
        count = 0
        for session in sessions:
            session.is_active = False
            session.invalidated_at = now
            session.invalidation_reason = reason
            await self._revoke(db, session.access_jti, session.user_id, ACCESS, reason, access_expiry)
            await self._revoke(db, session.refresh_jti, session.user_id, REFRESH, reason, session.expires_at)
            count += 1
        await db.flush()
        return count

    async def invalidate_all_sessions(self, db: AsyncSession, user_id: uuid.UUID, reason: str) -> int:
        result = await db.execute(
            select(UserSession).where(
                UserSession.user_id == user_id, UserSession.is_active.is_(True)
            )
        )
        return await self._invalidate(db, result.scalars().all(), reason)

    async def refresh(
        self,
        db: AsyncSession,
        refresh_token: str,
        ip_address: Optional[str] = None,
    ) -> TokenResponse:
        """Rotate the pair: the presented refresh token (and its access token) stop working."""
        payload = decode_token(refresh_token, expected_type=REFRESH)
        if await db.get(RevokedToken, payload["jti"]) is not None:
            raise AuthenticationError("Refresh token has been revoked")

        result = await db.execute(
            select(UserSession).where(UserSession.refresh_jti == payload["jti"])
        )
        session = result.scalars().first()
        if session is None or not session.is_active or as_utc(session.expires_at) <= utcnow():
            raise AuthenticationError("Session is no longer active")

        user = await db.get(User, payload["sub"])
        if user is None or user.is_deleted or not user.is_active:
            raise AuthenticationError("Account is not available")

        now = utcnow()
        await self._revoke(
            db, session.access_jti, user.id, ACCESS, "rotated",
            now + timedelta(seconds=settings.access_token_ttl),
        )
        await self._revoke(db, session.refresh_jti, user.id, REFRESH, "rotated", session.expires_at)

        access_token, access_jti, _ = create_token(user.id, user.email, user.role, ACCESS, now)
        new_refresh, refresh_jti, refresh_expires = create_token(user.id, user.email, user.role, REFRESH, now)
        session.access_jti = access_jti
        session.refresh_jti = refresh_jti
        session.expires_at = refresh_expires
        session.last_used_at = now
        await db.flush()

        await security_service.log_event(db, "token_refresh", user_id=user.id, ip_address=ip_address)
        return TokenResponse(
            access_token=access_token,
            refresh_token=new_refresh,
            expires_in=settings.access_token_ttl,
            user=UserResponse.model_validate(user),
        )

    async def logout(
        self,
        db: AsyncSession,
        user: User,
        access_payload: Dict[str, Any],
        refresh_token: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> None:
        result = await db.execute(
            select(UserSession).where(
                UserSession.user_id == user.id,
                UserSession.access_jti == access_payload["jti"],
                UserSession.is_active.is_(True),
            )
        )
        sessions = list(result.scalars().all())
        if sessions:
            await self._invalidate(db, sessions, reason="logout")
        else:
            await self._revoke(
                db, access_payload["jti"], user.id, ACCESS, "logout", _expiry(access_payload)
            )

        if refresh_token:
            refresh_payload = decode_token(refresh_token, expected_type=REFRESH)
            if refresh_payload["sub"] == user.id:
                await self._revoke(
                    db, refresh_payload["jti"], user.id, REFRESH, "logout", _expiry(refresh_payload)
                )

        if not await self._has_active_session(db, user.id):
            user.online_status = "offline"
        await db.flush()
        await security_service.log_event(db, "logout", user_id=user.id, ip_address=ip_address)
        logger.info("User %s logged out", user.id)

    async def logout_all(
        self, db: AsyncSession, user: User, ip_address: Optional[str] = None
    ) -> int:
        count = await self.invalidate_all_sessions(db, user.id, reason="logout_all")
        user.online_status = "offline"
        await db.flush()
        await security_service.log_event(
            db, "logout", user_id=user.id, ip_address=ip_address, data={"sessions": count}
        )
        logger.info("User %s logged out of %d session(s)", user.id, count)
        return count

    async def _has_active_session(self, db: AsyncSession, user_id: uuid.UUID) -> bool:
        result = await db.execute(
            select(UserSession.id).where(
                UserSession.user_id == user_id, UserSession.is_active.is_(True)
            )
        )
        return result.first() is not None

    # ══════════════════════════════════════════════════════════════════════
    # Credentials
    # ══════════════════════════════════════════════════════════════════════

    async def change_password(
        self,
        db: AsyncSession,
        user: User,
        current_password: str,
        new_password: str,
        ip_address: Optional[str] = None,
    ) -> None:
        if not verify_password(current_password, user.password_hash):
            raise AuthenticationError("Current password is incorrect")
        check_password_policy(new_password)
        if current_password == new_password:
            raise ValidationError("New password must differ from the current one", field="new_password")

        user.password_hash = hash_password(new_password)
        await self.invalidate_all_sessions(db, user.id, reason="password_change")
        await security_service.log_event(db, "password_change", user_id=user.id, ip_address=ip_address)
        logger.info("Password changed for user %s", user.id)

    # ══════════════════════════════════════════════════════════════════════
    # Token verification
    # ══════════════════════════════════════════════════════════════════════

    async def authenticate(self, db: AsyncSession, token: str) -> Tuple[User, Dict[str, Any]]:
        """
        Resolve an access token to its user.

        Raises:
            AuthenticationError: invalid, expired or revoked token, or the
                account is gone or deactivated
        """
        payload = decode_token(token, expected_type=ACCESS)
        if await db.get(RevokedToken, payload["jti"]) is not None:
            raise AuthenticationError("Token has been revoked")
        user = await db.get(User, payload["sub"])
        if user is None or user.is_deleted:
            raise AuthenticationError("Account no longer exists")
        if not user.is_active:
            raise AuthenticationError("Account is deactivated")
        return user, payload

    async def validate_token(self, db: AsyncSession, token: str) -> TokenValidationResponse:
        """Never raises; other services only need a yes/no and the identity."""
        try:
            user, _ = await self.authenticate(db, token)
        except AuthenticationError:
            return TokenValidationResponse(valid=False)
        return TokenValidationResponse(valid=True, user_id=user.id, email=user.email, role=user.role)


# ── Singleton Instance ────────────────────────────────────────────────────
auth_service = AuthService()
