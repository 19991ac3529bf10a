"""
Game Platform Backend: User & Session Models
==============================================

What:  ORM models for accounts (`users`), login sessions (`user_sessions`)
       and revoked JWT ids (`revoked_tokens`).
Why:   The user service owns identity; every other service refers to users
       by id only.
Who:   auth_service, user_service, security dependencies, Alembic.

Table Design Rationale:
    - Soft delete: `deleted_at` keeps reviews, messages and security history
      referentially intact after an account is closed
    - Sessions store the jti of the current access/refresh pair, so logout
      and refresh rotation can revoke exactly those tokens
    - revoked_tokens rows are only needed until the token would have expired
      anyway; `expires_at` lets a cleanup job purge them
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from gameplatform.database import Base, utcnow

USER_ROLES = ("user", "developer", "publisher", "admin")
ONLINE_STATUSES = ("online", "offline", "away", "in_game")


def default_privacy_settings() -> dict:
    return {"profile_visibility": "public", "show_online_status": True}


class User(Base):
    """
    A platform account.

    Lifecycle:
        1. Created by registration (role='user', online_status='online')
        2. Role upgraded to developer/publisher when a studio profile is approved
        3. Deactivated by an admin (is_active=False) or soft-deleted by the owner
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    username: Mapped[str] = mapped_column(String(50), nullable=False, unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    # ── Profile ───────────────────────────────────────────────────────────
    display_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    avatar_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    bio: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Values: user, developer, publisher, admin
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="user")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # ── Presence ──────────────────────────────────────────────────────────
    # Values: online, offline, away, in_game
    online_status: Mapped[str] = mapped_column(String(20), nullable=False, default="offline")
    current_game: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    preferences: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    privacy_settings: Mapped[dict] = mapped_column(
        JSON, nullable=False, default=default_privacy_settings
    )

    # ── Timestamps ────────────────────────────────────────────────────────
    last_login_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    last_seen_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username='{self.username}', role='{self.role}')>"


class UserSession(Base):
    """One login: the currently valid access/refresh jti pair plus client info."""

    __tablename__ = "user_sessions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    access_jti: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    refresh_jti: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    last_used_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    invalidated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    # logout, logout_all, session_limit, password_change, account_deleted, ...
    invalidation_reason: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    __table_args__ = (
        Index("idx_user_sessions_user_active", "user_id", "is_active"),
    )


class RevokedToken(Base):
    """Blacklisted JWT id. Checked on every authenticated request."""

    __tablename__ = "revoked_tokens"

    jti: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True, index=True)
    token_type: Mapped[str] = mapped_column(String(10), nullable=False)
    reason: Mapped[str] = mapped_column(String(50), nullable=False, default="logout")
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    revoked_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
