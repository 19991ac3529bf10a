"""
Game Platform Backend: Notification Models
============================================

What:  `notifications` (per-user inbox) and `notification_settings` (one row per user).
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from gameplatform.database import Base, utcnow

NOTIFICATION_TYPES = (
    "friend_request",
    "friend_accepted",
    "new_message",
    "game_update",
    "achievement",
    "purchase",
    "review",
    "verification",
    "security",
    "system",
)
NOTIFICATION_CHANNELS = ("in_app", "email")


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    # Payload for the client, e.g. {"request_id": ..., "from_user_id": ...}
    data: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    channels: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    read_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    __table_args__ = (
        Index("idx_notifications_user_created", "user_id", "created_at"),
        Index("idx_notifications_user_read", "user_id", "is_read"),
    )


class NotificationSettings(Base):
    __tablename__ = "notification_settings"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    # Channels
    email_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    in_app_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    # Categories
    friend_requests: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    game_updates: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    achievements: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    purchases: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    system_notifications: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )
