"""
Game Platform Backend: Notification Service
=============================================

What:  Per-user notification inbox plus delivery preferences.
Why:   Friend requests, messages, reviews and verification decisions all
       need to reach users; recipients decide what they want to receive.
Who:   Called by the notifications router and, in-process, by the auth,
       social, review and verification services.

Suppression Rules (create_notification):
    1. Both in-app and e-mail disabled            → suppressed (returns None)
    2. The type's category is disabled            → suppressed
       (new_message, review and security have no category and always pass)
    3. Requested channels filtered by settings    → suppressed if none remain
    4. Otherwise the row is stored; the e-mail channel is delivered through
       the notification sender and a delivery failure is only logged
"""

import logging
import uuid
from typing import List, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from gameplatform.cache import cache
from gameplatform.database import utcnow
from gameplatform.exceptions import NotFoundError, NotificationDeliveryError
from gameplatform.models.notification import Notification, NotificationSettings
from gameplatform.models.user import User
from gameplatform.schemas.notification import (
    NotificationListResponse,
    NotificationResponse,
    NotificationSettingsResponse,
    NotificationSettingsUpdate,
)
from gameplatform.services.notification_sender import email_sender

logger = logging.getLogger(__name__)

SETTINGS_CACHE_TTL = 3600

# Notification type → NotificationSettings flag that can switch it off
CATEGORY_BY_TYPE = {
    "friend_request": "friend_requests",
    "friend_accepted": "friend_requests",
    "game_update": "game_updates",
    "achievement": "achievements",
    "purchase": "purchases",
    "system": "system_notifications",
    "verification": "system_notifications",
}


def _settings_key(user_id: uuid.UUID) -> str:
    return f"notification_settings:{user_id}"


class NotificationService:

    # ── Settings ──────────────────────────────────────────────────────────

    async def _load_or_create_settings(self, db: AsyncSession, user_id: uuid.UUID) -> NotificationSettings:
        row = await db.get(NotificationSettings, user_id)
        if row is None:
            row = NotificationSettings(user_id=user_id)
            db.add(row)
            await db.flush()
        return row

    async def get_settings(self, db: AsyncSession, user_id: uuid.UUID) -> NotificationSettingsResponse:
        cached = await cache.get(_settings_key(user_id))
        if cached is not None:
            return NotificationSettingsResponse(**cached)
        row = await self._load_or_create_settings(db, user_id)
        result = NotificationSettingsResponse.model_validate(row)
        await cache.set(_settings_key(user_id), result.model_dump(), ttl=SETTINGS_CACHE_TTL)
        return result

    async def update_settings(
        self, db: AsyncSession, user_id: uuid.UUID, data: NotificationSettingsUpdate
    ) -> NotificationSettingsResponse:
        row = await self._load_or_create_settings(db, user_id)
        for field, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
            setattr(row, field, value)
        await db.flush()
        result = NotificationSettingsResponse.model_validate(row)
        await cache.set(_settings_key(user_id), result.model_dump(), ttl=SETTINGS_CACHE_TTL)
        logger.info("Notification settings updated for user %s", user_id)
        return result

    # ── Creation ──────────────────────────────────────────────────────────

    async def create_notification(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        type: str,
        title: str,
        message: str,
        data: Optional[dict] = None,
        channels: Optional[List[str]] = None,
    ) -> Optional[NotificationResponse]:
        """
        Store (and, for the e-mail channel, deliver) a notification.

        Returns:
            The stored notification, or None when the recipient's settings
            suppressed it.
        """
        prefs = await self.get_settings(db, user_id)

        if not prefs.in_app_enabled and not prefs.email_enabled:
            logger.debug("Notification %s for %s suppressed: all channels off", type, user_id)
            return None

        category = CATEGORY_BY_TYPE.get(type)
        if category and not getattr(prefs, category):
            logger.debug("Notification %s for %s suppressed: %s off", type, user_id, category)
            return None

        requested = channels or ["in_app"]
        allowed = [
            channel for channel in dict.fromkeys(requested)
            if (channel == "in_app" and prefs.in_app_enabled)
            or (channel == "email" and prefs.email_enabled)
        ]
        if not allowed:
            logger.debug("Notification %s for %s suppressed: no allowed channel", type, user_id)
            return None

        notification = Notification(
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            data=data or {},
            channels=allowed,
        )
        db.add(notification)
        await db.flush()

        if "email" in allowed:
            await self._deliver_email(db, user_id, title, message, data or {})

        return NotificationResponse.model_validate(notification)

    async def _deliver_email(
        self, db: AsyncSession, user_id: uuid.UUID, title: str, message: str, data: dict
    ) -> None:
        user = await db.get(User, user_id)
        if user is None or user.deleted_at is not None:
            return
        try:
            await email_sender.send(recipient=user.email, subject=title, body=message, data=data)
        except NotificationDeliveryError as e:
            logger.warning("E-mail for user %s not delivered: %s", user_id, e.message)

    # ── Inbox ─────────────────────────────────────────────────────────────

    async def list_notifications(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        limit: int = 20,
        offset: int = 0,
        type: Optional[str] = None,
        is_read: Optional[bool] = None,
    ) -> NotificationListResponse:
        conditions = [Notification.user_id == user_id]
        if type:
            conditions.append(Notification.type == type)
        if is_read is not None:
            conditions.append(Notification.is_read == is_read)

        result = await db.execute(
            select(Notification)
            .where(*conditions)
            .order_by(Notification.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        items = [NotificationResponse.model_validate(n) for n in result.scalars().all()]
        total = (
            await db.execute(select(func.count(Notification.id)).where(*conditions))
        ).scalar() or 0

        return NotificationListResponse(
            items=items,
            total=total,
            unread_count=await self.unread_count(db, user_id),
            limit=limit,
            offset=offset,
        )

    async def unread_count(self, db: AsyncSession, user_id: uuid.UUID) -> int:
        result = await db.execute(
            select(func.count(Notification.id)).where(
                Notification.user_id == user_id,
                Notification.is_read.is_(False),
            )
        )
        return result.scalar() or 0

    async def _get_owned(self, db: AsyncSession, user_id: uuid.UUID, notification_id: uuid.UUID) -> Notification:
        notification = await db.get(Notification, notification_id)
        # Someone else's notification is reported as missing
        if notification is None or notification.user_id != user_id:
            raise NotFoundError(resource="notification", resource_id=str(notification_id))
        return notification

    async def mark_as_read(
        self, db: AsyncSession, user_id: uuid.UUID, notification_id: uuid.UUID
    ) -> NotificationResponse:
        notification = await self._get_owned(db, user_id, notification_id)
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = utcnow()
            await db.flush()
        return NotificationResponse.model_validate(notification)

    async def mark_all_as_read(self, db: AsyncSession, user_id: uuid.UUID) -> int:
        result = await db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True, read_at=utcnow())
        )
        return result.rowcount or 0

    async def delete_notification(
        self, db: AsyncSession, user_id: uuid.UUID, notification_id: uuid.UUID
    ) -> None:
        notification = await self._get_owned(db, user_id, notification_id)
        await db.delete(notification)
        await db.flush()

    async def purge_user(self, db: AsyncSession, user_id: uuid.UUID) -> None:
        """Drops the inbox of a deleted account."""
        await db.execute(delete(Notification).where(Notification.user_id == user_id))
        await cache.delete(_settings_key(user_id))


# ── Singleton Instance ────────────────────────────────────────────────────
notification_service = NotificationService()
