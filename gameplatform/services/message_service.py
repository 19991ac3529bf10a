"""
Game Platform Backend: Message Service
========================================

What:  Direct messages between friends.
Why:   Messaging is restricted to accepted friends and rate limited per
       sender to keep spam out of inboxes.
How:   Conversations are not stored separately; they are derived from the
       `messages` table by grouping on the other participant.

Rate Limit:
    MESSAGE_RATE_LIMIT messages per sender per rolling minute, counted
    from the messages table itself.
"""

import logging
import uuid
from datetime import timedelta
from typing import List

from sqlalchemy import and_, case, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from gameplatform.config import settings
from gameplatform.database import utcnow
from gameplatform.exceptions import (
    ForbiddenError,
    NotFoundError,
    RateLimitExceededError,
    ValidationError,
)
from gameplatform.models.social import Message
from gameplatform.models.user import User
from gameplatform.schemas.common import page_count
from gameplatform.schemas.social import (
    ConversationResponse,
    ConversationSummary,
    MessageResponse,
)
from gameplatform.schemas.user import UserSummary
from gameplatform.services.friend_service import friend_service
from gameplatform.services.notification_service import notification_service

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 100


def _between(a: uuid.UUID, b: uuid.UUID):
    return or_(
        and_(Message.sender_id == a, Message.recipient_id == b),
        and_(Message.sender_id == b, Message.recipient_id == a),
    )


class MessageService:

    async def send_message(
        self, db: AsyncSession, user: User, recipient_id: uuid.UUID, content: str
    ) -> MessageResponse:
        if recipient_id == user.id:
            raise ValidationError("You cannot message yourself", field="recipient_id")
        if not await friend_service.are_friends(db, user.id, recipient_id):
            raise ForbiddenError("You can only message your friends")

        since = utcnow() - timedelta(minutes=1)
        sent = (
            await db.execute(
                select(func.count(Message.id)).where(
                    Message.sender_id == user.id, Message.created_at >= since
                )
            )
        ).scalar() or 0
        if sent >= settings.message_rate_limit_per_minute:
            raise RateLimitExceededError(retry_after=60, message="You are sending messages too fast")

        message = Message(sender_id=user.id, recipient_id=recipient_id, content=content)
        db.add(message)
        await db.flush()

        preview = content if len(content) <= PREVIEW_LENGTH else content[:PREVIEW_LENGTH] + "..."
        await notification_service.create_notification(
            db,
            user_id=recipient_id,
            type="new_message",
            title=f"New message from {user.display_name or user.username}",
            message=preview,
            data={"message_id": str(message.id), "sender_id": str(user.id)},
        )
        return MessageResponse.model_validate(message)

    async def list_conversations(self, db: AsyncSession, user_id: uuid.UUID) -> List[ConversationSummary]:
        """Latest message per partner, newest conversation first."""
        partner = case((Message.sender_id == user_id, Message.recipient_id), else_=Message.sender_id)
        mine = or_(Message.sender_id == user_id, Message.recipient_id == user_id)

        latest = (
            select(partner.label("partner_id"), func.max(Message.created_at).label("last_at"))
            .where(mine)
            .group_by(partner)
            .subquery()
        )
        result = await db.execute(
            select(Message, User)
            .join(latest, and_(partner == latest.c.partner_id, Message.created_at == latest.c.last_at))
            .join(User, User.id == latest.c.partner_id)
            .where(mine)
            .order_by(Message.created_at.desc())
        )

        unread_rows = await db.execute(
            select(Message.sender_id, func.count(Message.id))
            .where(Message.recipient_id == user_id, Message.is_read.is_(False))
            .group_by(Message.sender_id)
        )
        unread = {sender: count for sender, count in unread_rows.all()}

        conversations = []
        seen = set()
        for message, partner_user in result.all():
            # Two messages with the same timestamp would both match the max
            if partner_user.id in seen:
                continue
            seen.add(partner_user.id)
            conversations.append(
                ConversationSummary(
                    partner=UserSummary.model_validate(partner_user),
                    last_message=MessageResponse.model_validate(message),
                    unread_count=unread.get(partner_user.id, 0),
                )
            )
        return conversations

    async def get_conversation(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        partner_id: uuid.UUID,
        page: int = 1,
        limit: int = 50,
    ) -> ConversationResponse:
        if not await friend_service.are_friends(db, user_id, partner_id):
            raise ForbiddenError("You can only view conversations with your friends")

        condition = _between(user_id, partner_id)
        result = await db.execute(
            select(Message)
            .where(condition)
            .order_by(Message.created_at.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )
        # Newest page first, each page in chronological order
        items = [MessageResponse.model_validate(m) for m in reversed(result.scalars().all())]
        total = (await db.execute(select(func.count(Message.id)).where(condition))).scalar() or 0
        return ConversationResponse(
            partner_id=partner_id,
            items=items,
            total=total,
            page=page,
            limit=limit,
            pages=page_count(total, limit),
        )

    async def mark_message_read(self, db: AsyncSession, user_id: uuid.UUID, message_id: uuid.UUID) -> MessageResponse:
        message = await db.get(Message, message_id)
        if message is None or message.recipient_id != user_id:
            raise NotFoundError(resource="message", resource_id=str(message_id))
        if not message.is_read:
            message.is_read = True
            message.read_at = utcnow()
            await db.flush()
        return MessageResponse.model_validate(message)

    async def mark_conversation_read(self, db: AsyncSession, user_id: uuid.UUID, partner_id: uuid.UUID) -> int:
        result = await db.execute(
            update(Message)
            .where(
                Message.sender_id == partner_id,
                Message.recipient_id == user_id,
                Message.is_read.is_(False),
            )
            .values(is_read=True, read_at=utcnow())
        )
        return result.rowcount or 0

    async def unread_messages_count(self, db: AsyncSession, user_id: uuid.UUID) -> int:
        result = await db.execute(
            select(func.count(Message.id)).where(
                Message.recipient_id == user_id, Message.is_read.is_(False)
            )
        )
        return result.scalar() or 0


# ── Singleton Instance ────────────────────────────────────────────────────
message_service = MessageService()
