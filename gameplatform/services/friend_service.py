"""
Game Platform Backend: Friend Service
=======================================

What:  Friend requests, friend lists and the friendship check used by
       messaging and profile privacy.

Request Lifecycle:
    send     → pending (a declined row for the pair is reused)
    accept   → accepted       (addressee only)
    decline  → declined       (addressee) / row deleted (requester cancels)
    remove   → row deleted    (either side of an accepted pair)
"""

import logging
import uuid
from typing import List, Optional

from sqlalchemy import and_, case, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from gameplatform.database import utcnow
from gameplatform.exceptions import ConflictError, NotFoundError, ValidationError
from gameplatform.models.social import Friendship
from gameplatform.models.user import User
from gameplatform.schemas.common import page_count
from gameplatform.schemas.social import (
    FriendListResponse,
    FriendRequestResponse,
    FriendResponse,
)
from gameplatform.schemas.user import UserSummary
from gameplatform.services.notification_service import notification_service

logger = logging.getLogger(__name__)


def _pair(a: uuid.UUID, b: uuid.UUID):
    return or_(
        and_(Friendship.requester_id == a, Friendship.addressee_id == b),
        and_(Friendship.requester_id == b, Friendship.addressee_id == a),
    )


def _request_response(friendship: Friendship, other: Optional[User]) -> FriendRequestResponse:
    return FriendRequestResponse(
        id=friendship.id,
        requester_id=friendship.requester_id,
        addressee_id=friendship.addressee_id,
        status=friendship.status,
        created_at=friendship.created_at,
        responded_at=friendship.responded_at,
        user=UserSummary.model_validate(other) if other is not None else None,
    )


class FriendService:

    async def _find_pair(self, db: AsyncSession, a: uuid.UUID, b: uuid.UUID) -> Optional[Friendship]:
        result = await db.execute(select(Friendship).where(_pair(a, b)))
        return result.scalars().first()

    async def are_friends(self, db: AsyncSession, a: uuid.UUID, b: uuid.UUID) -> bool:
        friendship = await self._find_pair(db, a, b)
        return friendship is not None and friendship.status == "accepted"

    async def send_request(self, db: AsyncSession, user: User, to_user_id: uuid.UUID) -> FriendRequestResponse:
        if to_user_id == user.id:
            raise ValidationError("You cannot send a friend request to yourself", field="user_id")
        target = await db.get(User, to_user_id)
        if target is None or target.is_deleted or not target.is_active:
            raise NotFoundError(resource="user", resource_id=str(to_user_id))

        friendship = await self._find_pair(db, user.id, to_user_id)
        if friendship is not None and friendship.status == "accepted":
            raise ConflictError("You are already friends")
        if friendship is not None and friendship.status == "pending":
            raise ConflictError("A friend request between you is already pending")

        if friendship is None:
            friendship = Friendship(requester_id=user.id, addressee_id=to_user_id)
            db.add(friendship)
        else:
            # Declined earlier; re-point the row to this request
            friendship.requester_id = user.id
            friendship.addressee_id = to_user_id
            friendship.status = "pending"
            friendship.created_at = utcnow()
            friendship.responded_at = None
        await db.flush()

        await notification_service.create_notification(
            db,
            user_id=to_user_id,
            type="friend_request",
            title="New friend request",
            message=f"{user.display_name or user.username} sent you a friend request",
            data={"request_id": str(friendship.id), "from_user_id": str(user.id)},
        )
        logger.info("Friend request %s: %s → %s", friendship.id, user.id, to_user_id)
        return _request_response(friendship, target)

    async def _pending_request(self, db: AsyncSession, request_id: uuid.UUID) -> Friendship:
        friendship = await db.get(Friendship, request_id)
        if friendship is None or friendship.status != "pending":
            raise NotFoundError(resource="friend request", resource_id=str(request_id))
        return friendship

    async def accept_request(self, db: AsyncSession, user: User, request_id: uuid.UUID) -> FriendRequestResponse:
        friendship = await self._pending_request(db, request_id)
        if friendship.addressee_id != user.id:
            raise NotFoundError(resource="friend request", resource_id=str(request_id))
        friendship.status = "accepted"
        friendship.responded_at = utcnow()
        await db.flush()

        requester = await db.get(User, friendship.requester_id)
        await notification_service.create_notification(
            db,
            user_id=friendship.requester_id,
            type="friend_accepted",
            title="Friend request accepted",
            message=f"{user.display_name or user.username} accepted your friend request",
            data={"user_id": str(user.id)},
        )
        return _request_response(friendship, requester)

    async def decline_request(self, db: AsyncSession, user: User, request_id: uuid.UUID) -> None:
        friendship = await self._pending_request(db, request_id)
        if friendship.addressee_id == user.id:
            friendship.status = "declined"
            friendship.responded_at = utcnow()
        elif friendship.requester_id == user.id:
            await db.delete(friendship)
        else:
            raise NotFoundError(resource="friend request", resource_id=str(request_id))
        await db.flush()

    async def remove_friend(self, db: AsyncSession, user: User, friend_id: uuid.UUID) -> None:
        friendship = await self._find_pair(db, user.id, friend_id)
        if friendship is None or friendship.status != "accepted":
            raise NotFoundError(resource="friend", resource_id=str(friend_id))
        await db.delete(friendship)
        await db.flush()
        logger.info("Friendship between %s and %s removed", user.id, friend_id)

    async def list_friends(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        page: int = 1,
        limit: int = 20,
        status: str = "all",
    ) -> FriendListResponse:
        other_id = case(
            (Friendship.requester_id == user_id, Friendship.addressee_id),
            else_=Friendship.requester_id,
        )
        conditions = [
            Friendship.status == "accepted",
            or_(Friendship.requester_id == user_id, Friendship.addressee_id == user_id),
            User.deleted_at.is_(None),
        ]
        if status == "online":
            conditions.append(User.online_status != "offline")
        elif status == "offline":
            conditions.append(User.online_status == "offline")

        base = select(User, Friendship.responded_at).join(Friendship, User.id == other_id).where(*conditions)
        result = await db.execute(
            base.order_by(User.username).limit(limit).offset((page - 1) * limit)
        )
        total = (
            await db.execute(
                select(func.count(Friendship.id)).join(User, User.id == other_id).where(*conditions)
            )
        ).scalar() or 0
        return FriendListResponse(
            items=[
                FriendResponse(user=UserSummary.model_validate(friend), friends_since=since)
                for friend, since in result.all()
            ],
            total=total,
            page=page,
            limit=limit,
            pages=page_count(total, limit),
        )

    async def list_incoming_requests(self, db: AsyncSession, user_id: uuid.UUID) -> List[FriendRequestResponse]:
        result = await db.execute(
            select(Friendship, User)
            .join(User, User.id == Friendship.requester_id)
            .where(Friendship.addressee_id == user_id, Friendship.status == "pending")
            .order_by(Friendship.created_at.desc())
        )
        return [_request_response(f, u) for f, u in result.all()]

    async def list_outgoing_requests(self, db: AsyncSession, user_id: uuid.UUID) -> List[FriendRequestResponse]:
        result = await db.execute(
            select(Friendship, User)
            .join(User, User.id == Friendship.addressee_id)
            .where(Friendship.requester_id == user_id, Friendship.status == "pending")
            .order_by(Friendship.created_at.desc())
        )
        return [_request_response(f, u) for f, u in result.all()]


# ── Singleton Instance ────────────────────────────────────────────────────
friend_service = FriendService()
