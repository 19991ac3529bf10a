"""
Game Platform Backend: User Service
=====================================

What:  Profile reads and writes, user search, batch lookup, account deletion
       and admin account management.
Why:   Keeps privacy filtering and cache invalidation in one place instead
       of scattering them across routes.
How:   Stateless class; every method takes the request's AsyncSession.
       Public profiles are cached in Redis under `user:profile:{id}` and
       invalidated whenever the owner changes them.
Who:   users router.

Privacy Rules (public profile):
    profile_visibility = public    full public view
    profile_visibility = friends   full view for friends, limited otherwise
    profile_visibility = private   limited view for everyone but the owner
    show_online_status = false     online_status/current_game hidden from others
"""

import logging
import uuid
from typing import List, Optional

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from gameplatform.cache import cache
from gameplatform.database import utcnow
from gameplatform.exceptions import AuthenticationError, NotFoundError
from gameplatform.models.social import Friendship
from gameplatform.models.user import User
from gameplatform.schemas.common import page_count
from gameplatform.schemas.user import (
    PublicUserResponse,
    UserListResponse,
    UserResponse,
    UserSummary,
    UserUpdateRequest,
)
from gameplatform.security import verify_password
from gameplatform.services.auth_service import auth_service
from gameplatform.services.notification_service import notification_service

logger = logging.getLogger(__name__)

PROFILE_CACHE_TTL = 3600
NON_CLEARABLE_FIELDS = ("online_status", "privacy_settings", "preferences")


def _profile_key(user_id: uuid.UUID) -> str:
    return f"user:profile:{user_id}"


class UserService:

    async def get_active_user(self, db: AsyncSession, user_id: uuid.UUID) -> User:
        """Load a user that exists, is active and is not deleted; 404 otherwise."""
        user = await db.get(User, user_id)
        if user is None or user.is_deleted or not user.is_active:
            raise NotFoundError(resource="user", resource_id=str(user_id))
        return user

    async def _are_friends(self, db: AsyncSession, a: uuid.UUID, b: uuid.UUID) -> bool:
        result = await db.execute(
            select(Friendship.id).where(
                Friendship.status == "accepted",
                or_(
                    and_(Friendship.requester_id == a, Friendship.addressee_id == b),
                    and_(Friendship.requester_id == b, Friendship.addressee_id == a),
                ),
            )
        )
        return result.first() is not None

    # ── Profiles ──────────────────────────────────────────────────────────

    async def get_public_profile(
        self, db: AsyncSession, user_id: uuid.UUID, viewer_id: Optional[uuid.UUID] = None
    ) -> PublicUserResponse:
        cached = await cache.get(_profile_key(user_id))
        if cached is not None:
            profile = cached
        else:
            user = await self.get_active_user(db, user_id)
            profile = {
                **PublicUserResponse(
                    id=user.id,
                    username=user.username,
                    display_name=user.display_name,
                    avatar_url=user.avatar_url,
                    bio=user.bio,
                    role=user.role,
                    online_status=user.online_status,
                    current_game=user.current_game,
                    created_at=user.created_at,
                ).model_dump(mode="json"),
                "privacy_settings": user.privacy_settings or {},
            }
            await cache.set(_profile_key(user_id), profile, ttl=PROFILE_CACHE_TTL)

        privacy = profile.pop("privacy_settings", {}) or {}
        result = PublicUserResponse(**profile)
        if viewer_id == user_id:
            return result

        visibility = privacy.get("profile_visibility", "public")
        limited = visibility == "private" or (
            visibility == "friends"
            and (viewer_id is None or not await self._are_friends(db, user_id, viewer_id))
        )
        if limited:
            result = result.model_copy(update={"bio": None, "current_game": None, "is_limited": True})
        if limited or not privacy.get("show_online_status", True):
            result = result.model_copy(update={"online_status": None, "current_game": None})
        return result

    async def update_profile(
        self, db: AsyncSession, user: User, data: UserUpdateRequest
    ) -> UserResponse:
        changes = data.model_dump(exclude_unset=True)
        # null clears bio, avatar and the like; these columns always hold a value
        for field in NON_CLEARABLE_FIELDS:
            if field in changes and changes[field] is None:
                del changes[field]
        if "privacy_settings" in changes:
            changes["privacy_settings"] = {
                **(user.privacy_settings or {}),
                **changes["privacy_settings"],
            }
        for field, value in changes.items():
            setattr(user, field, value)
        user.last_seen_at = utcnow()
        await db.flush()
        await self.invalidate_profile(user.id)
        logger.info("Profile updated for user %s: %s", user.id, sorted(changes))
        return UserResponse.model_validate(user)

    async def invalidate_profile(self, user_id: uuid.UUID) -> None:
        await cache.delete(_profile_key(user_id))

    # ── Lookup ────────────────────────────────────────────────────────────

    async def search_users(
        self, db: AsyncSession, query: str, viewer_id: Optional[uuid.UUID] = None, limit: int = 20
    ) -> List[UserSummary]:
        pattern = f"%{query.strip()}%"
        conditions = [
            User.deleted_at.is_(None),
            User.is_active.is_(True),
            or_(User.username.ilike(pattern), User.display_name.ilike(pattern)),
        ]
        if viewer_id is not None:
            conditions.append(User.id != viewer_id)
        result = await db.execute(
            select(User).where(*conditions).order_by(User.username).limit(limit)
        )
        return [UserSummary.model_validate(u) for u in result.scalars().all()]

    async def get_users_by_ids(self, db: AsyncSession, ids: List[uuid.UUID]) -> List[UserSummary]:
        """Batch lookup; unknown or deleted ids are silently skipped."""
        result = await db.execute(
            select(User).where(User.id.in_(set(ids)), User.deleted_at.is_(None))
        )
        by_id = {u.id: u for u in result.scalars().all()}
        return [UserSummary.model_validate(by_id[i]) for i in dict.fromkeys(ids) if i in by_id]

    # ── Account lifecycle ─────────────────────────────────────────────────

    async def delete_account(self, db: AsyncSession, user: User, password: str) -> None:
        """
        Soft delete. E-mail and username are rewritten so they can be
        registered again; reviews and messages keep pointing at the row.
        """
        if not verify_password(password, user.password_hash):
            raise AuthenticationError("Password is incorrect")

        await auth_service.invalidate_all_sessions(db, user.id, reason="account_deleted")
        await notification_service.purge_user(db, user.id)

        tombstone = uuid.uuid4().hex[:12]
        user.email = f"deleted-{tombstone}@deleted.invalid"
        user.username = f"deleted_{tombstone}"
        user.display_name = None
        user.avatar_url = None
        user.bio = None
        user.current_game = None
        user.online_status = "offline"
        user.is_active = False
        user.deleted_at = utcnow()
        await db.flush()
        await self.invalidate_profile(user.id)
        logger.info("Account %s deleted", user.id)

    # ── Admin ─────────────────────────────────────────────────────────────

    async def list_users(
        self,
        db: AsyncSession,
        page: int = 1,
        limit: int = 20,
        role: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> UserListResponse:
        conditions = [User.deleted_at.is_(None)]
        if role:
            conditions.append(User.role == role)
        if is_active is not None:
            conditions.append(User.is_active == is_active)

        result = await db.execute(
            select(User)
            .where(*conditions)
            .order_by(User.created_at.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )
        total = (await db.execute(select(func.count(User.id)).where(*conditions))).scalar() or 0
        return UserListResponse(
            items=[UserResponse.model_validate(u) for u in result.scalars().all()],
            total=total,
            page=page,
            limit=limit,
            pages=page_count(total, limit),
        )

    async def set_active(self, db: AsyncSession, user_id: uuid.UUID, is_active: bool) -> UserResponse:
        user = await db.get(User, user_id)
        if user is None or user.is_deleted:
            raise NotFoundError(resource="user", resource_id=str(user_id))
        user.is_active = is_active
        if not is_active:
            user.online_status = "offline"
            await auth_service.invalidate_all_sessions(db, user.id, reason="deactivated")
        await db.flush()
        await self.invalidate_profile(user.id)
        logger.info("User %s %s", user.id, "activated" if is_active else "deactivated")
        return UserResponse.model_validate(user)


# ── Singleton Instance ────────────────────────────────────────────────────
user_service = UserService()
