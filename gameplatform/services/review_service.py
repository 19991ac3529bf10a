"""
Game Platform Backend: Review Service
=======================================

What:  One review per user and game; every change recomputes the game rating.
Who:   reviews router.
"""

import logging
import uuid
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from gameplatform.exceptions import ConflictError, ForbiddenError, NotFoundError
from gameplatform.models.game import Game
from gameplatform.models.review import Review
from gameplatform.models.user import User
from gameplatform.schemas.common import page_count
from gameplatform.schemas.review import (
    ReviewCreateRequest,
    ReviewListResponse,
    ReviewResponse,
    ReviewUpdateRequest,
)
from gameplatform.services.notification_service import notification_service
from gameplatform.services.rating_service import rating_service

logger = logging.getLogger(__name__)


def _to_response(review: Review, username: Optional[str]) -> ReviewResponse:
    response = ReviewResponse.model_validate(review)
    return response.model_copy(update={"username": username})


class ReviewService:

    async def _published_game(self, db: AsyncSession, game_id: uuid.UUID) -> Game:
        game = await db.get(Game, game_id)
        if game is None or game.status != "published":
            raise NotFoundError(resource="game", resource_id=str(game_id))
        return game

    async def _load(self, db: AsyncSession, review_id: uuid.UUID) -> Review:
        review = await db.get(Review, review_id)
        if review is None:
            raise NotFoundError(resource="review", resource_id=str(review_id))
        return review

    async def create_review(
        self, db: AsyncSession, user: User, game_id: uuid.UUID, data: ReviewCreateRequest
    ) -> ReviewResponse:
        game = await self._published_game(db, game_id)

        existing = await db.execute(
            select(Review.id).where(Review.user_id == user.id, Review.game_id == game_id)
        )
        if existing.first() is not None:
            raise ConflictError("You have already reviewed this game")

        review = Review(user_id=user.id, game_id=game_id, rating=data.rating, content=data.content)
        db.add(review)
        try:
            await db.flush()
        except IntegrityError:
            raise ConflictError("You have already reviewed this game")

        await rating_service.update_game_rating(db, game_id)
        if game.developer_id != user.id:
            await notification_service.create_notification(
                db,
                user_id=game.developer_id,
                type="review",
                title=f"New review for {game.title}",
                message=f"{user.username} rated {game.title} {data.rating}/5",
                data={"game_id": str(game_id), "review_id": str(review.id), "rating": data.rating},
            )
        logger.info("Review %s created for game %s by %s", review.id, game_id, user.id)
        return _to_response(review, user.username)

    async def update_review(
        self, db: AsyncSession, user: User, review_id: uuid.UUID, data: ReviewUpdateRequest
    ) -> ReviewResponse:
        review = await self._load(db, review_id)
        if review.user_id != user.id:
            raise ForbiddenError("You can only edit your own reviews")
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        for field, value in changes.items():
            setattr(review, field, value)
        await db.flush()
        await db.refresh(review)
        if "rating" in changes:
            await rating_service.update_game_rating(db, review.game_id)
        return _to_response(review, user.username)

    async def delete_review(self, db: AsyncSession, user: User, review_id: uuid.UUID) -> None:
        review = await self._load(db, review_id)
        if review.user_id != user.id:
            raise ForbiddenError("You can only delete your own reviews")
        game_id = review.game_id
        await db.delete(review)
        await db.flush()
        await rating_service.update_game_rating(db, game_id)
        logger.info("Review %s deleted by %s", review_id, user.id)

    async def get_review(self, db: AsyncSession, review_id: uuid.UUID) -> ReviewResponse:
        result = await db.execute(
            select(Review, User.username)
            .join(User, User.id == Review.user_id)
            .where(Review.id == review_id)
        )
        row = result.first()
        if row is None:
            raise NotFoundError(resource="review", resource_id=str(review_id))
        return _to_response(*row)

    async def _list(self, db: AsyncSession, condition, page: int, limit: int) -> ReviewListResponse:
        result = await db.execute(
            select(Review, User.username)
            .join(User, User.id == Review.user_id)
            .where(condition)
            .order_by(Review.created_at.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )
        total = (await db.execute(select(func.count(Review.id)).where(condition))).scalar() or 0
        return ReviewListResponse(
            items=[_to_response(review, username) for review, username in result.all()],
            total=total,
            page=page,
            limit=limit,
            pages=page_count(total, limit),
        )

    async def list_game_reviews(
        self, db: AsyncSession, game_id: uuid.UUID, page: int = 1, limit: int = 20
    ) -> ReviewListResponse:
        if await db.get(Game, game_id) is None:
            raise NotFoundError(resource="game", resource_id=str(game_id))
        return await self._list(db, Review.game_id == game_id, page, limit)

    async def list_user_reviews(
        self, db: AsyncSession, user_id: uuid.UUID, page: int = 1, limit: int = 20
    ) -> ReviewListResponse:
        return await self._list(db, Review.user_id == user_id, page, limit)


# ── Singleton Instance ────────────────────────────────────────────────────
review_service = ReviewService()
