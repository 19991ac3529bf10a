"""
Game Platform Backend: Rating Service
=======================================

What:  Aggregated per-game ratings and platform-wide rating statistics.
How:   `game_ratings` is recomputed from `reviews` (AVG/COUNT) after every
       review change, cached for 5 minutes and copied onto the catalog row
       so listings can sort by rating without a join.
"""

import logging
import uuid
from typing import List

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from gameplatform.cache import cache
from gameplatform.database import utcnow
from gameplatform.exceptions import NotFoundError
from gameplatform.models.game import Game
from gameplatform.models.review import GameRating, Review
from gameplatform.schemas.review import GameRatingResponse, RatingStatsResponse, TopRatedGame
from gameplatform.services.game_service import game_service

logger = logging.getLogger(__name__)

RATING_CACHE_TTL = 300


def _rating_key(game_id: uuid.UUID) -> str:
    return f"game_rating_{game_id}"


class RatingService:

    async def update_game_rating(self, db: AsyncSession, game_id: uuid.UUID) -> GameRatingResponse:
        result = await db.execute(
            select(func.avg(Review.rating), func.count(Review.id)).where(Review.game_id == game_id)
        )
        average, total = result.one()
        average = round(float(average or 0), 2)
        total = total or 0

        rating = await db.get(GameRating, game_id)
        if rating is None:
            rating = GameRating(game_id=game_id)
            db.add(rating)
        rating.average_rating = average
        rating.total_reviews = total
        rating.updated_at = utcnow()
        await db.flush()

        await cache.delete(_rating_key(game_id))
        await game_service.apply_rating(db, game_id, average, total)
        logger.debug("Rating for game %s: %.2f over %d reviews", game_id, average, total)
        return GameRatingResponse(game_id=game_id, average_rating=average, total_reviews=total)

    async def get_game_rating(self, db: AsyncSession, game_id: uuid.UUID) -> GameRatingResponse:
        cached = await cache.get(_rating_key(game_id))
        if cached is not None:
            return GameRatingResponse(**cached)

        if await db.get(Game, game_id) is None:
            raise NotFoundError(resource="game", resource_id=str(game_id))
        rating = await db.get(GameRating, game_id)
        response = GameRatingResponse(
            game_id=game_id,
            average_rating=rating.average_rating if rating else 0.0,
            total_reviews=rating.total_reviews if rating else 0,
        )
        await cache.set(_rating_key(game_id), response.model_dump(mode="json"), ttl=RATING_CACHE_TTL)
        return response

    async def top_rated(self, db: AsyncSession, limit: int = 10, min_reviews: int = 5) -> List[TopRatedGame]:
        result = await db.execute(
            select(GameRating, Game.title, Game.slug)
            .join(Game, Game.id == GameRating.game_id)
            .where(GameRating.total_reviews >= min_reviews, Game.status == "published")
            .order_by(GameRating.average_rating.desc(), GameRating.total_reviews.desc())
            .limit(limit)
        )
        return [
            TopRatedGame(
                game_id=rating.game_id,
                title=title,
                slug=slug,
                average_rating=rating.average_rating,
                total_reviews=rating.total_reviews,
            )
            for rating, title, slug in result.all()
        ]

    async def rating_stats(self, db: AsyncSession) -> RatingStatsResponse:
        games = (
            await db.execute(select(func.count(GameRating.game_id)).where(GameRating.total_reviews > 0))
        ).scalar() or 0
        average, total = (await db.execute(select(func.avg(Review.rating), func.count(Review.id)))).one()
        return RatingStatsResponse(
            games_with_ratings=games,
            overall_average=round(float(average or 0), 2),
            total_reviews=total or 0,
        )


# ── Singleton Instance ────────────────────────────────────────────────────
rating_service = RatingService()
