"""
Game Platform Backend: Review Routes
======================================

What:  /api/reviews/* endpoints for reviews and aggregated ratings.
"""

import uuid
from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from gameplatform.database import get_db_session
from gameplatform.dependencies import get_current_user, require_admin
from gameplatform.models.user import User
from gameplatform.schemas.common import ErrorResponse
from gameplatform.schemas.review import (
    GameRatingResponse,
    RatingStatsResponse,
    ReviewCreateRequest,
    ReviewListResponse,
    ReviewResponse,
    ReviewUpdateRequest,
    TopRatedGame,
)
from gameplatform.services.rating_service import rating_service
from gameplatform.services.review_service import review_service

router = APIRouter(prefix="/api/reviews", tags=["Reviews"])


@router.post(
    "/games/{game_id}",
    response_model=ReviewResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        404: {"description": "Game not found", "model": ErrorResponse},
        409: {"description": "Already reviewed", "model": ErrorResponse},
    },
    summary="Review a game",
)
async def create_review(
    game_id: uuid.UUID,
    body: ReviewCreateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ReviewResponse:
    return await review_service.create_review(db, user, game_id, body)


@router.get("/games/{game_id}", response_model=ReviewListResponse, summary="Reviews of a game")
async def list_game_reviews(
    game_id: uuid.UUID,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    db: AsyncSession = Depends(get_db_session),
) -> ReviewListResponse:
    return await review_service.list_game_reviews(db, game_id, page, limit)


@router.get("/games/{game_id}/rating", response_model=GameRatingResponse, summary="Aggregated rating")
async def get_game_rating(
    game_id: uuid.UUID,
    db: AsyncSession = Depends(get_db_session),
) -> GameRatingResponse:
    return await rating_service.get_game_rating(db, game_id)


@router.post(
    "/games/{game_id}/rating/recalculate",
    response_model=GameRatingResponse,
    summary="Recompute a game's rating (admin)",
)
async def recalculate_rating(
    game_id: uuid.UUID,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> GameRatingResponse:
    await rating_service.get_game_rating(db, game_id)
    return await rating_service.update_game_rating(db, game_id)


@router.get("/users/{user_id}", response_model=ReviewListResponse, summary="Reviews written by a user")
async def list_user_reviews(
    user_id: uuid.UUID,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    db: AsyncSession = Depends(get_db_session),
) -> ReviewListResponse:
    return await review_service.list_user_reviews(db, user_id, page, limit)


@router.get("/top-rated", response_model=List[TopRatedGame], summary="Best rated games")
async def top_rated(
    limit: int = Query(default=10, ge=1, le=100),
    min_reviews: int = Query(default=5, ge=1),
    db: AsyncSession = Depends(get_db_session),
) -> List[TopRatedGame]:
    return await rating_service.top_rated(db, limit, min_reviews)


@router.get("/stats", response_model=RatingStatsResponse, summary="Platform-wide rating statistics")
async def rating_stats(db: AsyncSession = Depends(get_db_session)) -> RatingStatsResponse:
    return await rating_service.rating_stats(db)


@router.get("/{review_id}", response_model=ReviewResponse, summary="One review")
async def get_review(
    review_id: uuid.UUID,
    db: AsyncSession = Depends(get_db_session),
) -> ReviewResponse:
    return await review_service.get_review(db, review_id)


@router.patch("/{review_id}", response_model=ReviewResponse, summary="Edit own review")
async def update_review(
    review_id: uuid.UUID,
    body: ReviewUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ReviewResponse:
    return await review_service.update_review(db, user, review_id, body)


@router.delete("/{review_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete own review")
async def delete_review(
    review_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> None:
    await review_service.delete_review(db, user, review_id)
