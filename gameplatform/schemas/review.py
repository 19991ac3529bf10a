"""
Game Platform Backend: Review & Rating Schemas
================================================
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class ReviewCreateRequest(BaseModel):
    rating: int = Field(ge=1, le=5)
    content: str = Field(default="", max_length=5000)


class ReviewUpdateRequest(BaseModel):
    rating: Optional[int] = Field(default=None, ge=1, le=5)
    content: Optional[str] = Field(default=None, max_length=5000)


class ReviewResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    game_id: uuid.UUID
    username: Optional[str] = None
    rating: int
    content: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ReviewListResponse(BaseModel):
    items: List[ReviewResponse]
    total: int
    page: int
    limit: int
    pages: int


class GameRatingResponse(BaseModel):
    game_id: uuid.UUID
    average_rating: float
    total_reviews: int


class TopRatedGame(BaseModel):
    game_id: uuid.UUID
    title: str
    slug: str
    average_rating: float
    total_reviews: int


class RatingStatsResponse(BaseModel):
    games_with_ratings: int
    overall_average: float
    total_reviews: int
