"""
Game Platform Backend: Game Catalog Routes
============================================

What:  /api/games/* endpoints.

Caching Strategy:
    Listing and game pages are cached server-side in Redis (see
    game_service). Listings additionally send a short Cache-Control so
    browsers and CDNs can absorb bursts.
"""

import uuid
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from gameplatform.database import get_db_session
from gameplatform.dependencies import get_current_user, get_optional_user
from gameplatform.models.user import User
from gameplatform.schemas.common import ErrorResponse
from gameplatform.schemas.game import (
    GameAnalyticsResponse,
    GameCreateRequest,
    GameListResponse,
    GameQueryParams,
    GameResponse,
    GameUpdateRequest,
)
from gameplatform.services.game_service import game_service

router = APIRouter(prefix="/api/games", tags=["Games"])


@router.get("", response_model=GameListResponse, summary="Browse published games")
async def list_games(
    response: Response,
    params: Annotated[GameQueryParams, Query()],
    db: AsyncSession = Depends(get_db_session),
) -> GameListResponse:
    response.headers["Cache-Control"] = "public, max-age=60"
    return await game_service.list_games(db, params)


@router.get("/search", response_model=List[GameResponse], summary="Search published games")
async def search_games(
    q: str = Query(min_length=1, max_length=200),
    limit: int = Query(default=20, ge=1, le=100),
    db: AsyncSession = Depends(get_db_session),
) -> List[GameResponse]:
    return await game_service.search_games(db, q, limit)


@router.get(
    "/slug/{slug}",
    response_model=GameResponse,
    responses={404: {"description": "Game not found", "model": ErrorResponse}},
    summary="Game page by slug",
)
async def get_game_by_slug(
    slug: str,
    viewer: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db_session),
) -> GameResponse:
    return await game_service.get_game_by_slug(db, slug, viewer)


@router.get("/developer/{developer_id}", response_model=GameListResponse, summary="Games of a developer")
async def list_by_developer(
    developer_id: uuid.UUID,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    viewer: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db_session),
) -> GameListResponse:
    return await game_service.list_by_developer(db, developer_id, page, limit, viewer)


@router.get(
    "/{game_id}",
    response_model=GameResponse,
    responses={404: {"description": "Game not found", "model": ErrorResponse}},
    summary="Game page",
)
async def get_game(
    game_id: uuid.UUID,
    viewer: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db_session),
) -> GameResponse:
    return await game_service.get_game(db, game_id, viewer)


@router.post(
    "",
    response_model=GameResponse,
    status_code=status.HTTP_201_CREATED,
    responses={403: {"description": "Caller is not a verified developer", "model": ErrorResponse}},
    summary="Create a game",
)
async def create_game(
    body: GameCreateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> GameResponse:
    return await game_service.create_game(db, user, body)


@router.patch("/{game_id}", response_model=GameResponse, summary="Update a game (owner or admin)")
async def update_game(
    game_id: uuid.UUID,
    body: GameUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> GameResponse:
    return await game_service.update_game(db, user, game_id, body)


@router.delete("/{game_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a game (owner or admin)")
async def delete_game(
    game_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> None:
    await game_service.delete_game(db, user, game_id)


@router.get("/{game_id}/analytics", response_model=GameAnalyticsResponse, summary="Views and rating (owner)")
async def game_analytics(
    game_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> GameAnalyticsResponse:
    return await game_service.get_game_analytics(db, user, game_id)
