"""
Game Platform Backend: User Routes
====================================

What:  /api/users/* endpoints: own profile, public profiles, search, batch
       lookup, account deletion and admin account management.
"""

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from gameplatform.database import get_db_session
from gameplatform.dependencies import get_current_user, get_optional_user, require_admin
from gameplatform.models.user import User
from gameplatform.schemas.common import ErrorResponse
from gameplatform.schemas.user import (
    DeleteAccountRequest,
    PublicUserResponse,
    SetActiveRequest,
    UserIdsRequest,
    UserListResponse,
    UserResponse,
    UserSummary,
    UserUpdateRequest,
)
from gameplatform.services.user_service import user_service

router = APIRouter(prefix="/api/users", tags=["Users"])


@router.get("/me", response_model=UserResponse, summary="Own profile")
async def get_me(user: User = Depends(get_current_user)) -> UserResponse:
    return UserResponse.model_validate(user)


@router.patch("/me", response_model=UserResponse, summary="Update own profile")
async def update_me(
    body: UserUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> UserResponse:
    return await user_service.update_profile(db, user, body)


@router.delete(
    "/me",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={401: {"description": "Wrong password", "model": ErrorResponse}},
    summary="Delete own account",
)
async def delete_me(
    body: DeleteAccountRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> None:
    await user_service.delete_account(db, user, body.password)


@router.get("/search", response_model=List[UserSummary], summary="Search users by name")
async def search_users(
    q: str = Query(min_length=1, max_length=100),
    limit: int = Query(default=20, ge=1, le=50),
    viewer: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db_session),
) -> List[UserSummary]:
    return await user_service.search_users(db, q, viewer.id if viewer else None, limit)


@router.post("/batch", response_model=List[UserSummary], summary="Look up up to 100 users by id")
async def get_users_batch(
    body: UserIdsRequest,
    db: AsyncSession = Depends(get_db_session),
) -> List[UserSummary]:
    return await user_service.get_users_by_ids(db, body.ids)


@router.get("", response_model=UserListResponse, summary="List accounts (admin)")
async def list_users(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    role: Optional[str] = Query(default=None),
    is_active: Optional[bool] = Query(default=None),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> UserListResponse:
    return await user_service.list_users(db, page, limit, role, is_active)


@router.get(
    "/{user_id}",
    response_model=PublicUserResponse,
    responses={404: {"description": "User not found", "model": ErrorResponse}},
    summary="Public profile",
)
async def get_user(
    user_id: uuid.UUID,
    viewer: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db_session),
) -> PublicUserResponse:
    return await user_service.get_public_profile(db, user_id, viewer.id if viewer else None)


@router.patch("/{user_id}/status", response_model=UserResponse, summary="Activate or deactivate (admin)")
async def set_user_active(
    user_id: uuid.UUID,
    body: SetActiveRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> UserResponse:
    return await user_service.set_active(db, user_id, body.is_active)
