"""
Game Platform Backend: Studio Verification Routes
===================================================

What:  /api/studios/* endpoints for developer/publisher verification.
"""

import uuid
from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from gameplatform.database import get_db_session
from gameplatform.dependencies import get_current_user, require_admin
from gameplatform.exceptions import NotFoundError
from gameplatform.models.user import User
from gameplatform.schemas.common import ErrorResponse
from gameplatform.schemas.studio import (
    StudioProfileResponse,
    StudioSubmitRequest,
    VerificationDecisionRequest,
)
from gameplatform.services.verification_service import verification_service

router = APIRouter(prefix="/api/studios", tags=["Studios"])


@router.post(
    "/verification",
    response_model=StudioProfileResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"description": "Profile already approved or in review", "model": ErrorResponse}},
    summary="Submit (or resubmit) a developer/publisher profile",
)
async def submit_verification(
    body: StudioSubmitRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> StudioProfileResponse:
    return await verification_service.submit(db, user, body)


@router.get("/me", response_model=List[StudioProfileResponse], summary="Own studio profiles")
async def my_profiles(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> List[StudioProfileResponse]:
    return await verification_service.get_my_profiles(db, user.id)


@router.get("/pending", response_model=List[StudioProfileResponse], summary="Manual review queue (admin)")
async def pending_profiles(
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> List[StudioProfileResponse]:
    return await verification_service.list_pending(db, limit, offset)


@router.get("/{profile_id}", response_model=StudioProfileResponse, summary="One studio profile")
async def get_profile(
    profile_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> StudioProfileResponse:
    profile = await verification_service.get_profile(db, profile_id)
    # Other users' profiles are reported as missing
    if profile.user_id != user.id and user.role != "admin":
        raise NotFoundError(resource="studio profile", resource_id=str(profile_id))
    return profile


@router.post(
    "/{profile_id}/decision",
    response_model=StudioProfileResponse,
    responses={409: {"description": "Profile is not in manual review", "model": ErrorResponse}},
    summary="Approve or reject a profile in manual review (admin)",
)
async def decide(
    profile_id: uuid.UUID,
    body: VerificationDecisionRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> StudioProfileResponse:
    return await verification_service.decide(db, admin, profile_id, body.approve, body.notes)
