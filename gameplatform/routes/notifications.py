"""
Game Platform Backend: Notification Routes
============================================

What:  /api/notifications/* endpoints: the caller's inbox, delivery settings,
       and an internal endpoint other services use to push notifications.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from gameplatform.database import get_db_session
from gameplatform.dependencies import get_current_user, require_internal
from gameplatform.models.user import User
from gameplatform.schemas.common import CountResponse, ErrorResponse, UpdatedResponse
from gameplatform.schemas.notification import (
    NotificationCreateRequest,
    NotificationCreateResult,
    NotificationListResponse,
    NotificationResponse,
    NotificationSettingsResponse,
    NotificationSettingsUpdate,
)
from gameplatform.services.notification_service import notification_service
from gameplatform.services.user_service import user_service

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])


@router.get("", response_model=NotificationListResponse, summary="Own notifications, newest first")
async def list_notifications(
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    type: Optional[str] = Query(default=None),
    is_read: Optional[bool] = Query(default=None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> NotificationListResponse:
    return await notification_service.list_notifications(db, user.id, limit, offset, type, is_read)


@router.get("/unread-count", response_model=CountResponse, summary="Number of unread notifications")
async def unread_count(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> CountResponse:
    return CountResponse(count=await notification_service.unread_count(db, user.id))


@router.get("/settings", response_model=NotificationSettingsResponse, summary="Delivery settings")
async def get_settings(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> NotificationSettingsResponse:
    return await notification_service.get_settings(db, user.id)


@router.patch("/settings", response_model=NotificationSettingsResponse, summary="Update delivery settings")
async def update_settings(
    body: NotificationSettingsUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> NotificationSettingsResponse:
    return await notification_service.update_settings(db, user.id, body)


@router.post("/read-all", response_model=UpdatedResponse, summary="Mark every notification read")
async def mark_all_read(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> UpdatedResponse:
    return UpdatedResponse(updated=await notification_service.mark_all_as_read(db, user.id))


@router.post(
    "",
    response_model=NotificationCreateResult,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"description": "Recipient not found", "model": ErrorResponse}},
    summary="Push a notification to a user (internal)",
)
async def create_notification(
    body: NotificationCreateRequest,
    caller: Optional[User] = Depends(require_internal),
    db: AsyncSession = Depends(get_db_session),
) -> NotificationCreateResult:
    await user_service.get_active_user(db, body.user_id)
    notification = await notification_service.create_notification(
        db,
        user_id=body.user_id,
        type=body.type,
        title=body.title,
        message=body.message,
        data=body.data,
        channels=list(body.channels),
    )
    return NotificationCreateResult(created=notification is not None, notification=notification)


@router.post(
    "/{notification_id}/read",
    response_model=NotificationResponse,
    responses={404: {"description": "Notification not found", "model": ErrorResponse}},
    summary="Mark one notification read",
)
async def mark_read(
    notification_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> NotificationResponse:
    return await notification_service.mark_as_read(db, user.id, notification_id)


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a notification")
async def delete_notification(
    notification_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> None:
    await notification_service.delete_notification(db, user.id, notification_id)
