"""
Game Platform Backend: Social Routes
======================================

What:  /api/social/* endpoints: friend requests, friend lists and direct
       messages between friends.
"""

import uuid
from typing import List, Literal

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from gameplatform.database import get_db_session
from gameplatform.dependencies import get_current_user
from gameplatform.models.user import User
from gameplatform.schemas.common import CountResponse, ErrorResponse, UpdatedResponse
from gameplatform.schemas.social import (
    ConversationResponse,
    ConversationSummary,
    FriendListResponse,
    FriendRequestCreate,
    FriendRequestResponse,
    FriendshipStatusResponse,
    MessageCreate,
    MessageResponse,
)
from gameplatform.services.friend_service import friend_service
from gameplatform.services.message_service import message_service

router = APIRouter(prefix="/api/social", tags=["Social"])


# ── Friend requests ───────────────────────────────────────────────────────


@router.post(
    "/friends/requests",
    response_model=FriendRequestResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Request to self", "model": ErrorResponse},
        404: {"description": "User not found", "model": ErrorResponse},
        409: {"description": "Already friends or request pending", "model": ErrorResponse},
    },
    summary="Send a friend request",
)
async def send_friend_request(
    body: FriendRequestCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> FriendRequestResponse:
    return await friend_service.send_request(db, user, body.user_id)


@router.get("/friends/requests/incoming", response_model=List[FriendRequestResponse])
async def incoming_requests(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> List[FriendRequestResponse]:
    return await friend_service.list_incoming_requests(db, user.id)


@router.get("/friends/requests/outgoing", response_model=List[FriendRequestResponse])
async def outgoing_requests(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> List[FriendRequestResponse]:
    return await friend_service.list_outgoing_requests(db, user.id)


@router.post("/friends/requests/{request_id}/accept", response_model=FriendRequestResponse)
async def accept_request(
    request_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> FriendRequestResponse:
    return await friend_service.accept_request(db, user, request_id)


@router.post("/friends/requests/{request_id}/decline", status_code=status.HTTP_204_NO_CONTENT)
async def decline_request(
    request_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> None:
    await friend_service.decline_request(db, user, request_id)


# ── Friends ───────────────────────────────────────────────────────────────


@router.get("/friends", response_model=FriendListResponse, summary="Own friends")
async def list_friends(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    status_filter: Literal["all", "online", "offline"] = Query(default="all", alias="status"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> FriendListResponse:
    return await friend_service.list_friends(db, user.id, page, limit, status_filter)


@router.get("/friends/{friend_id}/status", response_model=FriendshipStatusResponse)
async def friendship_status(
    friend_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> FriendshipStatusResponse:
    return FriendshipStatusResponse(
        user_id=friend_id,
        are_friends=await friend_service.are_friends(db, user.id, friend_id),
    )


@router.delete("/friends/{friend_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_friend(
    friend_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> None:
    await friend_service.remove_friend(db, user, friend_id)


# ── Messages ──────────────────────────────────────────────────────────────


@router.post(
    "/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        403: {"description": "Recipient is not a friend", "model": ErrorResponse},
        429: {"description": "Message rate limit", "model": ErrorResponse},
    },
    summary="Send a direct message to a friend",
)
async def send_message(
    body: MessageCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    return await message_service.send_message(db, user, body.recipient_id, body.content)


@router.get("/messages/unread-count", response_model=CountResponse)
async def unread_messages(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> CountResponse:
    return CountResponse(count=await message_service.unread_messages_count(db, user.id))


@router.post("/messages/{message_id}/read", response_model=MessageResponse)
async def mark_message_read(
    message_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    return await message_service.mark_message_read(db, user.id, message_id)


@router.get("/conversations", response_model=List[ConversationSummary], summary="Latest message per friend")
async def list_conversations(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> List[ConversationSummary]:
    return await message_service.list_conversations(db, user.id)


@router.get("/conversations/{partner_id}", response_model=ConversationResponse)
async def get_conversation(
    partner_id: uuid.UUID,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=200),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ConversationResponse:
    return await message_service.get_conversation(db, user.id, partner_id, page, limit)


@router.post("/conversations/{partner_id}/read", response_model=UpdatedResponse)
async def mark_conversation_read(
    partner_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> UpdatedResponse:
    return UpdatedResponse(updated=await message_service.mark_conversation_read(db, user.id, partner_id))
