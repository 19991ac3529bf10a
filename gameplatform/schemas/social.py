"""
Game Platform Backend: Social Graph Schemas
=============================================
"""

import uuid
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from gameplatform.schemas.user import UserSummary

FriendStatusFilter = Literal["all", "online", "offline"]


class FriendRequestCreate(BaseModel):
    user_id: uuid.UUID = Field(description="User to send the request to")


class FriendRequestResponse(BaseModel):
    id: uuid.UUID
    requester_id: uuid.UUID
    addressee_id: uuid.UUID
    status: str
    created_at: datetime
    responded_at: Optional[datetime] = None
    user: Optional[UserSummary] = Field(
        default=None,
        description="The other side of the request, from the caller's point of view",
    )


class FriendResponse(BaseModel):
    user: UserSummary
    friends_since: Optional[datetime] = None


class FriendListResponse(BaseModel):
    items: List[FriendResponse]
    total: int
    page: int
    limit: int
    pages: int


class FriendshipStatusResponse(BaseModel):
    user_id: uuid.UUID
    are_friends: bool


class MessageCreate(BaseModel):
    recipient_id: uuid.UUID
    content: str = Field(min_length=1, max_length=2000)


class MessageResponse(BaseModel):
    id: uuid.UUID
    sender_id: uuid.UUID
    recipient_id: uuid.UUID
    content: str
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class ConversationSummary(BaseModel):
    partner: UserSummary
    last_message: MessageResponse
    unread_count: int


class ConversationResponse(BaseModel):
    """One page of a conversation, oldest message first."""
    partner_id: uuid.UUID
    items: List[MessageResponse]
    total: int
    page: int
    limit: int
    pages: int
