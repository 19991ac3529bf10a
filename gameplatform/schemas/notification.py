"""
Game Platform Backend: Notification Schemas
=============================================
"""

import uuid
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

NotificationType = Literal[
    "friend_request",
    "friend_accepted",
    "new_message",
    "game_update",
    "achievement",
    "purchase",
    "review",
    "verification",
    "security",
    "system",
]
Channel = Literal["in_app", "email"]


class NotificationCreateRequest(BaseModel):
    """Internal endpoint body: other services push notifications through this."""
    user_id: uuid.UUID
    type: NotificationType
    title: str = Field(min_length=1, max_length=200)
    message: str = Field(min_length=1, max_length=5000)
    data: dict = Field(default_factory=dict)
    channels: List[Channel] = Field(default_factory=lambda: ["in_app"], min_length=1)


class NotificationResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    type: str
    title: str
    message: str
    data: dict = Field(default_factory=dict)
    channels: List[str] = Field(default_factory=list)
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class NotificationCreateResult(BaseModel):
    created: bool = Field(description="False when the recipient's settings suppressed it")
    notification: Optional[NotificationResponse] = None


class NotificationListResponse(BaseModel):
    items: List[NotificationResponse]
    total: int
    unread_count: int
    limit: int
    offset: int


class NotificationSettingsResponse(BaseModel):
    email_enabled: bool = True
    in_app_enabled: bool = True
    friend_requests: bool = True
    game_updates: bool = True
    achievements: bool = True
    purchases: bool = True
    system_notifications: bool = True

    model_config = {"from_attributes": True}


class NotificationSettingsUpdate(BaseModel):
    email_enabled: Optional[bool] = None
    in_app_enabled: Optional[bool] = None
    friend_requests: Optional[bool] = None
    game_updates: Optional[bool] = None
    achievements: Optional[bool] = None
    purchases: Optional[bool] = None
    system_notifications: Optional[bool] = None
