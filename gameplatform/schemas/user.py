"""
Game Platform Backend: User & Auth Schemas
============================================

What:  Request/response contracts for registration, login, tokens and profiles.

Views of a user:
    UserResponse        the owner's own view (includes e-mail and settings)
    PublicUserResponse  what other users see, filtered by privacy settings
    UserSummary         compact card used in friend lists, search and conversations
"""

import uuid
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field

OnlineStatus = Literal["online", "offline", "away", "in_game"]
Role = Literal["user", "developer", "publisher", "admin"]


# ══════════════════════════════════════════════════════════════════════════
# Requests
# ══════════════════════════════════════════════════════════════════════════


class RegisterRequest(BaseModel):
    email: EmailStr
    username: str = Field(min_length=3, max_length=50, pattern=r"^[A-Za-z0-9_]+$")
    password: str = Field(min_length=8, max_length=128)
    display_name: Optional[str] = Field(default=None, max_length=100)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=128)


class RefreshRequest(BaseModel):
    refresh_token: str


class LogoutRequest(BaseModel):
    refresh_token: Optional[str] = None


class TokenValidationRequest(BaseModel):
    token: str


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(min_length=1, max_length=128)
    new_password: str = Field(min_length=8, max_length=128)


class DeleteAccountRequest(BaseModel):
    password: str = Field(min_length=1, max_length=128)


class PrivacySettings(BaseModel):
    profile_visibility: Literal["public", "friends", "private"] = "public"
    show_online_status: bool = True


class UserUpdateRequest(BaseModel):
    """Partial profile update; only fields present in the body are applied."""
    display_name: Optional[str] = Field(default=None, max_length=100)
    avatar_url: Optional[str] = Field(default=None, max_length=500)
    bio: Optional[str] = Field(default=None, max_length=2000)
    online_status: Optional[OnlineStatus] = None
    current_game: Optional[str] = Field(default=None, max_length=200)
    preferences: Optional[dict] = None
    privacy_settings: Optional[PrivacySettings] = None


class UserIdsRequest(BaseModel):
    ids: List[uuid.UUID] = Field(min_length=1, max_length=100)


class SetActiveRequest(BaseModel):
    is_active: bool


# ══════════════════════════════════════════════════════════════════════════
# Responses
# ══════════════════════════════════════════════════════════════════════════


class UserSummary(BaseModel):
    id: uuid.UUID
    username: str
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None
    online_status: Optional[str] = None

    model_config = {"from_attributes": True}


class UserResponse(BaseModel):
    id: uuid.UUID
    email: str
    username: str
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None
    bio: Optional[str] = None
    role: str
    is_active: bool
    online_status: str
    current_game: Optional[str] = None
    preferences: dict = Field(default_factory=dict)
    privacy_settings: dict = Field(default_factory=dict)
    last_login_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class PublicUserResponse(BaseModel):
    id: uuid.UUID
    username: str
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None
    bio: Optional[str] = None
    role: str
    online_status: Optional[str] = None
    current_game: Optional[str] = None
    created_at: datetime
    is_limited: bool = Field(
        default=False,
        description="True when privacy settings hid part of the profile from this viewer",
    )


class UserListResponse(BaseModel):
    items: List[UserResponse]
    total: int
    page: int
    limit: int
    pages: int


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int = Field(description="Access token lifetime in seconds")
    user: UserResponse


class TokenValidationResponse(BaseModel):
    valid: bool
    user_id: Optional[uuid.UUID] = None
    email: Optional[str] = None
    role: Optional[str] = None
