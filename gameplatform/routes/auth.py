"""
Game Platform Backend: Auth Routes
====================================

What:  /api/auth/* endpoints: register, login, refresh, logout, password change
       and token validation for other services.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from gameplatform.database import get_db_session
from gameplatform.dependencies import client_ip, get_current_user, user_agent
from gameplatform.models.user import User
from gameplatform.schemas.common import CountResponse, ErrorResponse, MessageResponse
from gameplatform.schemas.user import (
    ChangePasswordRequest,
    LoginRequest,
    LogoutRequest,
    RefreshRequest,
    RegisterRequest,
    TokenResponse,
    TokenValidationRequest,
    TokenValidationResponse,
    UserResponse,
)
from gameplatform.services.auth_service import auth_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])


@router.post(
    "/register",
    response_model=TokenResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Weak password", "model": ErrorResponse},
        409: {"description": "Email or username taken", "model": ErrorResponse},
    },
    summary="Create an account and start a session",
)
async def register(
    body: RegisterRequest,
    request: Request,
    db: AsyncSession = Depends(get_db_session),
) -> TokenResponse:
    return await auth_service.register(db, body, client_ip(request), user_agent(request))


@router.post(
    "/login",
    response_model=TokenResponse,
    responses={
        401: {"description": "Invalid credentials", "model": ErrorResponse},
        403: {"description": "Blocked IP or locked account", "model": ErrorResponse},
        429: {"description": "Too many login attempts", "model": ErrorResponse},
    },
    summary="Log in with e-mail and password",
)
async def login(
    body: LoginRequest,
    request: Request,
    db: AsyncSession = Depends(get_db_session),
) -> TokenResponse:
    return await auth_service.login(
        db, body.email, body.password, client_ip(request), user_agent(request)
    )


@router.post("/refresh", response_model=TokenResponse, summary="Rotate the token pair")
async def refresh(
    body: RefreshRequest,
    request: Request,
    db: AsyncSession = Depends(get_db_session),
) -> TokenResponse:
    return await auth_service.refresh(db, body.refresh_token, client_ip(request))


@router.post("/logout", response_model=MessageResponse, summary="End the current session")
async def logout(
    request: Request,
    body: Optional[LogoutRequest] = None,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await auth_service.logout(
        db,
        user,
        request.state.token_payload,
        refresh_token=body.refresh_token if body else None,
        ip_address=client_ip(request),
    )
    return MessageResponse(message="Logged out")


@router.post("/logout-all", response_model=CountResponse, summary="End every session of the caller")
async def logout_all(
    request: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> CountResponse:
    count = await auth_service.logout_all(db, user, client_ip(request))
    return CountResponse(count=count)


@router.post(
    "/change-password",
    response_model=MessageResponse,
    summary="Change password and invalidate all sessions",
)
async def change_password(
    body: ChangePasswordRequest,
    request: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await auth_service.change_password(
        db, user, body.current_password, body.new_password, client_ip(request)
    )
    return MessageResponse(message="Password changed; please log in again")


@router.post(
    "/validate",
    response_model=TokenValidationResponse,
    summary="Validate an access token (for other services)",
)
async def validate_token(
    body: TokenValidationRequest,
    db: AsyncSession = Depends(get_db_session),
) -> TokenValidationResponse:
    return await auth_service.validate_token(db, body.token)


@router.get("/me", response_model=UserResponse, summary="The authenticated account")
async def me(user: User = Depends(get_current_user)) -> UserResponse:
    return UserResponse.model_validate(user)
