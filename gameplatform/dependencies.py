"""
Game Platform Backend: Route Dependencies
===========================================

What:  FastAPI dependencies for authentication, authorization and client info.
How:   Bearer access tokens are resolved by auth_service.authenticate(), which
       checks signature, expiry, revocation and account state. The decoded
       claims are kept on request.state for logout.

Access Levels:
    get_optional_user   anonymous allowed; user when a valid token is sent
    get_current_user    valid access token required (401)
    require_admin       role 'admin' on the database row (403)
    require_internal    X-Service-Token matching SERVICE_TOKEN, or an admin
"""

import hmac
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from gameplatform.config import settings
from gameplatform.database import get_db_session
from gameplatform.exceptions import AuthenticationError, ForbiddenError
from gameplatform.middleware.request_id import client_ip
from gameplatform.models.user import User
from gameplatform.services.auth_service import auth_service

bearer = HTTPBearer(auto_error=False)

__all__ = [
    "client_ip",
    "get_current_user",
    "get_optional_user",
    "require_admin",
    "require_internal",
    "user_agent",
]


def user_agent(request: Request) -> Optional[str]:
    return request.headers.get("User-Agent")


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    db: AsyncSession = Depends(get_db_session),
) -> User:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AuthenticationError("Missing bearer token")
    user, payload = await auth_service.authenticate(db, credentials.credentials)
    request.state.token_payload = payload
    return user


async def get_optional_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    db: AsyncSession = Depends(get_db_session),
) -> Optional[User]:
    if credentials is None:
        return None
    try:
        user, payload = await auth_service.authenticate(db, credentials.credentials)
    except AuthenticationError:
        return None
    request.state.token_payload = payload
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    if user.role != "admin":
        raise ForbiddenError("Administrator access required")
    return user


async def require_internal(
    request: Request,
    user: Optional[User] = Depends(get_optional_user),
) -> Optional[User]:
    """
    Service-to-service endpoints. Returns the admin user, or None when the
    caller authenticated with the shared service token.
    """
    token = request.headers.get("X-Service-Token", "")
    if settings.service_token and token and hmac.compare_digest(token, settings.service_token):
        return None
    if user is not None and user.role == "admin":
        return user
    if user is None and not token:
        raise AuthenticationError("Service token or admin credentials required")
    raise ForbiddenError("Internal endpoint")
