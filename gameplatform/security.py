"""
Game Platform Backend: Password Hashing & JWT Primitives
=========================================================

What:  Stateless helpers for password hashes and signed access/refresh tokens.
How:   passlib CryptContext for hashing, PyJWT for HS256 tokens.
Who:   auth_service (issue/rotate/revoke) and dependencies (verify per request).

Token Claims:
    sub    user id (string UUID)
    email  user e-mail at issue time
    role   user role at issue time (informational; the DB row is authoritative)
    type   "access" | "refresh"
    jti    unique token id; used for revocation and refresh rotation
    iat    issued-at
    exp    expiry (access: ACCESS_TOKEN_TTL, refresh: REFRESH_TOKEN_TTL)
"""

import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Tuple

import jwt
from passlib.context import CryptContext

from gameplatform.config import settings
from gameplatform.database import utcnow
from gameplatform.exceptions import AuthenticationError

pwd_context = CryptContext(schemes=settings.password_schemes_list, deprecated="auto")

ACCESS = "access"
REFRESH = "refresh"


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        # Unknown or malformed hash
        return False


def create_token(
    user_id: uuid.UUID,
    email: str,
    role: str,
    token_type: str,
    now: Optional[datetime] = None,
) -> Tuple[str, str, datetime]:
    """
    Sign a new token.

    Returns:
        (encoded token, jti, expiry datetime)
    """
    now = now or utcnow()
    ttl = settings.access_token_ttl if token_type == ACCESS else settings.refresh_token_ttl
    expires_at = now + timedelta(seconds=ttl)
    jti = uuid.uuid4().hex
    payload = {
        "sub": str(user_id),
        "email": email,
        "role": role,
        "type": token_type,
        "jti": jti,
        "iat": now,
        "exp": expires_at,
    }
    token = jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)
    return token, jti, expires_at


def decode_token(token: str, expected_type: str = ACCESS) -> Dict[str, Any]:
    """
    Verify signature, expiry and token type.

    Raises:
        AuthenticationError: expired, tampered, malformed or wrong-type token
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["sub", "jti", "exp", "type"]},
        )
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token has expired")
    except jwt.InvalidTokenError:
        raise AuthenticationError("Invalid token")

    if payload.get("type") != expected_type:
        raise AuthenticationError(f"Expected a {expected_type} token")
    try:
        payload["sub"] = uuid.UUID(payload["sub"])
    except (ValueError, TypeError):
        raise AuthenticationError("Invalid token subject")
    return payload
