"""
Authentication dependencies for FastAPI.

This module provides dependencies for protecting routes with JWT authentication.
"""

from typing import Optional
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from ryde.app.core.jwt import decode_access_token
from ryde.app.core.exceptions import AuthError
from ryde.app.db.session import get_db
from ryde.app.models.user import User

ACCESS_TOKEN_COOKIE = "accessToken"
REFRESH_TOKEN_COOKIE = "refreshToken"

# HTTP Bearer security scheme (cookie fallback, so no auto 403)
security = HTTPBearer(auto_error=False)


def extract_access_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials],
) -> Optional[str]:
    """Bearer header first, then the ``accessToken`` cookie."""
    if credentials and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(ACCESS_TOKEN_COOKIE)


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> dict:
    """
    FastAPI dependency for JWT authentication.

    Security checks:
    1. A token is present (Authorization header or cookie)
    2. Validates JWT token signature, expiry and type
    3. Verifies the user still exists in the database (catches tokens
       of deleted accounts that have not expired yet)

    Returns:
        Decoded token payload containing user_id and role

    Raises:
        AuthError: 401 if authentication fails for any reason
    """
    token = extract_access_token(request, credentials)
    if not token:
        raise AuthError("Unauthorized request")

    payload = decode_access_token(token)
    if payload is None:
        raise AuthError("Invalid access token")

    result = await db.execute(select(User.id).where(User.id == payload["user_id"]))
    if result.scalar_one_or_none() is None:
        raise AuthError("Invalid access token")

    return payload
