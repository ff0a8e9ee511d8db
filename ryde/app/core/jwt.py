"""
JWT token utilities for authentication.

This module provides functions for encoding and decoding the access and
refresh tokens. The two kinds are signed with different secrets and carry a
``type`` claim so one can never be accepted in place of the other.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any, Tuple
from jose import JWTError, jwt
from ryde.app.core.config import settings
from ryde.app.models.enums import UserRole

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


def create_access_token(user_id: str, role: UserRole, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token.

    Args:
        user_id: Identifier of the token owner
        role: Role embedded for route-level access checks
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token string

    Example payload:
        {
            "user_id": "0b8f...",
            "role": "driver",
            "type": "access",
            "iat": 1234567000,
            "exp": 1234567890
        }
    """
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))

    to_encode = {
        "user_id": user_id,
        "role": UserRole(role).value,
        "type": ACCESS_TOKEN_TYPE,
        "iat": now,
        "exp": expire,
    }
    return jwt.encode(to_encode, settings.access_token_secret, algorithm=settings.algorithm)


def create_refresh_token(user_id: str, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT refresh token.

    A random ``jti`` makes every token unique, even two minted for the same
    user within the same second.
    """
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(days=settings.refresh_token_expire_days))

    to_encode = {
        "user_id": user_id,
        "type": REFRESH_TOKEN_TYPE,
        "jti": uuid.uuid4().hex,
        "iat": now,
        "exp": expire,
    }
    return jwt.encode(to_encode, settings.refresh_token_secret, algorithm=settings.algorithm)


def create_token_pair(user_id: str, role: UserRole) -> Tuple[str, str]:
    """Mint a fresh (access, refresh) pair."""
    return create_access_token(user_id, role), create_refresh_token(user_id)


def _decode(token: str, secret: str, expected_type: str) -> Optional[Dict[str, Any]]:
    try:
        payload = jwt.decode(token, secret, algorithms=[settings.algorithm])
    except JWTError:
        return None
    if payload.get("type") != expected_type or not payload.get("user_id"):
        return None
    return payload


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Decode and validate a JWT access token.

    Returns:
        Decoded token payload if valid (includes: user_id, role, exp), None otherwise
    """
    return _decode(token, settings.access_token_secret, ACCESS_TOKEN_TYPE)


def decode_refresh_token(token: str) -> Optional[Dict[str, Any]]:
    """Decode and validate a JWT refresh token; None when invalid or expired."""
    return _decode(token, settings.refresh_token_secret, REFRESH_TOKEN_TYPE)
