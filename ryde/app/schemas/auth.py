"""
Authentication Pydantic schemas.

Defines request and response schemas for the /auth endpoints. Request fields
are optional at the schema level so that a missing field is reported by the
account service as "Missing required fields: ..." rather than a generic
validation error.
"""

from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional
from ryde.app.models.enums import UserRole


class _Request(BaseModel):
    """Blank strings count as missing."""

    @field_validator("*", mode="before")
    @classmethod
    def blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    class Config:
        populate_by_name = True


class SignUpRequest(_Request):
    """
    Schema for user registration.

    Built from the multipart form of POST /auth/sign-up.
    """
    firstname: Optional[str] = Field(None, max_length=255)
    lastname: Optional[str] = Field(None, max_length=255)
    email: Optional[EmailStr] = None
    password: Optional[str] = None
    role: Optional[UserRole] = None


class SignInRequest(_Request):
    """Schema for POST /auth/sign-in."""
    email: Optional[EmailStr] = None
    password: Optional[str] = None


class EmailRequest(_Request):
    """Schema for POST /auth/verify-email and /auth/forgot-password."""
    email: Optional[EmailStr] = None


class VerifyOtpRequest(_Request):
    """Schema for POST /auth/verify-otp."""
    email: Optional[EmailStr] = None
    otp: Optional[str] = None


class ResetPasswordRequest(_Request):
    """Schema for POST /auth/reset-password."""
    email: Optional[EmailStr] = None
    new_password: Optional[str] = Field(None, alias="newPassword")


class ChangePasswordRequest(_Request):
    """Schema for POST /auth/change-password."""
    email: Optional[EmailStr] = None
    current_password: Optional[str] = Field(None, alias="currentPassword")
    new_password: Optional[str] = Field(None, alias="newPassword")


class RefreshTokenRequest(_Request):
    """Schema for POST /auth/refresh-token (the cookie is used when absent)."""
    refresh_token: Optional[str] = Field(None, alias="refreshToken")


class SignUpResponse(BaseModel):
    """Public fields returned after sign-up."""
    id: str
    email: str
    firstname: str
    lastname: str
    avatar: Optional[str] = None

    class Config:
        from_attributes = True


class SafeUser(BaseModel):
    """User fields safe to return after sign-in."""
    id: str
    email: str
    firstname: str
    lastname: str
    role: UserRole

    class Config:
        from_attributes = True


class TokenPair(BaseModel):
    """Access and refresh tokens as returned in response bodies."""
    access_token: str = Field(..., serialization_alias="accessToken")
    refresh_token: str = Field(..., serialization_alias="refreshToken")


class SignInResponse(TokenPair):
    """Sign-in payload: sanitized user plus both tokens."""
    user: SafeUser
