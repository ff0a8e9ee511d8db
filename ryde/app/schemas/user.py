"""
User profile schemas.
"""

from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import List, Optional
from ryde.app.models.enums import UserRole


class UserProfile(BaseModel):
    """Non-sensitive profile fields."""
    id: str
    firstname: str
    lastname: str
    email: str
    avatar: Optional[str] = None
    phone_number: Optional[str] = None
    role: UserRole
    is_verified: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class UserListResponse(BaseModel):
    """Schema for list users response."""
    users: List[UserProfile]
    total: int
    page: int
    page_size: int


class ProfileUpdateRequest(BaseModel):
    """Built from the multipart form of PUT /user/{id}."""
    firstname: Optional[str] = Field(None, max_length=255)
    lastname: Optional[str] = Field(None, max_length=255)
    phone_number: Optional[str] = Field(None, max_length=32)

    @field_validator("*", mode="before")
    @classmethod
    def blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value
