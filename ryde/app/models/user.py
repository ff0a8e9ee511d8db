"""
User database model.

This module defines the User SQLAlchemy model for authentication.
"""

import uuid
from sqlalchemy import Column, String, Boolean, DateTime, Enum, Text
from sqlalchemy.sql import func
from ryde.app.db.session import Base
from ryde.app.models.enums import UserRole


def _new_user_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    """
    User model for account management.

    `refresh_token` mirrors the latest issued refresh token; it is NULL
    whenever the user has no active session.
    """
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_new_user_id)
    firstname = Column(String(255), nullable=False)
    lastname = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password = Column(String(255), nullable=False)
    avatar = Column(String(512), nullable=True)
    phone_number = Column(String(32), nullable=True)

    role = Column(
        Enum(UserRole, values_callable=lambda roles: [r.value for r in roles], name="user_role"),
        default=UserRole.USER,
        nullable=False,
    )
    is_verified = Column(Boolean, default=False, nullable=False)
    refresh_token = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    @property
    def full_name(self) -> str:
        return f"{self.firstname} {self.lastname}"

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role='{self.role.value}')>"
