"""
Audit Log Database Model.

Tracks security-critical account events for monitoring.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from ryde.app.db.session import Base


class AuditLog(Base):
    """
    Audit log model for tracking account security events.

    Events logged:
    - SIGN_UP / USER_DELETED
    - SIGN_IN_SUCCESS / SIGN_IN_FAILED / SIGN_OUT
    - TOKEN_REFRESHED / TOKEN_REUSE_DETECTED
    - EMAIL_VERIFIED / PASSWORD_RESET / PASSWORD_CHANGED
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Who performed the action (None when the email matched no account)
    actor_id = Column(String(36), index=True, nullable=True)
    actor_email = Column(String(255), nullable=True)

    action = Column(String(100), nullable=False, index=True)

    # Additional context (JSON for flexibility)
    meta_data = Column(JSON, nullable=True)

    ip_address = Column(String(50), nullable=True)

    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', actor={self.actor_email})>"
