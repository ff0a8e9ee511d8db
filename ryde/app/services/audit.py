"""
Audit logging service for tracking account security events.

Provides centralized logging for security monitoring.
"""

from typing import Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from ryde.app.models.audit_log import AuditLog


class AuditAction:
    """Standardized audit action constants."""
    SIGN_UP = "SIGN_UP"
    SIGN_IN_SUCCESS = "SIGN_IN_SUCCESS"
    SIGN_IN_FAILED = "SIGN_IN_FAILED"
    SIGN_OUT = "SIGN_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"
    TOKEN_REUSE_DETECTED = "TOKEN_REUSE_DETECTED"
    EMAIL_VERIFIED = "EMAIL_VERIFIED"
    PASSWORD_RESET = "PASSWORD_RESET"
    PASSWORD_CHANGED = "PASSWORD_CHANGED"
    USER_DELETED = "USER_DELETED"


async def log_auth_event(
    db: AsyncSession,
    action: str,
    user_id: Optional[str],
    email: Optional[str],
    ip_address: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None
) -> AuditLog:
    """
    Log an account event.

    Args:
        db: Database session
        action: One of the AuditAction constants
        user_id: ID of the account (None if the email matched nothing)
        email: Email the action was attempted with
        ip_address: Client address, when known
        metadata: Additional context (e.g., failure reason)

    Returns:
        Created AuditLog instance
    """
    audit_log = AuditLog(
        actor_id=user_id,
        actor_email=email,
        action=action,
        meta_data=metadata,
        ip_address=ip_address
    )

    db.add(audit_log)
    await db.commit()
    await db.refresh(audit_log)

    return audit_log

