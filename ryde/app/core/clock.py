"""
Time helpers.

OTP expiry arithmetic is done in naive UTC so comparisons behave the same
on PostgreSQL and SQLite.
"""

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current UTC time without tzinfo."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
