"""
Enumerations for accounts and one-time passwords.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Roles:
        USER: Passenger who books rides (default role)
        DRIVER: Accepts and drives rides
        ADMIN: System administrator with full access
    """
    USER = "user"
    DRIVER = "driver"
    ADMIN = "admin"


class OtpPurpose(str, enum.Enum):
    """What a one-time password proves once it is consumed."""
    EMAIL_VERIFICATION = "email_verification"
    PASSWORD_RESET = "password_reset"
