"""
Password hashing utilities.
"""

from passlib.context import CryptContext
from ryde.app.core.exceptions import ValidationError

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
MAX_BCRYPT_BYTES = 72  # bcrypt limit


def get_password_hash(password: str) -> str:
    """Hash password with bcrypt, rejecting input bcrypt would truncate."""
    if len(password.encode("utf-8")) > MAX_BCRYPT_BYTES:
        raise ValidationError(f"Password too long. Max {MAX_BCRYPT_BYTES} bytes allowed.")
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Check a plaintext password against a stored hash."""
    if len(plain_password.encode("utf-8")) > MAX_BCRYPT_BYTES:
        return False
    return pwd_context.verify(plain_password, hashed_password)
