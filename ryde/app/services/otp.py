"""
One-time password lifecycle: generation, issuance, consumption and the
periodic sweep of expired codes.
"""

import asyncio
import hmac
import logging
import secrets
import string
from datetime import timedelta
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ryde.app.core.clock import utcnow
from ryde.app.core.config import settings
from ryde.app.core.exceptions import NotFoundError, ValidationError
from ryde.app.models.enums import OtpPurpose
from ryde.app.models.otp_code import OtpCode
from ryde.app.models.user import User

logger = logging.getLogger("ryde.otp")

DIGITS = string.digits
LOWERCASE = string.ascii_lowercase
UPPERCASE = string.ascii_uppercase
SPECIAL_CHARS = "#!&@"

INVALID_OTP_MESSAGE = "Invalid or expired OTP"


def generate_otp(
    length: int = 10,
    digits: bool = True,
    lowercase: bool = True,
    uppercase: bool = True,
    special_chars: bool = True,
) -> str:
    """
    Generate a random code from the union of the enabled character sets.

    When digits are enabled the first character is never ``0``.

    Raises:
        ValueError: if no character set is enabled or length < 1
    """
    if length < 1:
        raise ValueError("OTP length must be at least 1")

    alphabet = (
        (DIGITS if digits else "")
        + (LOWERCASE if lowercase else "")
        + (UPPERCASE if uppercase else "")
        + (SPECIAL_CHARS if special_chars else "")
    )
    if not alphabet:
        raise ValueError("No characters available to generate OTP. Check your options.")

    chars = []
    while len(chars) < length:
        char = alphabet[secrets.randbelow(len(alphabet))]
        if not chars and digits and char == "0":
            continue
        chars.append(char)
    return "".join(chars)


def generate_configured_otp() -> str:
    """Generate a code using the OTP settings."""
    return generate_otp(
        length=settings.otp_length,
        digits=settings.otp_digits,
        lowercase=settings.otp_lowercase,
        uppercase=settings.otp_uppercase,
        special_chars=settings.otp_special_chars,
    )


async def issue_otp(db: AsyncSession, user: User, purpose: OtpPurpose) -> OtpCode:
    """Insert a new code for `user`, valid for the configured window."""
    now = utcnow()
    otp = OtpCode(
        user_id=user.id,
        otp=generate_configured_otp(),
        purpose=purpose,
        created_at=now,
        otp_expiry=now + timedelta(minutes=settings.otp_expire_minutes),
    )
    db.add(otp)
    await db.commit()
    await db.refresh(otp)
    return otp


async def latest_otp(db: AsyncSession, user_id: str) -> Optional[OtpCode]:
    result = await db.execute(
        select(OtpCode)
        .where(OtpCode.user_id == user_id)
        .order_by(OtpCode.created_at.desc(), OtpCode.id.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def consume_otp(db: AsyncSession, user: User, code: str) -> OtpCode:
    """
    Check `code` against the user's most recent OTP and delete it on success.

    A wrong code and an expired code produce the same error. The row is not
    committed as deleted here; the caller commits together with its own
    state change.

    Raises:
        NotFoundError: the user has no outstanding OTP
        ValidationError: code mismatch or expired
    """
    otp = await latest_otp(db, user.id)
    if otp is None:
        raise NotFoundError("No OTP found")

    matches = hmac.compare_digest(otp.otp.encode("utf-8"), code.encode("utf-8"))
    if not matches or otp.otp_expiry < utcnow():
        raise ValidationError(INVALID_OTP_MESSAGE)

    await db.delete(otp)
    return otp


async def purge_expired_otps(db: AsyncSession) -> int:
    """Delete every expired code; returns the number removed."""
    result = await db.execute(delete(OtpCode).where(OtpCode.otp_expiry < utcnow()))
    await db.commit()
    return result.rowcount or 0


class OtpSweeper:
    """
    Background task deleting expired OTP rows.

    Runs on wall-clock boundaries of `interval_minutes` (top of the hour for
    the default 60). Failures are logged and the loop carries on.
    """

    def __init__(self, session_factory: async_sessionmaker, interval_minutes: int = 60):
        self.session_factory = session_factory
        self.interval_seconds = interval_minutes * 60
        self._task: Optional[asyncio.Task] = None

    def seconds_until_next_run(self, now=None) -> float:
        now = now or utcnow()
        elapsed = (now.hour * 3600 + now.minute * 60 + now.second + now.microsecond / 1e6)
        remainder = elapsed % self.interval_seconds
        return self.interval_seconds - remainder

    async def run_once(self) -> int:
        try:
            async with self.session_factory() as db:
                removed = await purge_expired_otps(db)
        except Exception:
            logger.exception("Expired OTP sweep failed")
            return 0
        logger.info("Expired OTP sweep removed %d rows", removed)
        return removed

    async def _loop(self):
        while True:
            await asyncio.sleep(self.seconds_until_next_run())
            await self.run_once()

    def start(self):
        if self._task is None:
            self._task = asyncio.create_task(self._loop(), name="otp-sweeper")

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
