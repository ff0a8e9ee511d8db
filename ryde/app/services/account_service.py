"""
Account Service.

Orchestrates the account lifecycle: sign-up, sign-in, sign-out, refresh-token
rotation, OTP-based email verification and password reset, password change
and profile management. Every method raises AppException subclasses; the
HTTP layer turns them into the response envelope.
"""

import hmac
import logging
from typing import Any, List, Optional, Tuple

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ryde.app.core.exceptions import (
    AuthError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    StateError,
    ValidationError,
)
from ryde.app.core.jwt import create_token_pair, decode_refresh_token
from ryde.app.core.security import get_password_hash, verify_password
from ryde.app.models.enums import OtpPurpose, UserRole
from ryde.app.models.otp_code import OtpCode
from ryde.app.models.user import User
from ryde.app.schemas.auth import SignUpRequest
from ryde.app.schemas.user import ProfileUpdateRequest
from ryde.app.services.audit import AuditAction, log_auth_event
from ryde.app.services.mailer import EmailDeliveryError, Mailer
from ryde.app.services.media import MediaUploader, remove_local_file
from ryde.app.services.otp import consume_otp, issue_otp

logger = logging.getLogger("ryde.accounts")


def validate_required_fields(**fields: Any) -> None:
    """
    Raise ValidationError naming every empty field.

    Example:
        validate_required_fields(email="a@b.com", password="")
        # ValidationError("Missing required fields: password")
    """
    missing = [name for name, value in fields.items() if value is None or value == ""]
    if missing:
        raise ValidationError(
            f"Missing required fields: {', '.join(missing)}",
            details={"missing": missing},
        )


class AccountService:
    """Business rules for accounts, bound to one request's collaborators."""

    def __init__(self, db: AsyncSession, mailer: Mailer, media: MediaUploader):
        self.db = db
        self.mailer = mailer
        self.media = media

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def find_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.email == email).limit(1))
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> User:
        user = await self.find_by_email(email)
        if user is None:
            raise NotFoundError("User does not exist")
        return user

    async def get_by_id(self, user_id: str) -> User:
        result = await self.db.execute(select(User).where(User.id == user_id))
        user = result.scalar_one_or_none()
        if user is None:
            raise NotFoundError("User does not exist")
        return user

    # ------------------------------------------------------------------
    # Sign-up / sign-in / sign-out / refresh
    # ------------------------------------------------------------------

    async def sign_up(self, data: SignUpRequest, avatar_path: Optional[str] = None) -> User:
        """
        Create an unverified account.

        The existence check gives the friendly error; the unique index on
        email is what actually guarantees no duplicates under concurrency.
        """
        try:
            validate_required_fields(
                firstname=data.firstname,
                lastname=data.lastname,
                email=data.email,
                password=data.password,
                role=data.role,
            )
            if data.role == UserRole.ADMIN:
                raise AuthorizationError("Admin users cannot be registered via API")
            if await self.find_by_email(data.email) is not None:
                raise ConflictError("User already exists")
            hashed_password = get_password_hash(data.password)
        except Exception:
            if avatar_path:
                remove_local_file(avatar_path)
            raise

        avatar_url = await self.media.upload(avatar_path) if avatar_path else None

        user = User(
            firstname=data.firstname,
            lastname=data.lastname,
            email=data.email,
            password=hashed_password,
            avatar=avatar_url,
            role=data.role,
            is_verified=False,
        )
        self.db.add(user)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            if avatar_url:
                await self.media.destroy(avatar_url)
            raise ConflictError("User already exists")
        await self.db.refresh(user)

        try:
            await self.mailer.send_welcome_email(user.full_name, user.email)
        except EmailDeliveryError as exc:
            logger.warning("Welcome email to %s failed; account kept: %s", user.email, exc.reason)

        await log_auth_event(self.db, AuditAction.SIGN_UP, user.id, user.email,
                             metadata={"role": user.role.value})
        return user

    async def sign_in(
        self,
        email: Optional[str],
        password: Optional[str],
        client_ip: Optional[str] = None,
    ) -> Tuple[User, str, str]:
        """Check credentials and open a session; returns (user, access, refresh)."""
        validate_required_fields(email=email, password=password)

        user = await self.find_by_email(email)
        if user is None:
            await log_auth_event(self.db, AuditAction.SIGN_IN_FAILED, None, email, client_ip,
                                 {"reason": "User not found"})
            raise NotFoundError("User does not exist")

        if not user.is_verified:
            await log_auth_event(self.db, AuditAction.SIGN_IN_FAILED, user.id, email, client_ip,
                                 {"reason": "User not verified"})
            raise StateError("User is not verified")

        if not verify_password(password, user.password):
            await log_auth_event(self.db, AuditAction.SIGN_IN_FAILED, user.id, email, client_ip,
                                 {"reason": "Invalid password"})
            raise AuthError("Invalid credentials")

        access_token, refresh_token = await self._rotate_tokens(user)
        await log_auth_event(self.db, AuditAction.SIGN_IN_SUCCESS, user.id, email, client_ip)
        return user, access_token, refresh_token

    async def sign_out(self, user_id: Optional[str]) -> None:
        """Revoke the stored refresh token. Safe to repeat."""
        validate_required_fields(id=user_id)
        await self.db.execute(update(User).where(User.id == user_id).values(refresh_token=None))
        await self.db.commit()
        await log_auth_event(self.db, AuditAction.SIGN_OUT, user_id, None)

    async def refresh_tokens(self, presented: Optional[str]) -> Tuple[str, str]:
        """
        Exchange a refresh token for a brand-new pair.

        The presented token must equal the one stored on the user row, so a
        token that was already rotated out (or revoked by sign-out) is refused.
        """
        if not presented:
            raise AuthError("Unauthorized request")

        payload = decode_refresh_token(presented)
        if payload is None:
            raise AuthError("Invalid refresh token")

        result = await self.db.execute(select(User).where(User.id == payload["user_id"]))
        user = result.scalar_one_or_none()
        if user is None:
            raise AuthError("Invalid refresh token")

        stored = user.refresh_token or ""
        if not hmac.compare_digest(stored.encode("utf-8"), presented.encode("utf-8")):
            await log_auth_event(self.db, AuditAction.TOKEN_REUSE_DETECTED, user.id, user.email)
            raise AuthError("Refresh token is expired or used")

        access_token, refresh_token = await self._rotate_tokens(user)
        await log_auth_event(self.db, AuditAction.TOKEN_REFRESHED, user.id, user.email)
        return access_token, refresh_token

    async def _rotate_tokens(self, user: User) -> Tuple[str, str]:
        access_token, refresh_token = create_token_pair(user.id, user.role)
        user.refresh_token = refresh_token
        await self.db.commit()
        return access_token, refresh_token

    # ------------------------------------------------------------------
    # OTP flows
    # ------------------------------------------------------------------

    async def request_email_verification(self, email: Optional[str]) -> None:
        validate_required_fields(email=email)
        user = await self.get_by_email(email)
        otp = await issue_otp(self.db, user, OtpPurpose.EMAIL_VERIFICATION)
        await self.mailer.send_verification_email(user.full_name, user.email, otp.otp)

    async def request_password_reset(self, email: Optional[str]) -> None:
        validate_required_fields(email=email)
        user = await self.get_by_email(email)
        otp = await issue_otp(self.db, user, OtpPurpose.PASSWORD_RESET)
        await self.mailer.send_forgot_password_email(user.full_name, user.email, otp.otp)

    async def verify_otp(self, email: Optional[str], code: Optional[str]) -> OtpPurpose:
        """
        Consume the user's latest OTP.

        An email-verification code marks the account verified; a
        password-reset code leaves `is_verified` alone.
        """
        validate_required_fields(email=email, otp=code)
        user = await self.get_by_email(email)
        consumed: OtpCode = await consume_otp(self.db, user, code)

        if consumed.purpose == OtpPurpose.EMAIL_VERIFICATION:
            user.is_verified = True
        await self.db.commit()

        if consumed.purpose == OtpPurpose.EMAIL_VERIFICATION:
            await log_auth_event(self.db, AuditAction.EMAIL_VERIFIED, user.id, user.email)
        return consumed.purpose

    # ------------------------------------------------------------------
    # Passwords
    # ------------------------------------------------------------------

    async def reset_password(self, email: Optional[str], new_password: Optional[str]) -> None:
        # TODO: require a recently consumed PASSWORD_RESET OTP before overwriting.
        validate_required_fields(email=email, newPassword=new_password)
        user = await self.get_by_email(email)
        if not user.is_verified:
            raise StateError("User is not verified")

        user.password = get_password_hash(new_password)
        await self.db.commit()
        await log_auth_event(self.db, AuditAction.PASSWORD_RESET, user.id, user.email)

    async def change_password(
        self,
        email: Optional[str],
        current_password: Optional[str],
        new_password: Optional[str],
    ) -> None:
        validate_required_fields(
            email=email, currentPassword=current_password, newPassword=new_password
        )
        user = await self.get_by_email(email)
        if not verify_password(current_password, user.password):
            raise AuthError("Current password is incorrect")

        user.password = get_password_hash(new_password)
        await self.db.commit()
        await log_auth_event(self.db, AuditAction.PASSWORD_CHANGED, user.id, user.email)

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------

    async def list_users(self, page: int = 1, page_size: int = 50) -> Tuple[List[User], int]:
        """Non-admin accounts, newest first."""
        base = select(User).where(User.role != UserRole.ADMIN)
        total = (await self.db.execute(
            select(func.count(User.id)).where(User.role != UserRole.ADMIN)
        )).scalar()

        offset = (page - 1) * page_size
        result = await self.db.execute(
            base.order_by(User.created_at.desc()).offset(offset).limit(page_size)
        )
        return list(result.scalars().all()), total

    async def update_profile(
        self,
        user_id: str,
        data: ProfileUpdateRequest,
        avatar_path: Optional[str] = None,
    ) -> User:
        """Update names and phone; a new avatar replaces (and deletes) the old one."""
        try:
            validate_required_fields(
                firstname=data.firstname,
                lastname=data.lastname,
                phone_number=data.phone_number,
            )
            user = await self.get_by_id(user_id)
        except Exception:
            if avatar_path:
                remove_local_file(avatar_path)
            raise

        if avatar_path:
            if user.avatar:
                await self.media.destroy(user.avatar)
            user.avatar = await self.media.upload(avatar_path)

        user.firstname = data.firstname
        user.lastname = data.lastname
        user.phone_number = data.phone_number
        await self.db.commit()
        await self.db.refresh(user)
        return user

    async def delete_profile(self, user_id: str) -> None:
        """Remove the account, its avatar and its OTP rows."""
        user = await self.get_by_id(user_id)
        if user.avatar:
            await self.media.destroy(user.avatar)

        email = user.email
        await self.db.execute(delete(OtpCode).where(OtpCode.user_id == user_id))
        await self.db.execute(delete(User).where(User.id == user_id))
        await self.db.commit()
        await log_auth_event(self.db, AuditAction.USER_DELETED, user_id, email)

