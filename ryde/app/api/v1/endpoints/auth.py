"""
Authentication API endpoints.

Sign-up, sign-in/out, refresh-token rotation, OTP verification and password
management. Tokens are returned in the body and mirrored into http-only
cookies.
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError as PydanticValidationError

from ryde.app.api.deps import clear_token_cookies, get_account_service, set_token_cookies
from ryde.app.core.dependencies import REFRESH_TOKEN_COOKIE, get_current_user
from ryde.app.models.enums import OtpPurpose
from ryde.app.schemas.auth import (
    ChangePasswordRequest,
    EmailRequest,
    RefreshTokenRequest,
    ResetPasswordRequest,
    SafeUser,
    SignInRequest,
    SignInResponse,
    SignUpRequest,
    SignUpResponse,
    TokenPair,
    VerifyOtpRequest,
)
from ryde.app.schemas.common import send_response
from ryde.app.services.account_service import AccountService
from ryde.app.services.media import save_upload_to_temp

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/sign-up", status_code=status.HTTP_201_CREATED)
async def sign_up(
    firstname: Optional[str] = Form(None),
    lastname: Optional[str] = Form(None),
    email: Optional[str] = Form(None),
    password: Optional[str] = Form(None),
    role: Optional[str] = Form(None),
    avatar: Optional[UploadFile] = File(None),
    service: AccountService = Depends(get_account_service),
):
    """
    Register a new user (multipart form, optional `avatar` file).

    The account starts unverified; a welcome email is sent best-effort.
    """
    try:
        data = SignUpRequest(
            firstname=firstname, lastname=lastname, email=email, password=password, role=role
        )
    except PydanticValidationError as exc:
        raise RequestValidationError(exc.errors(include_url=False, include_context=False))

    avatar_path = await save_upload_to_temp(avatar)
    user = await service.sign_up(data, avatar_path)
    return send_response(
        status.HTTP_201_CREATED,
        SignUpResponse.model_validate(user).model_dump(),
        "User signed up successfully",
    )


@router.post("/sign-in")
async def sign_in(
    credentials: SignInRequest,
    request: Request,
    service: AccountService = Depends(get_account_service),
):
    """Authenticate a verified user and open a session."""
    client_ip = request.client.host if request.client else None
    user, access_token, refresh_token = await service.sign_in(
        credentials.email, credentials.password, client_ip
    )

    payload = SignInResponse(
        user=SafeUser.model_validate(user),
        access_token=access_token,
        refresh_token=refresh_token,
    )
    response = send_response(status.HTTP_200_OK, payload.model_dump(by_alias=True), "User signed in successfully")
    return set_token_cookies(response, access_token, refresh_token)


@router.post("/sign-out")
async def sign_out(
    current_user: dict = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
):
    """Revoke the caller's refresh token and clear both cookies."""
    await service.sign_out(current_user.get("user_id"))
    response = send_response(status.HTTP_200_OK, {}, "User logged out successfully")
    return clear_token_cookies(response)


@router.post("/refresh-token")
async def refresh_token(
    request: Request,
    body: Optional[RefreshTokenRequest] = None,
    service: AccountService = Depends(get_account_service),
):
    """Rotate the refresh token (body `refreshToken`, else the cookie)."""
    presented = (body.refresh_token if body else None) or request.cookies.get(REFRESH_TOKEN_COOKIE)
    access_token, new_refresh_token = await service.refresh_tokens(presented)

    payload = TokenPair(access_token=access_token, refresh_token=new_refresh_token)
    response = send_response(status.HTTP_200_OK, payload.model_dump(by_alias=True), "Access token refreshed")
    return set_token_cookies(response, access_token, new_refresh_token)


@router.post("/verify-email")
async def verify_email(
    body: EmailRequest,
    service: AccountService = Depends(get_account_service),
):
    """Email a verification OTP to the account holder."""
    await service.request_email_verification(body.email)
    return send_response(status.HTTP_200_OK, {}, "Verification OTP sent to email")


@router.post("/verify-otp")
async def verify_otp(
    body: VerifyOtpRequest,
    service: AccountService = Depends(get_account_service),
):
    """Consume the latest OTP for the account."""
    purpose = await service.verify_otp(body.email, body.otp)
    if purpose == OtpPurpose.EMAIL_VERIFICATION:
        message = "Email verified successfully"
    else:
        message = "OTP verified successfully"
    return send_response(status.HTTP_200_OK, {"purpose": purpose.value}, message)


@router.post("/forgot-password")
async def forgot_password(
    body: EmailRequest,
    service: AccountService = Depends(get_account_service),
):
    """Email a password-reset OTP to the account holder."""
    await service.request_password_reset(body.email)
    return send_response(status.HTTP_200_OK, {}, "Password reset OTP sent to email")


@router.post("/reset-password")
async def reset_password(
    body: ResetPasswordRequest,
    service: AccountService = Depends(get_account_service),
):
    """Overwrite the password of a verified account."""
    await service.reset_password(body.email, body.new_password)
    return send_response(status.HTTP_200_OK, {}, "Password reset successfully")


@router.post("/change-password")
async def change_password(
    body: ChangePasswordRequest,
    service: AccountService = Depends(get_account_service),
):
    """Change the password after checking the current one."""
    await service.change_password(body.email, body.current_password, body.new_password)
    return send_response(status.HTTP_200_OK, {}, "Password changed successfully")
