"""
User profile API endpoints.

Routes:
- GET /user/all-users: List non-admin users (admin only)
- GET /user/{id}: Get user profile by ID (authenticated)
- PUT /user/{id}: Update own profile (non-admin)
- DELETE /user/{id}: Delete own account (non-admin)
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError as PydanticValidationError

from ryde.app.api.deps import clear_token_cookies, get_account_service
from ryde.app.core.dependencies import get_current_user
from ryde.app.core.guards import ownership_guard, require_admin, require_non_admin
from ryde.app.schemas.common import send_response
from ryde.app.schemas.user import ProfileUpdateRequest, UserListResponse, UserProfile
from ryde.app.services.account_service import AccountService
from ryde.app.services.media import save_upload_to_temp

router = APIRouter(prefix="/user", tags=["Users"])


@router.get("/all-users")
async def list_users(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    admin: dict = Depends(require_admin),
    service: AccountService = Depends(get_account_service),
):
    """List all non-admin users (admin-only), newest first."""
    users, total = await service.list_users(page, page_size)
    payload = UserListResponse(
        users=[UserProfile.model_validate(user) for user in users],
        total=total,
        page=page,
        page_size=page_size,
    )
    return send_response(status.HTTP_200_OK, payload.model_dump(mode="json"), "Users fetched successfully")


@router.get("/{user_id}")
async def get_user(
    user_id: str,
    current_user: dict = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
):
    """Get a user's public profile."""
    user = await service.get_by_id(user_id)
    return send_response(
        status.HTTP_200_OK,
        UserProfile.model_validate(user).model_dump(mode="json"),
        "User fetched successfully",
    )


@router.put("/{user_id}")
async def update_profile(
    user_id: str,
    firstname: Optional[str] = Form(None),
    lastname: Optional[str] = Form(None),
    phone_number: Optional[str] = Form(None),
    avatar: Optional[UploadFile] = File(None),
    current_user: dict = Depends(require_non_admin),
    service: AccountService = Depends(get_account_service),
):
    """Update names and phone number; an `avatar` file replaces the old one."""
    ownership_guard.enforce(user_id, current_user)
    try:
        data = ProfileUpdateRequest(firstname=firstname, lastname=lastname, phone_number=phone_number)
    except PydanticValidationError as exc:
        raise RequestValidationError(exc.errors(include_url=False, include_context=False))

    avatar_path = await save_upload_to_temp(avatar)
    user = await service.update_profile(user_id, data, avatar_path)
    return send_response(
        status.HTTP_200_OK,
        UserProfile.model_validate(user).model_dump(mode="json"),
        "Profile updated successfully",
    )


@router.delete("/{user_id}")
async def delete_profile(
    user_id: str,
    current_user: dict = Depends(require_non_admin),
    service: AccountService = Depends(get_account_service),
):
    """Delete the caller's account and its avatar."""
    ownership_guard.enforce(user_id, current_user)
    await service.delete_profile(user_id)
    response = send_response(status.HTTP_200_OK, {}, "Profile deleted successfully")
    return clear_token_cookies(response)
