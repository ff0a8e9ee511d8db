"""
Security guards for role-based and ownership-based access control.

Provides dependencies for protecting endpoints.
"""

from typing import Iterable, List
from fastapi import Depends
from ryde.app.models.enums import UserRole
from ryde.app.core.dependencies import get_current_user
from ryde.app.core.exceptions import AuthorizationError


def role_allowed(role_claim, allowed_roles: Iterable[UserRole]) -> bool:
    """Predicate shared by every role rule."""
    try:
        role = UserRole(role_claim)
    except ValueError:
        return False
    return role in allowed_roles


def require_role(allowed_roles: List[UserRole], message: str = None):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.get("/user/all-users")
        async def list_users(current_user: dict = Depends(require_role([UserRole.ADMIN]))):
            ...

    Args:
        allowed_roles: List of UserRole enums that are allowed to access the endpoint
        message: Optional 403 message

    Returns:
        FastAPI dependency function that validates user role

    Raises:
        AuthorizationError 403 if user role is not in allowed_roles
    """
    allowed = frozenset(allowed_roles)
    denied_message = message or f"Access denied. Required role: {', '.join(r.value for r in allowed_roles)}"

    async def role_checker(current_user: dict = Depends(get_current_user)) -> dict:
        if not role_allowed(current_user.get("role"), allowed):
            raise AuthorizationError(denied_message)
        return current_user

    return role_checker


require_admin = require_role([UserRole.ADMIN], "Admin access required")
require_non_admin = require_role(
    [UserRole.USER, UserRole.DRIVER],
    "Access denied. This route is not accessible to administrators",
)
require_driver = require_role([UserRole.DRIVER], "Driver access required")


class OwnershipGuard:
    """
    Ownership guard for profile-level resources.

    Usage:
        ownership_guard = OwnershipGuard()

        @router.put("/user/{user_id}")
        async def update_profile(user_id: str, current_user: dict = Depends(require_non_admin)):
            ownership_guard.enforce(user_id, current_user)
            ...
    """

    def is_owner(self, resource_owner_id: str, current_user: dict) -> bool:
        return current_user.get("user_id") == resource_owner_id

    def enforce(self, resource_owner_id: str, current_user: dict, resource_name: str = "profile"):
        """Raise 403 unless the caller owns the resource."""
        if not self.is_owner(resource_owner_id, current_user):
            raise AuthorizationError(
                f"Access denied. You do not have permission to modify this {resource_name}."
            )


ownership_guard = OwnershipGuard()
