"""
Security guards for role-based and ownership-based access control.

Provides dependencies and helpers for protecting endpoints.
"""

from fastapi import Depends, HTTPException, status
from fleet_backend.app.models.enums import UserRole
from fleet_backend.app.core.dependencies import get_current_user


def require_admin(current_user: dict = Depends(get_current_user)) -> dict:
    """
    Dependency for admin-only endpoints.

    Returns:
        User payload if admin, raises 403 otherwise
    """
    if current_user.get("role") != UserRole.ADMIN.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )

    return current_user


def is_admin(current_user: dict) -> bool:
    return current_user.get("role") == UserRole.ADMIN.value


def verify_ownership(resource_owner_id: int, current_user: dict) -> bool:
    """
    Verify that the current user may act on a driver-owned resource.

    Admins may act on every resource of their company (tenant scoping is
    applied by the query that loaded the resource); drivers only on their own.
    """
    if is_admin(current_user):
        return True
    return current_user.get("user_id") == resource_owner_id
