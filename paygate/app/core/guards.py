"""
Security guards for role-based and ownership-based access control.

Provides dependencies for protecting endpoints.
"""

from typing import List
from fastapi import Depends, HTTPException, status
from paygate.app.models.enums import UserRole
from paygate.app.core.dependencies import get_current_user


def require_role(allowed_roles: List[UserRole]):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.post("/payout")
        async def create_payout(current_user: dict = Depends(require_role(PAYOUT_ROLES))):
            ...

    Args:
        allowed_roles: List of UserRole enums that are allowed to access the endpoint

    Returns:
        FastAPI dependency function that validates user role

    Raises:
        HTTPException 403 if user role is not in allowed_roles
    """
    async def role_checker(current_user: dict = Depends(get_current_user)) -> dict:
        user_role_str = current_user.get("role")

        if not user_role_str:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Role information missing from token"
            )

        try:
            user_role = UserRole(user_role_str)
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Invalid role in token"
            )

        if user_role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required role: {', '.join([r.value for r in allowed_roles])}"
            )

        return current_user

    return role_checker


def require_admin(current_user: dict = Depends(get_current_user)) -> dict:
    """
    Dependency for admin-only endpoints.

    Usage:
        @router.post("/admin/users/{user_id}/block")
        async def block_user(user_id: int, admin: dict = Depends(require_admin)):
            ...
    """
    if current_user.get("role") != UserRole.ADMIN.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )

    return current_user


def verify_ownership(target_user, current_user: dict) -> bool:
    """
    Verify that the caller may act on `target_user`.

    Admins and staff: always allowed
    Agents: only users they referred
    Everyone else: only themselves
    """
    user_role = current_user.get("role")
    user_id = current_user.get("user_id")

    if user_role in (UserRole.ADMIN.value, UserRole.STAFF.value):
        return True

    if user_role == UserRole.AGENT.value:
        return target_user.agent_id == user_id

    return target_user.id == user_id


class OwnershipGuard:
    """
    Class-based ownership guard for agent and merchant scoped reads.

    Usage:
        ownership_guard.enforce(user, current_user, "user")
    """

    def enforce(self, target_user, current_user: dict, resource_name: str = "resource"):
        if not verify_ownership(target_user, current_user):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. You do not have permission to access this {resource_name}."
            )

    def filter_by_ownership(self, current_user: dict):
        """
        Column/value pair to filter user queries by, or None for admins and staff.

        Returns:
            ("agent_id", id) for agents, ("id", id) for merchants, None otherwise
        """
        user_role = current_user.get("role")
        user_id = current_user.get("user_id")

        if user_role in (UserRole.ADMIN.value, UserRole.STAFF.value):
            return None
        if user_role == UserRole.AGENT.value:
            return ("agent_id", user_id)
        return ("id", user_id)


ownership_guard = OwnershipGuard()
