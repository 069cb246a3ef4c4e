from collections.abc import Callable

from fastapi import Depends, HTTPException, status

from retailpos.core.security_current import get_current_user
from retailpos.models.user import User

ALLOWED_ROLES = {"admin", "user"}

PERMISSION_KEYS = (
    "users.manage",
    "inventory.manage",
    "prices.manage",
    "reports.view",
    "sales.process",
    "settings.manage",
)

ROLE_PERMISSION_MATRIX: dict[str, set[str]] = {
    "admin": {"*"},
    "user": {
        "reports.view",
        "sales.process",
    },
}


def role_permissions(role: str) -> set[str]:
    normalized = (role or "").strip().lower()
    return set(ROLE_PERMISSION_MATRIX.get(normalized, set()))


def has_permission(*, role: str, permission: str) -> bool:
    permissions = role_permissions(role)
    if "*" in permissions:
        return True
    return permission in permissions


def permission_snapshot(role: str) -> dict[str, bool]:
    return {key: has_permission(role=role, permission=key) for key in PERMISSION_KEYS}


def require_permission(permission: str) -> Callable[[User], User]:
    normalized_permission = (permission or "").strip().lower()
    if not normalized_permission:
        raise ValueError("Permission key is required")

    def dependency(user: User = Depends(get_current_user)) -> User:
        if not has_permission(role=user.role, permission=normalized_permission):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permission for this action",
            )
        return user

    return dependency
