"""
Route protection based on the permission claims of the access token.
"""
from typing import Iterable
from fastapi import Depends, HTTPException, status

from app.features.auth.dependencies import get_current_principal
from app.features.auth.tokens import Principal
from app.features.permissions.catalog import Permission
from app.utils import get_logger


log = get_logger(__name__)


def require_permission(permission: Permission):
    """
    FastAPI dependency to require a specific permission.

    Usage:
        @router.post("/groups")
        async def create_group(
            principal: Principal = Depends(require_permission(Permission.GROUP_CREATE))
        ):
            pass

    Raises:
        HTTPException: 403 if the token does not carry the permission
    """
    async def permission_dependency(
        principal: Principal = Depends(get_current_principal),
    ) -> Principal:
        if not principal.has_permission(permission.value):
            log.warning(
                "SECURITY_AUDIT: access denied user=%s permission=%s",
                principal.user_ref, permission.value,
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission denied: {permission.action} on {permission.resource}"
            )
        return principal

    return permission_dependency


def require_any_permission(permissions: Iterable[Permission]):
    """
    FastAPI dependency to require ANY of the specified permissions.

    Usage:
        @router.get("/users/{user_ref}")
        async def get_user(
            principal: Principal = Depends(require_any_permission([Permission.USER_VIEW, Permission.SYSTEM_ADMIN]))
        ):
            pass
    """
    permissions = list(permissions)

    async def permission_dependency(
        principal: Principal = Depends(get_current_principal),
    ) -> Principal:
        for permission in permissions:
            if principal.has_permission(permission.value):
                return principal

        names = [permission.value for permission in permissions]
        log.warning("SECURITY_AUDIT: access denied user=%s permissions=%s", principal.user_ref, names)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Permission denied: requires one of {names}"
        )

    return permission_dependency
