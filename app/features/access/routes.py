"""
Effective access queries and the permission matrix.
"""
from typing import Annotated, List, Optional
from fastapi import APIRouter, Depends

from app.features.access.dependencies import get_access_engine
from app.features.access.engine import AccessControlEngine
from app.features.access.schemas import (
    EffectivePermissionsResponse,
    EffectiveRolesResponse,
    PermissionDescription,
    PermissionMatrixResponse,
)
from app.features.auth.tokens import Principal
from app.features.permissions.catalog import Permission
from app.features.permissions.dependencies import require_any_permission, require_permission


router = APIRouter()


@router.get("/users/{user_ref}/roles", response_model=EffectiveRolesResponse)
async def get_effective_roles(
    user_ref: str,
    engine: Annotated[AccessControlEngine, Depends(get_access_engine)],
    _principal: Annotated[Principal, Depends(require_any_permission([Permission.USER_VIEW, Permission.SYSTEM_AUDIT]))],
):
    """Direct roles plus roles inherited from the user's groups."""
    roles = await engine.resolve_effective_roles(user_ref)
    return EffectiveRolesResponse(user_ref=user_ref, roles=sorted(roles))


@router.get("/users/{user_ref}/permissions", response_model=EffectivePermissionsResponse)
async def get_effective_permissions(
    user_ref: str,
    engine: Annotated[AccessControlEngine, Depends(get_access_engine)],
    _principal: Annotated[Principal, Depends(require_any_permission([Permission.USER_VIEW, Permission.SYSTEM_AUDIT]))],
):
    permissions = await engine.resolve_effective_permissions(user_ref)
    return EffectivePermissionsResponse(user_ref=user_ref, permissions=sorted(permissions))


@router.get("/matrix", response_model=PermissionMatrixResponse)
async def get_permission_matrix(
    engine: Annotated[AccessControlEngine, Depends(get_access_engine)],
    _principal: Annotated[Principal, Depends(require_permission(Permission.SYSTEM_AUDIT))],
):
    """Full role/user/group permission snapshot for auditors."""
    return await engine.build_permission_matrix()


@router.get("/catalog", response_model=List[PermissionDescription])
async def list_catalog(
    _principal: Annotated[Principal, Depends(require_permission(Permission.ROLE_VIEW))],
    resource: Optional[str] = None,
):
    """List the permission catalog, optionally for one resource."""
    return [
        PermissionDescription(
            name=permission.value,
            resource=permission.resource,
            action=permission.action,
            description=permission.description,
        )
        for permission in Permission
        if resource is None or permission.resource == resource.lower()
    ]
