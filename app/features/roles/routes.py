"""
Role management API routes.
"""
from typing import Annotated, List
from fastapi import APIRouter, Depends, status

from app.features.access.dependencies import get_access_engine
from app.features.access.engine import AccessControlEngine
from app.features.auth.tokens import Principal
from app.features.permissions.catalog import Permission
from app.features.permissions.dependencies import require_permission
from app.features.roles.schemas import (
    RoleCreate,
    RolePermissionsResponse,
    RoleResponse,
    RoleUpdate,
)


router = APIRouter()


@router.get("", response_model=List[RoleResponse])
async def list_roles(
    engine: Annotated[AccessControlEngine, Depends(get_access_engine)],
    _principal: Annotated[Principal, Depends(require_permission(Permission.ROLE_VIEW))],
):
    roles = await engine.roles.list_all()
    return sorted(roles, key=lambda role: role.name)


@router.get("/{name}", response_model=RoleResponse)
async def get_role(
    name: str,
    engine: Annotated[AccessControlEngine, Depends(get_access_engine)],
    _principal: Annotated[Principal, Depends(require_permission(Permission.ROLE_VIEW))],
):
    return await engine.roles.get_by_name(name)


@router.get("/{name}/permissions", response_model=RolePermissionsResponse)
async def get_role_permissions(
    name: str,
    engine: Annotated[AccessControlEngine, Depends(get_access_engine)],
    _principal: Annotated[Principal, Depends(require_permission(Permission.ROLE_VIEW))],
):
    """Permissions granted by the role; unrestricted roles report the whole catalog."""
    role = await engine.roles.get_by_name(name)
    permissions = engine.resolver.permissions_from([role])
    return RolePermissionsResponse(
        role_name=role.name,
        is_unrestricted=role.is_unrestricted,
        permissions=sorted(permissions),
    )


@router.post("", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
async def create_role(
    role: RoleCreate,
    engine: Annotated[AccessControlEngine, Depends(get_access_engine)],
    principal: Annotated[Principal, Depends(require_permission(Permission.ROLE_CREATE))],
):
    """Create a CUSTOM role."""
    return await engine.create_role(role.name, role.description, role.permissions, principal.user_ref)


@router.put("/{name}", response_model=RoleResponse)
async def update_role(
    name: str,
    role_update: RoleUpdate,
    engine: Annotated[AccessControlEngine, Depends(get_access_engine)],
    principal: Annotated[Principal, Depends(require_permission(Permission.ROLE_UPDATE))],
):
    return await engine.update_role(
        name,
        description=role_update.description,
        permissions=role_update.permissions,
        actor=principal.user_ref,
    )


@router.delete("/{name}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_role(
    name: str,
    engine: Annotated[AccessControlEngine, Depends(get_access_engine)],
    principal: Annotated[Principal, Depends(require_permission(Permission.ROLE_DELETE))],
):
    """Delete a CUSTOM role. SYSTEM roles answer 403."""
    await engine.delete_role(name, principal.user_ref)
