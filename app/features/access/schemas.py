"""
Pydantic schemas for effective access and the permission matrix.
"""
from typing import Dict, List
from pydantic import BaseModel

from app.features.roles.models import RoleKind


class EffectiveRolesResponse(BaseModel):
    user_ref: str
    roles: List[str]


class EffectivePermissionsResponse(BaseModel):
    user_ref: str
    permissions: List[str]


class ReconcileResponse(BaseModel):
    repaired_count: int


class PermissionDescription(BaseModel):
    name: str
    resource: str
    action: str
    description: str


class RolePermissionEntry(BaseModel):
    role_name: str
    role_type: RoleKind
    is_unrestricted: bool
    permissions: List[str]
    user_count: int
    group_count: int


class UserPermissionEntry(BaseModel):
    user_id: str
    user_ref: str
    email: str
    direct_roles: List[str]
    group_roles: List[str]
    effective_roles: List[str]
    effective_permissions: List[str]
    group_names: List[str]


class GroupPermissionEntry(BaseModel):
    group_id: str
    group_name: str
    roles: List[str]
    member_count: int
    effective_permissions: List[str]


class PermissionMatrixResponse(BaseModel):
    """Audit snapshot. Entry order is unspecified."""
    roles: List[RolePermissionEntry]
    users: List[UserPermissionEntry]
    groups: List[GroupPermissionEntry]
    permissions_by_role: Dict[str, List[str]]
