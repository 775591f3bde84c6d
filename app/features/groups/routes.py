"""
Group management API routes.

Membership endpoints go through the access engine so both the group's
member set and the user's group refs are written.
"""
from typing import Annotated, List
from fastapi import APIRouter, Depends, status

from app.features.access.dependencies import get_access_engine
from app.features.access.engine import AccessControlEngine
from app.features.access.schemas import ReconcileResponse
from app.features.auth.tokens import Principal
from app.features.groups.schemas import (
    AddGroupMember,
    AssignGroupRole,
    GroupCreate,
    GroupResponse,
    GroupUpdate,
)
from app.features.permissions.catalog import Permission
from app.features.permissions.dependencies import require_permission


router = APIRouter()


@router.get("", response_model=List[GroupResponse])
async def list_groups(
    engine: Annotated[AccessControlEngine, Depends(get_access_engine)],
    _principal: Annotated[Principal, Depends(require_permission(Permission.GROUP_VIEW))],
):
    groups = await engine.groups.list_all()
    return sorted(groups, key=lambda group: group.name)


@router.post("/sync-memberships", response_model=ReconcileResponse)
async def sync_memberships(
    engine: Annotated[AccessControlEngine, Depends(get_access_engine)],
    principal: Annotated[Principal, Depends(require_permission(Permission.SYSTEM_ADMIN))],
):
    """Repair drift between group member sets and user group refs."""
    return await engine.reconcile_memberships(principal.user_ref)


@router.get("/{group_id}", response_model=GroupResponse)
async def get_group(
    group_id: str,
    engine: Annotated[AccessControlEngine, Depends(get_access_engine)],
    _principal: Annotated[Principal, Depends(require_permission(Permission.GROUP_VIEW))],
):
    return await engine.groups.get(group_id)


@router.post("", response_model=GroupResponse, status_code=status.HTTP_201_CREATED)
async def create_group(
    group: GroupCreate,
    engine: Annotated[AccessControlEngine, Depends(get_access_engine)],
    principal: Annotated[Principal, Depends(require_permission(Permission.GROUP_CREATE))],
):
    created = await engine.create_group(
        group.name,
        group.description,
        member_refs=group.member_user_refs,
        role_names=group.role_names,
        actor=principal.user_ref,
    )
    return await engine.groups.get(created.id)


@router.put("/{group_id}", response_model=GroupResponse)
async def update_group(
    group_id: str,
    group_update: GroupUpdate,
    engine: Annotated[AccessControlEngine, Depends(get_access_engine)],
    principal: Annotated[Principal, Depends(require_permission(Permission.GROUP_UPDATE))],
):
    patch = group_update.model_dump(exclude_unset=True)
    return await engine.update_group(group_id, patch, principal.user_ref)


@router.delete("/{group_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_group(
    group_id: str,
    engine: Annotated[AccessControlEngine, Depends(get_access_engine)],
    principal: Annotated[Principal, Depends(require_permission(Permission.GROUP_DELETE))],
):
    await engine.delete_group(group_id, principal.user_ref)


@router.post("/{group_id}/members", response_model=GroupResponse)
async def add_group_member(
    group_id: str,
    member: AddGroupMember,
    engine: Annotated[AccessControlEngine, Depends(get_access_engine)],
    principal: Annotated[Principal, Depends(require_permission(Permission.GROUP_MANAGE_MEMBERS))],
):
    await engine.add_group_member(group_id, member.user_ref, principal.user_ref)
    return await engine.groups.get(group_id)


@router.delete("/{group_id}/members/{user_ref}", response_model=GroupResponse)
async def remove_group_member(
    group_id: str,
    user_ref: str,
    engine: Annotated[AccessControlEngine, Depends(get_access_engine)],
    principal: Annotated[Principal, Depends(require_permission(Permission.GROUP_MANAGE_MEMBERS))],
):
    await engine.remove_group_member(group_id, user_ref, principal.user_ref)
    return await engine.groups.get(group_id)


@router.post("/{group_id}/roles", response_model=GroupResponse)
async def assign_group_role(
    group_id: str,
    assignment: AssignGroupRole,
    engine: Annotated[AccessControlEngine, Depends(get_access_engine)],
    principal: Annotated[Principal, Depends(require_permission(Permission.GROUP_MANAGE_ROLES))],
):
    await engine.assign_group_role(group_id, assignment.role_name, principal.user_ref)
    return await engine.groups.get(group_id)


@router.delete("/{group_id}/roles/{role_name}", response_model=GroupResponse)
async def remove_group_role(
    group_id: str,
    role_name: str,
    engine: Annotated[AccessControlEngine, Depends(get_access_engine)],
    principal: Annotated[Principal, Depends(require_permission(Permission.GROUP_MANAGE_ROLES))],
):
    await engine.remove_group_role(group_id, role_name, principal.user_ref)
    return await engine.groups.get(group_id)
