"""
User feature routes.
"""
from typing import Annotated, Optional
from fastapi import APIRouter, Depends, Query, status

from app.features.access.dependencies import get_access_engine
from app.features.access.engine import AccessControlEngine
from app.features.auth.dependencies import get_current_principal
from app.features.auth.tokens import Principal
from app.features.permissions.catalog import Permission
from app.features.permissions.dependencies import require_permission
from app.features.users.schemas import UserCreate, UserProfile, UserResponse, UserRolesUpdate, UserUpdate


router = APIRouter(tags=["users"])


@router.get("/me", response_model=UserProfile)
async def get_current_user_profile(
    principal: Annotated[Principal, Depends(get_current_principal)],
    engine: Annotated[AccessControlEngine, Depends(get_access_engine)],
):
    """Get current authenticated user's profile with resolved access."""
    user = await engine.users.get(principal.user_ref)
    roles, permissions = await engine.access_snapshot(user)
    profile = UserProfile.model_validate(user)
    profile.effective_roles = sorted(roles)
    profile.effective_permissions = sorted(permissions)
    return profile


@router.get("", response_model=list[UserResponse])
async def list_users(
    engine: Annotated[AccessControlEngine, Depends(get_access_engine)],
    _principal: Annotated[Principal, Depends(require_permission(Permission.USER_VIEW))],
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    active: Optional[bool] = None,
    role: Optional[str] = None,
    q: Optional[str] = None,
):
    """List users ordered by username, filtered by status, direct role or search text."""
    users = await engine.users.search(active=active, role=role, q=q)
    return users[skip:skip + limit]


@router.get("/{user_ref}", response_model=UserResponse)
async def get_user(
    user_ref: str,
    engine: Annotated[AccessControlEngine, Depends(get_access_engine)],
    _principal: Annotated[Principal, Depends(require_permission(Permission.USER_VIEW))],
):
    return await engine.users.get(user_ref)


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    user: UserCreate,
    engine: Annotated[AccessControlEngine, Depends(get_access_engine)],
    principal: Annotated[Principal, Depends(require_permission(Permission.USER_CREATE))],
):
    """Create a user; initial groups are linked on both sides."""
    return await engine.create_user(
        user_ref=user.user_ref,
        email=user.email,
        name=user.name,
        role_names=user.role_names,
        group_ids=user.group_ids,
        actor=principal.user_ref,
    )


@router.put("/{user_ref}", response_model=UserResponse)
async def update_user(
    user_ref: str,
    update: UserUpdate,
    engine: Annotated[AccessControlEngine, Depends(get_access_engine)],
    principal: Annotated[Principal, Depends(require_permission(Permission.USER_UPDATE))],
):
    """Update name, email or active status. Deactivated users cannot obtain tokens."""
    return await engine.update_user(user_ref, update.model_dump(exclude_unset=True), principal.user_ref)


@router.put("/{user_ref}/roles", response_model=UserResponse)
async def set_user_roles(
    user_ref: str,
    update: UserRolesUpdate,
    engine: Annotated[AccessControlEngine, Depends(get_access_engine)],
    principal: Annotated[Principal, Depends(require_permission(Permission.USER_MANAGE_ROLES))],
):
    return await engine.set_user_roles(user_ref, update.role_names, principal.user_ref)


@router.delete("/{user_ref}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_ref: str,
    engine: Annotated[AccessControlEngine, Depends(get_access_engine)],
    principal: Annotated[Principal, Depends(require_permission(Permission.USER_DELETE))],
):
    """Delete a user and remove them from every group's member set."""
    await engine.delete_user(user_ref, principal.user_ref)
