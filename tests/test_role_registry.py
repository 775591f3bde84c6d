import pytest

from app.core.errors import Conflict, ForbiddenOperation, NotFound
from app.features.permissions.catalog import Permission
from app.features.roles.models import RoleKind
from app.features.roles.service import SYSTEM_ROLES, RoleRegistry


async def test_bootstrap_creates_system_roles_once(db):
    registry = RoleRegistry(db)
    await registry.bootstrap_system_roles()
    await registry.bootstrap_system_roles()

    roles = await registry.list_all()
    assert sorted(role.name for role in roles) == sorted(SYSTEM_ROLES)
    assert all(role.kind == RoleKind.SYSTEM for role in roles)


async def test_create_system_role_if_absent_keeps_existing(access):
    role = await access.roles.create_system_role_if_absent("VIEWER", "changed", [Permission.SYSTEM_ADMIN])
    assert role.description == "Read-only viewer"
    assert Permission.SYSTEM_ADMIN.value not in role.permissions


async def test_only_system_admin_is_unrestricted(access):
    roles = {role.name: role for role in await access.roles.list_all()}
    assert roles["SYSTEM_ADMIN"].is_unrestricted
    assert not roles["ADMIN"].is_unrestricted
    assert Permission.SYSTEM_ADMIN.value not in roles["ADMIN"].permissions


async def test_get_by_name_missing_raises(access):
    with pytest.raises(NotFound):
        await access.roles.get_by_name("NOPE")


async def test_create_custom_role_rejects_duplicate(access):
    await access.roles.create_custom_role("ONCALL", "On call", [Permission.INCIDENT_ASSIGN])
    with pytest.raises(Conflict):
        await access.roles.create_custom_role("ONCALL", "again", [])
    with pytest.raises(Conflict):
        await access.roles.create_custom_role("ADMIN", "shadow", [])


async def test_permissions_for_skips_unknown_names(access):
    permissions = await access.roles.permissions_for({"VIEWER", "GHOST"})
    viewer = await access.roles.get_by_name("VIEWER")
    assert permissions == set(viewer.permissions)


async def test_permissions_for_empty_set(access):
    assert await access.roles.permissions_for(set()) == set()


async def test_update_role_edits_system_role_permissions(access):
    role = await access.roles.update_role(
        "VIEWER", permissions=[Permission.INCIDENT_VIEW, Permission.EXPORT_CSV], actor="admin"
    )
    assert role.permissions == ["EXPORT_CSV", "INCIDENT_VIEW"]
    assert role.kind == RoleKind.SYSTEM
    assert role.updated_by == "admin"


async def test_delete_system_role_is_forbidden(access, make_user):
    group = await access.create_group("admins", role_names=["ADMIN"])
    await make_user("alice", role_names=["ADMIN"], group_ids=[group.id])

    with pytest.raises(ForbiddenOperation):
        await access.delete_role("ADMIN", actor="alice")

    role = await access.roles.get_by_name("ADMIN")
    assert role.kind == RoleKind.SYSTEM
    assert (await access.groups.get(group.id)).role_names == ["ADMIN"]
    assert (await access.users.get("alice")).direct_role_names == ["ADMIN"]
    assert access.audit.types()[-1] == "FORBIDDEN_OPERATION"
    assert access.audit.events[-1].success is False


async def test_delete_custom_role_leaves_references(access):
    await access.create_role("ONCALL", "On call", [Permission.INCIDENT_ASSIGN])
    group = await access.create_group("oncall", role_names=["ONCALL"])

    await access.delete_role("ONCALL")

    with pytest.raises(NotFound):
        await access.roles.get_by_name("ONCALL")
    assert (await access.groups.get(group.id)).role_names == ["ONCALL"]
    assert "ROLE_DELETED" in access.audit.types()
