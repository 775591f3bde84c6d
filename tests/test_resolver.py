import pytest

from app.core.errors import NotFound
from app.features.access.engine import AccessControlEngine
from app.features.permissions.catalog import Permission, all_permissions


async def test_direct_and_group_roles_are_unioned(access, make_user):
    group = await access.create_group("managers", role_names=["MANAGER"])
    await make_user("alice", role_names=["VIEWER"], group_ids=[group.id])

    assert await access.resolve_effective_roles("alice") == {"VIEWER", "MANAGER"}

    viewer = await access.roles.get_by_name("VIEWER")
    manager = await access.roles.get_by_name("MANAGER")
    expected = set(viewer.permissions) | set(manager.permissions)
    assert await access.resolve_effective_permissions("alice") == expected


async def test_user_without_roles_has_no_permissions(access, make_user):
    await make_user("alice")
    assert await access.resolve_effective_roles("alice") == set()
    assert await access.resolve_effective_permissions("alice") == set()


async def test_unknown_user(access):
    with pytest.raises(NotFound):
        await access.resolve_effective_roles("nobody")


async def test_inactive_group_still_grants_roles(access, make_user):
    group = await access.create_group("responders", role_names=["RESPONDER"])
    await make_user("alice", group_ids=[group.id])
    await access.update_group(group.id, {"active": False})

    assert await access.resolve_effective_roles("alice") == {"RESPONDER"}


async def test_unrestricted_role_resolves_to_whole_catalog(access, make_user):
    await make_user("root", role_names=["SYSTEM_ADMIN"])
    assert await access.resolve_effective_permissions("root") == set(all_permissions())


async def test_unrestricted_role_via_group(access, make_user):
    group = await access.create_group("platform", role_names=["SYSTEM_ADMIN"])
    await make_user("alice", role_names=["VIEWER"], group_ids=[group.id])
    assert await access.resolve_effective_permissions("alice") == set(all_permissions())


async def test_unrestricted_role_follows_catalog_growth(db, audit, make_user):
    await make_user("root", role_names=["SYSTEM_ADMIN"])
    await make_user("admin", role_names=["ADMIN"])

    grown = set(all_permissions()) | {"INCIDENT_ARCHIVE"}
    engine = AccessControlEngine(db, audit, catalog=grown)

    assert await engine.resolve_effective_permissions("root") == grown
    assert "INCIDENT_ARCHIVE" not in await engine.resolve_effective_permissions("admin")


async def test_deleted_custom_role_stops_granting(access, make_user):
    await access.create_role("ONCALL", "On call", [Permission.INCIDENT_ASSIGN, Permission.EXPORT_PDF])
    group = await access.create_group("oncall", role_names=["ONCALL", "VIEWER"])
    await make_user("alice", group_ids=[group.id])
    assert Permission.INCIDENT_ASSIGN.value in await access.resolve_effective_permissions("alice")

    await access.delete_role("ONCALL")

    permissions = await access.resolve_effective_permissions("alice")
    assert Permission.INCIDENT_ASSIGN.value not in permissions
    assert Permission.EXPORT_PDF.value not in permissions
    viewer = await access.roles.get_by_name("VIEWER")
    assert permissions == set(viewer.permissions)


async def test_dangling_group_reference_is_ignored(access, db, make_user):
    await make_user("alice", role_names=["VIEWER"])
    alice = await access.users.get("alice")
    alice.group_refs = ["01HDELETEDGROUP00000000000"]
    await db.commit()

    assert await access.resolve_effective_roles("alice") == {"VIEWER"}
    assert await access.resolver.group_names(alice) == []


async def test_access_snapshot_matches_resolution(access, make_user):
    group = await access.create_group("responders", role_names=["RESPONDER"])
    user = await make_user("alice", role_names=["VIEWER"], group_ids=[group.id])

    roles, permissions = await access.access_snapshot(user)
    assert roles == await access.resolve_effective_roles("alice")
    assert permissions == await access.resolve_effective_permissions("alice")
