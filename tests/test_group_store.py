import pytest

from app.core.errors import Conflict, NotFound


async def test_create_group_links_initial_members(access, make_user):
    await make_user("alice")
    await make_user("bob")

    group = await access.create_group(
        "responders", "First line", member_refs=["alice", "bob"], role_names=["RESPONDER"], actor="admin"
    )

    assert group.member_user_refs == ["alice", "bob"]
    assert group.role_names == ["RESPONDER"]
    assert group.created_by == "admin"
    for ref in ("alice", "bob"):
        assert (await access.users.get(ref)).group_refs == [group.id]
    assert access.audit.types()[-1] == "GROUP_CREATED"


async def test_create_group_duplicate_name(access):
    await access.create_group("responders")
    with pytest.raises(Conflict):
        await access.create_group("responders")


async def test_create_group_unknown_member_or_role(access):
    with pytest.raises(NotFound):
        await access.create_group("ghosts", member_refs=["nobody"])
    with pytest.raises(NotFound):
        await access.create_group("ghosts", role_names=["NOPE"])
    assert await access.groups.list_all() == []


async def test_update_group_patch(access):
    group = await access.create_group("responders", "old")
    updated = await access.update_group(group.id, {"description": "new", "active": False}, actor="admin")

    assert updated.description == "new"
    assert updated.active is False
    assert updated.name == "responders"
    assert updated.updated_by == "admin"


async def test_update_group_rename_conflict(access):
    await access.create_group("responders")
    other = await access.create_group("managers")
    with pytest.raises(Conflict):
        await access.update_group(other.id, {"name": "responders"})


async def test_update_group_ignores_membership_fields(access, make_user):
    await make_user("alice")
    group = await access.create_group("responders")
    await access.update_group(group.id, {"member_user_refs": ["alice"]})
    assert (await access.groups.get(group.id)).member_user_refs == []


async def test_get_missing_group(access):
    with pytest.raises(NotFound):
        await access.groups.get("01HZZZZZZZZZZZZZZZZZZZZZZZ")


async def test_assign_role_is_idempotent(access):
    group = await access.create_group("responders")
    await access.assign_group_role(group.id, "RESPONDER")
    await access.assign_group_role(group.id, "RESPONDER")

    assert (await access.groups.get(group.id)).role_names == ["RESPONDER"]
    assert access.audit.types().count("ROLE_ASSIGNED") == 1


async def test_assign_unknown_role(access):
    group = await access.create_group("responders")
    with pytest.raises(NotFound):
        await access.assign_group_role(group.id, "NOPE")
    with pytest.raises(NotFound):
        await access.assign_group_role("missing", "VIEWER")


async def test_remove_role(access):
    group = await access.create_group("responders", role_names=["RESPONDER", "VIEWER"])
    await access.remove_group_role(group.id, "VIEWER")
    await access.remove_group_role(group.id, "VIEWER")

    assert (await access.groups.get(group.id)).role_names == ["RESPONDER"]
    assert access.audit.types().count("ROLE_REMOVED") == 1
