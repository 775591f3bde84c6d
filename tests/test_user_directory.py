import pytest

from app.core.errors import Conflict, NotFound


async def test_update_user_fields(access, make_user):
    await make_user("alice")
    user = await access.update_user("alice", {"name": "Alice A", "is_active": False}, actor="admin")

    assert user.name == "Alice A"
    assert user.is_active is False
    assert access.audit.events[-1].event_type == "USER_UPDATED"
    assert access.audit.events[-1].details == {"name": "Alice A", "is_active": False}


async def test_update_ignores_unknown_and_empty_fields(access, make_user):
    await make_user("alice", role_names=["VIEWER"])
    user = await access.update_user("alice", {"name": None, "direct_role_names": ["ADMIN"]})

    assert user.name == "Alice"
    assert user.direct_role_names == ["VIEWER"]


async def test_update_email_must_be_unique(access, make_user):
    await make_user("alice")
    await make_user("bob")

    with pytest.raises(Conflict):
        await access.update_user("alice", {"email": "bob@respondnow.io"})
    assert "USER_UPDATED" not in access.audit.types()

    user = await access.update_user("alice", {"email": "alice@respondnow.io"})
    assert user.email == "alice@respondnow.io"


async def test_update_unknown_user(access):
    with pytest.raises(NotFound):
        await access.update_user("nobody", {"name": "Nobody"})


async def test_search_filters(access, make_user):
    await make_user("alice", role_names=["VIEWER"])
    await make_user("bob", role_names=["RESPONDER", "VIEWER"])
    await make_user("carol")
    await access.update_user("carol", {"is_active": False})

    assert [u.user_ref for u in await access.users.search()] == ["alice", "bob", "carol"]
    assert [u.user_ref for u in await access.users.search(active=True)] == ["alice", "bob"]
    assert [u.user_ref for u in await access.users.search(active=False)] == ["carol"]
    assert [u.user_ref for u in await access.users.search(role="VIEWER")] == ["alice", "bob"]
    assert [u.user_ref for u in await access.users.search(q="BO")] == ["bob"]
    assert [u.user_ref for u in await access.users.search(q="respondnow", role="RESPONDER")] == ["bob"]


async def test_create_user_with_unknown_role(access):
    with pytest.raises(NotFound):
        await access.create_user("alice", "alice@respondnow.io", "Alice", role_names=["NOPE"])

    assert await access.users.find("alice") is None
    assert "USER_CREATED" not in access.audit.types()


async def test_set_roles_with_unknown_role(access, make_user):
    await make_user("alice", role_names=["VIEWER"])

    with pytest.raises(NotFound):
        await access.set_user_roles("alice", ["RESPONDER", "NOPE"])

    assert (await access.users.get("alice")).direct_role_names == ["VIEWER"]
    assert "ROLE_CHANGE" not in access.audit.types()
