import asyncio

import pytest
from sqlalchemy import select
from sqlalchemy.orm.exc import StaleDataError

from app.core import config
from app.core.database.engine import AsyncSessionLocal
from app.core.errors import ConcurrentUpdateError, NotFound
from app.features.access.engine import AccessControlEngine
from app.features.groups.membership import retry_on_conflict
from app.features.groups.models import Group
from app.features.users.models import User
from app.utils import merge_refs


async def assert_membership_symmetric():
    async with AsyncSessionLocal() as fresh:
        groups = (await fresh.execute(select(Group))).scalars().all()
        users = (await fresh.execute(select(User))).scalars().all()

    for group in groups:
        for user in users:
            assert (group.id in user.group_refs) == (user.user_ref in group.member_user_refs), (
                f"{user.user_ref} / {group.name}"
            )


@pytest.fixture
async def people(make_user):
    for ref in ("alice", "bob", "carol"):
        await make_user(ref)


async def test_add_member_writes_both_sides(access, people):
    group = await access.create_group("responders")
    await access.add_group_member(group.id, "alice", actor="admin")

    assert (await access.groups.get(group.id)).member_user_refs == ["alice"]
    assert (await access.users.get("alice")).group_refs == [group.id]
    assert access.audit.types()[-1] == "MEMBER_ADDED"
    await assert_membership_symmetric()


async def test_add_member_is_idempotent(access, people):
    group = await access.create_group("responders")
    await access.add_group_member(group.id, "alice")
    await access.add_group_member(group.id, "alice")

    assert (await access.groups.get(group.id)).member_user_refs == ["alice"]
    assert (await access.users.get("alice")).group_refs == [group.id]
    assert access.audit.types().count("MEMBER_ADDED") == 1


async def test_add_member_unknown_group_or_user(access, people):
    group = await access.create_group("responders")
    with pytest.raises(NotFound):
        await access.add_group_member("missing", "alice")
    with pytest.raises(NotFound):
        await access.add_group_member(group.id, "nobody")
    assert (await access.groups.get(group.id)).member_user_refs == []


async def test_remove_member_is_idempotent(access, people):
    group = await access.create_group("responders", member_refs=["alice", "bob"])
    await access.remove_group_member(group.id, "alice")
    await access.remove_group_member(group.id, "alice")

    assert (await access.groups.get(group.id)).member_user_refs == ["bob"]
    assert (await access.users.get("alice")).group_refs == []
    assert access.audit.types().count("MEMBER_REMOVED") == 1
    await assert_membership_symmetric()


async def test_remove_non_member_is_noop(access, people):
    group = await access.create_group("responders")
    await access.remove_group_member(group.id, "carol")
    await access.remove_group_member(group.id, "nobody")
    assert "MEMBER_REMOVED" not in access.audit.types()


async def test_invariant_holds_after_mixed_sequence(access, people):
    first = await access.create_group("responders", member_refs=["alice"])
    second = await access.create_group("managers", member_refs=["bob"])

    await access.add_group_member(first.id, "bob")
    await access.add_group_member(second.id, "carol")
    await access.remove_group_member(first.id, "alice")
    await access.add_group_member(second.id, "alice")
    await access.remove_group_member(second.id, "bob")

    await assert_membership_symmetric()
    assert await access.membership.reconcile() == 0


async def test_reconcile_repairs_missing_back_reference(access, db, people):
    group = await access.create_group("responders", member_refs=["alice", "bob"])
    alice = await access.users.get("alice")
    alice.group_refs = []
    await db.commit()

    assert await access.reconcile_memberships() == {"repaired_count": 1}
    assert (await access.users.get("alice")).group_refs == [group.id]
    assert await access.membership.reconcile() == 0
    await assert_membership_symmetric()


async def test_reconcile_drops_unbacked_references(access, db, people):
    group = await access.create_group("responders")
    bob = await access.users.get("bob")
    bob.group_refs = merge_refs(bob.group_refs, group.id, "01HDELETEDGROUP00000000000")
    await db.commit()

    assert await access.membership.reconcile() == 2
    assert (await access.users.get("bob")).group_refs == []
    assert await access.membership.reconcile() == 0


async def test_reconcile_skips_members_without_user_record(access, db, people):
    group = await access.create_group("responders", member_refs=["alice"])
    stored = await access.groups.get(group.id)
    stored.member_user_refs = merge_refs(stored.member_user_refs, "ghost")
    await db.commit()

    assert await access.membership.reconcile() == 0
    assert (await access.groups.get(group.id)).member_user_refs == ["alice", "ghost"]


async def test_delete_group_detaches_members(access, people):
    group = await access.create_group("responders", member_refs=["alice", "bob"])
    other = await access.create_group("managers", member_refs=["alice"])

    await access.delete_group(group.id, actor="admin")

    with pytest.raises(NotFound):
        await access.groups.get(group.id)
    assert (await access.users.get("alice")).group_refs == [other.id]
    assert (await access.users.get("bob")).group_refs == []
    assert access.audit.types()[-1] == "GROUP_DELETED"
    await assert_membership_symmetric()


async def test_delete_user_removes_from_every_group(access, people):
    first = await access.create_group("responders", member_refs=["alice", "bob"])
    second = await access.create_group("managers", member_refs=["alice"])

    await access.delete_user("alice")

    assert (await access.groups.get(first.id)).member_user_refs == ["bob"]
    assert (await access.groups.get(second.id)).member_user_refs == []
    with pytest.raises(NotFound):
        await access.users.get("alice")
    await assert_membership_symmetric()


async def test_add_member_sees_outside_writes(access, people):
    group = await access.create_group("responders")
    await access.groups.get(group.id)

    async with AsyncSessionLocal() as other:
        stored = await other.get(Group, group.id)
        stored.member_user_refs = merge_refs(stored.member_user_refs, "bob")
        await other.commit()

    await access.add_group_member(group.id, "alice")

    async with AsyncSessionLocal() as fresh:
        assert (await fresh.get(Group, group.id)).member_user_refs == ["alice", "bob"]


async def test_stale_versioned_write_is_rejected(access, people):
    group = await access.create_group("responders")

    async with AsyncSessionLocal() as other:
        stale = await other.get(Group, group.id)
        await access.add_group_member(group.id, "alice")

        stale.member_user_refs = merge_refs(stale.member_user_refs, "bob")
        with pytest.raises(StaleDataError):
            await other.commit()


async def test_retry_on_conflict_reapplies(db):
    calls = []

    async def operation():
        calls.append(1)
        if len(calls) == 1:
            raise StaleDataError("stale")
        return "done"

    assert await retry_on_conflict(db, operation, attempts=3) == "done"
    assert len(calls) == 2


async def test_retry_on_conflict_gives_up(db):
    async def operation():
        raise StaleDataError("stale")

    with pytest.raises(ConcurrentUpdateError):
        await retry_on_conflict(db, operation, attempts=2)


async def test_concurrent_adds_and_removes_keep_both_sides_in_step(access, audit, make_user, monkeypatch):
    monkeypatch.setattr(config, "MEMBERSHIP_WRITE_RETRIES", 25)
    refs = [f"u{i}" for i in range(8)]
    for ref in refs:
        await make_user(ref)
    group = await access.create_group("responders", member_refs=refs[4:])
    group_id = group.id

    async def on_own_session(change, user_ref):
        async with AsyncSessionLocal() as session:
            engine = AccessControlEngine(session, audit)
            await getattr(engine, change)(group_id, user_ref, actor="admin")

    await asyncio.gather(
        *(on_own_session("add_group_member", ref) for ref in refs[:4]),
        *(on_own_session("remove_group_member", ref) for ref in refs[4:6]),
    )

    assert await access.reconcile_memberships() == {"repaired_count": 0}
    await assert_membership_symmetric()
    async with AsyncSessionLocal() as fresh:
        members = (await fresh.get(Group, group_id)).member_user_refs
    assert sorted(members) == refs[:4] + refs[6:]
