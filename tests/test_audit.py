from sqlalchemy import select

from app.core.database.engine import AsyncSessionLocal
from app.features.access.engine import AccessControlEngine
from app.features.audit.models import AuditLog
from app.features.audit.sink import AuditEvent, AuditSink, DatabaseAuditSink


class FailingAuditSink(AuditSink):
    async def write(self, event: AuditEvent) -> None:
        raise RuntimeError("audit store unavailable")


async def test_failing_sink_never_blocks_mutation(db, access):
    engine = AccessControlEngine(db, FailingAuditSink())
    group = await engine.create_group("responders", role_names=["RESPONDER"])

    assert (await engine.groups.get(group.id)).role_names == ["RESPONDER"]


async def test_database_sink_persists_events():
    sink = DatabaseAuditSink()
    await sink.emit(AuditEvent(
        event_type="MEMBER_ADDED",
        resource_type="GROUP",
        resource_id="g1",
        performed_by="admin",
        details={"user_ref": "alice"},
    ))

    async with AsyncSessionLocal() as db:
        logs = (await db.execute(select(AuditLog))).scalars().all()

    assert len(logs) == 1
    assert logs[0].event_type == "MEMBER_ADDED"
    assert logs[0].details == {"user_ref": "alice"}
    assert logs[0].success is True


async def test_events_carry_actor_or_system(access, make_user):
    await make_user("alice")
    group = await access.create_group("responders", actor="admin")
    await access.add_group_member(group.id, "alice")

    created, added = access.audit.events[-2:]
    assert created.performed_by == "admin"
    assert added.performed_by == "system"
    assert added.details == {"user_ref": "alice"}


async def test_role_change_records_old_and_new(access, make_user):
    await make_user("alice", role_names=["VIEWER"])
    await access.set_user_roles("alice", ["RESPONDER"], actor="admin")

    event = access.audit.events[-1]
    assert event.event_type == "ROLE_CHANGE"
    assert event.details == {"old_roles": ["VIEWER"], "new_roles": ["RESPONDER"]}
