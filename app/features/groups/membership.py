"""
Membership synchronizer.

Keeps the two halves of the user <-> group graph in agreement:

    user.user_ref in group.member_user_refs  <=>  group.id in user.group_refs

Both halves live in separate documents with no referential integrity, so
every add/remove writes both sides (group first, it is authoritative) and
``reconcile`` repairs drift left behind by out-of-band writes or lost races.
Writes are versioned; a stale write is rolled back and re-applied.
"""
from typing import Awaitable, Callable, Optional, TypeVar
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from app.core import config
from app.core.errors import ConcurrentUpdateError, NotFound
from app.features.groups.models import Group
from app.features.users.models import User
from app.utils import drop_refs, get_logger, merge_refs


log = get_logger(__name__)

T = TypeVar("T")


async def retry_on_conflict(
    db: AsyncSession,
    operation: Callable[[], Awaitable[T]],
    attempts: Optional[int] = None,
) -> T:
    """
    Run ``operation`` and re-run it when a versioned write went stale.

    ``operation`` must re-read whatever it mutates, since the rollback
    discards the session state it saw before.
    """
    attempts = attempts or config.MEMBERSHIP_WRITE_RETRIES
    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except StaleDataError:
            await db.rollback()
            log.warning("Concurrent membership update, attempt %d/%d", attempt, attempts)
    raise ConcurrentUpdateError("Membership changed concurrently, please retry")


class MembershipSynchronizer:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def add_member(self, group_id: str, user_ref: str, actor: Optional[str] = None) -> bool:
        """
        Add ``user_ref`` to the group and the group to the user.

        Returns True when either side changed. Re-adding is a no-op.
        """
        async def apply() -> bool:
            group = await self._group(group_id)
            user = await self._user(user_ref)
            if user is None:
                raise NotFound(f"User not found: {user_ref}")

            changed = False
            if user.user_ref not in group.member_user_refs:
                group.member_user_refs = merge_refs(group.member_user_refs, user.user_ref)
                group.updated_by = actor
                changed = True
            # Authoritative side goes out first
            await self.db.flush()

            if group.id not in user.group_refs:
                user.group_refs = merge_refs(user.group_refs, group.id)
                changed = True
            await self.db.commit()
            return changed

        changed = await retry_on_conflict(self.db, apply)
        if changed:
            log.info("Added user %s to group %s by %s (updated both sides)", user_ref, group_id, actor)
        return changed

    async def remove_member(self, group_id: str, user_ref: str, actor: Optional[str] = None) -> bool:
        """
        Remove ``user_ref`` from the group and the group from the user.

        Not an error if the user was not a member or no longer exists.
        """
        async def apply() -> bool:
            group = await self._group(group_id)
            user = await self._user(user_ref)
            ref = user.user_ref if user is not None else user_ref

            changed = False
            if ref in group.member_user_refs:
                group.member_user_refs = drop_refs(group.member_user_refs, ref)
                group.updated_by = actor
                changed = True
            await self.db.flush()

            if user is not None and group.id in user.group_refs:
                user.group_refs = drop_refs(user.group_refs, group.id)
                changed = True
            await self.db.commit()
            return changed

        changed = await retry_on_conflict(self.db, apply)
        if changed:
            log.info("Removed user %s from group %s by %s (updated both sides)", user_ref, group_id, actor)
        return changed

    async def link_members(self, group: Group) -> int:
        """Write back-references for every member already listed on ``group``."""
        group_id = group.id
        member_refs = list(group.member_user_refs)

        async def apply() -> int:
            linked = 0
            for user in await self._users_by_ref(member_refs):
                if group_id not in user.group_refs:
                    user.group_refs = merge_refs(user.group_refs, group_id)
                    linked += 1
            await self.db.commit()
            return linked

        return await retry_on_conflict(self.db, apply)

    async def detach_group(self, group_id: str) -> int:
        """Strip ``group_id`` from every user's group_refs."""
        async def apply() -> int:
            detached = 0
            for user in await self._all(User):
                if group_id in (user.group_refs or ()):
                    user.group_refs = drop_refs(user.group_refs, group_id)
                    detached += 1
            await self.db.commit()
            return detached

        detached = await retry_on_conflict(self.db, apply)
        log.info("Detached group %s from %d users", group_id, detached)
        return detached

    async def forget_user(self, user_ref: str) -> int:
        """Remove ``user_ref`` from every group's member set (user deletion cleanup)."""
        async def apply() -> int:
            removed = 0
            for group in await self._all(Group):
                if user_ref in (group.member_user_refs or ()):
                    group.member_user_refs = drop_refs(group.member_user_refs, user_ref)
                    removed += 1
            await self.db.commit()
            return removed

        removed = await retry_on_conflict(self.db, apply)
        log.info("Removed user %s from %d groups", user_ref, removed)
        return removed

    async def reconcile(self) -> int:
        """
        Full-scan repair of the membership invariant.

        Forward pass: every member listed on a group gets the group id in
        its group_refs. Members with no user record are logged and left
        alone. Reverse pass: group_refs entries not backed by a group that
        lists the user (including deleted groups) are dropped.

        Returns the number of repaired links. Idempotent: a second run with
        no intervening writes repairs nothing.
        """
        log.info("Starting group membership sync...")
        repaired = await retry_on_conflict(self.db, self._reconcile_pass)
        log.info("Group membership sync completed. Repaired %d user-group links", repaired)
        return repaired

    async def _reconcile_pass(self) -> int:
        repaired = 0
        users = {user.user_ref: user for user in await self._all(User)}
        backed: dict[str, set[str]] = {}

        for group in await self._all(Group):
            group_repairs = 0
            for ref in group.member_user_refs or ():
                user = users.get(ref)
                if user is None:
                    log.warning("User %s not found in group %s", ref, group.name)
                    continue
                backed.setdefault(ref, set()).add(group.id)
                if group.id not in (user.group_refs or ()):
                    user.group_refs = merge_refs(user.group_refs, group.id)
                    group_repairs += 1
                    log.info("Synced group %s to user %s", group.name, ref)
            if group_repairs:
                # Commit per group so an interrupted pass keeps finished repairs
                await self.db.commit()
                repaired += group_repairs

        for ref, user in users.items():
            stale = set(user.group_refs or ()) - backed.get(ref, set())
            if stale:
                user.group_refs = drop_refs(user.group_refs, *stale)
                await self.db.commit()
                repaired += len(stale)
                log.info("Dropped unbacked group refs %s from user %s", sorted(stale), ref)

        return repaired

    async def _group(self, group_id: str) -> Group:
        result = await self.db.execute(
            select(Group).where(Group.id == group_id).execution_options(populate_existing=True)
        )
        group = result.scalar_one_or_none()
        if group is None:
            raise NotFound(f"Group not found: {group_id}")
        return group

    async def _user(self, user_ref: str) -> Optional[User]:
        # Accept either the stable ref or the storage id
        result = await self.db.execute(
            select(User)
            .where((User.user_ref == user_ref) | (User.id == user_ref))
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def _users_by_ref(self, user_refs: list[str]) -> list[User]:
        if not user_refs:
            return []
        result = await self.db.execute(
            select(User).where(User.user_ref.in_(user_refs)).execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def _all(self, model):
        result = await self.db.execute(select(model).execution_options(populate_existing=True))
        return list(result.scalars().all())
