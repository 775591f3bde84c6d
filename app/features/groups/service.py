"""
Group store: CRUD over groups and their role assignments.

Member changes are delegated to the membership synchronizer so both sides of
the user <-> group link are written together.
"""
from typing import Any, Iterable, Mapping, Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import Conflict, NotFound
from app.features.groups.membership import MembershipSynchronizer
from app.features.groups.models import Group
from app.features.roles.service import RoleRegistry
from app.utils import drop_refs, get_logger, merge_refs


log = get_logger(__name__)

UPDATABLE_FIELDS = ("name", "description", "active")


class GroupStore:
    def __init__(
        self,
        db: AsyncSession,
        roles: Optional[RoleRegistry] = None,
        membership: Optional[MembershipSynchronizer] = None,
    ):
        self.db = db
        self.roles = roles or RoleRegistry(db)
        self.membership = membership or MembershipSynchronizer(db)

    async def create(
        self,
        name: str,
        description: Optional[str] = None,
        initial_members: Iterable[str] = (),
        initial_roles: Iterable[str] = (),
        actor: Optional[str] = None,
    ) -> Group:
        """
        Create the group record.

        ``initial_members`` are stored as given; the caller links the user
        side through ``MembershipSynchronizer.link_members``.
        """
        if await self._find_by_name(name) is not None:
            raise Conflict(f"Group already exists: {name}")

        group = Group(
            name=name,
            description=description,
            active=True,
            member_user_refs=merge_refs(initial_members),
            role_names=merge_refs(initial_roles),
            created_by=actor,
            updated_by=actor,
        )
        self.db.add(group)
        await self.db.commit()
        log.info("Created group: %s by user: %s", group.name, actor)
        return group

    async def get(self, group_id: str) -> Group:
        group = await self.db.get(Group, group_id)
        if group is None:
            raise NotFound(f"Group not found: {group_id}")
        return group

    async def get_many(self, group_ids: Iterable[str]) -> list[Group]:
        """Resolvable subset of ``group_ids``; missing ids are skipped."""
        group_ids = set(group_ids)
        if not group_ids:
            return []
        result = await self.db.execute(select(Group).where(Group.id.in_(group_ids)))
        return list(result.scalars().all())

    async def list_all(self) -> list[Group]:
        result = await self.db.execute(select(Group))
        return list(result.scalars().all())

    async def update(self, group_id: str, patch: Mapping[str, Any], actor: Optional[str] = None) -> Group:
        group = await self.get(group_id)
        changes = {key: value for key, value in patch.items() if key in UPDATABLE_FIELDS}

        new_name = changes.get("name")
        if new_name and new_name != group.name:
            existing = await self._find_by_name(new_name)
            if existing is not None and existing.id != group.id:
                raise Conflict(f"Group already exists: {new_name}")

        for key, value in changes.items():
            if value is not None:
                setattr(group, key, value)
        group.updated_by = actor
        await self.db.commit()
        log.info("Updated group: %s by user: %s", group.name, actor)
        return group

    async def delete(self, group_id: str) -> Group:
        """Remove the group record only. Users keep their group_refs entry."""
        group = await self.get(group_id)
        await self.db.delete(group)
        await self.db.commit()
        log.info("Deleted group: %s", group_id)
        return group

    async def add_member(self, group_id: str, user_ref: str, actor: Optional[str] = None) -> bool:
        return await self.membership.add_member(group_id, user_ref, actor)

    async def remove_member(self, group_id: str, user_ref: str, actor: Optional[str] = None) -> bool:
        return await self.membership.remove_member(group_id, user_ref, actor)

    async def assign_role(self, group_id: str, role_name: str, actor: Optional[str] = None) -> bool:
        group = await self.get(group_id)
        await self.roles.get_by_name(role_name)
        if role_name in group.role_names:
            return False
        group.role_names = merge_refs(group.role_names, role_name)
        group.updated_by = actor
        await self.db.commit()
        log.info("Assigned role %s to group %s by %s", role_name, group_id, actor)
        return True

    async def remove_role(self, group_id: str, role_name: str, actor: Optional[str] = None) -> bool:
        group = await self.get(group_id)
        if role_name not in group.role_names:
            return False
        group.role_names = drop_refs(group.role_names, role_name)
        group.updated_by = actor
        await self.db.commit()
        log.info("Removed role %s from group %s by %s", role_name, group_id, actor)
        return True

    async def _find_by_name(self, name: str) -> Optional[Group]:
        result = await self.db.execute(select(Group).where(Group.name == name))
        return result.scalar_one_or_none()
