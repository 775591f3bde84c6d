"""
Access control engine.

Facade over the role registry, group store, membership synchronizer,
resolver and matrix builder. This is the contract the HTTP layer talks to;
every committed mutation emits an audit fact.
"""
from typing import Any, Iterable, Mapping, Optional
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ForbiddenOperation, NotFound
from app.features.access.matrix import PermissionMatrixBuilder
from app.features.access.resolver import EffectiveAccessResolver
from app.features.access.schemas import PermissionMatrixResponse
from app.features.audit.sink import AuditEvent, AuditSink, DatabaseAuditSink
from app.features.groups.membership import MembershipSynchronizer
from app.features.groups.models import Group
from app.features.groups.service import GroupStore
from app.features.roles.models import Role
from app.features.roles.service import RoleRegistry
from app.features.users.models import User
from app.features.users.service import UserDirectory
from app.utils import get_logger


log = get_logger(__name__)


class AccessControlEngine:
    def __init__(
        self,
        db: AsyncSession,
        audit: Optional[AuditSink] = None,
        catalog: Optional[Iterable[str]] = None,
    ):
        self.db = db
        self.audit = audit if audit is not None else DatabaseAuditSink()
        self.roles = RoleRegistry(db)
        self.membership = MembershipSynchronizer(db)
        self.groups = GroupStore(db, self.roles, self.membership)
        self.users = UserDirectory(db)
        self.resolver = EffectiveAccessResolver(self.roles, self.groups, catalog)
        self.matrix = PermissionMatrixBuilder(self.resolver, self.users)

    # ------------------------------------------------------------------
    # Resolution

    async def resolve_effective_roles(self, user_ref: str) -> set[str]:
        user = await self.users.get(user_ref)
        return await self.resolver.effective_roles(user)

    async def resolve_effective_permissions(self, user_ref: str) -> set[str]:
        user = await self.users.get(user_ref)
        return await self.resolver.effective_permissions(user)

    async def access_snapshot(self, user: User) -> tuple[set[str], set[str]]:
        """Effective roles and permissions to embed into an access token."""
        roles = await self.resolver.effective_roles(user)
        return roles, await self.resolver.permissions_for_roles(roles)

    async def build_permission_matrix(self) -> PermissionMatrixResponse:
        return await self.matrix.build()

    # ------------------------------------------------------------------
    # Membership

    async def add_group_member(self, group_id: str, user_ref: str, actor: Optional[str] = None) -> None:
        if await self.membership.add_member(group_id, user_ref, actor):
            await self._emit("MEMBER_ADDED", "GROUP", group_id, actor, user_ref=user_ref)

    async def remove_group_member(self, group_id: str, user_ref: str, actor: Optional[str] = None) -> None:
        if await self.membership.remove_member(group_id, user_ref, actor):
            await self._emit("MEMBER_REMOVED", "GROUP", group_id, actor, user_ref=user_ref)

    async def reconcile_memberships(self, actor: Optional[str] = None) -> dict[str, int]:
        repaired = await self.membership.reconcile()
        await self._emit("MEMBERSHIPS_RECONCILED", "GROUP", None, actor, repaired_count=repaired)
        return {"repaired_count": repaired}

    # ------------------------------------------------------------------
    # Groups

    async def create_group(
        self,
        name: str,
        description: Optional[str] = None,
        member_refs: Iterable[str] = (),
        role_names: Iterable[str] = (),
        actor: Optional[str] = None,
    ) -> Group:
        member_refs = set(member_refs)
        role_names = set(role_names)
        known = await self.users.find_many(member_refs)
        missing = sorted(member_refs - set(known))
        if missing:
            raise NotFound(f"User not found: {', '.join(missing)}")
        for role_name in role_names:
            await self.roles.get_by_name(role_name)

        group = await self.groups.create(name, description, member_refs, role_names, actor)
        group_id = group.id
        await self.membership.link_members(group)
        await self._emit(
            "GROUP_CREATED", "GROUP", group_id, actor,
            name=name, roles=sorted(role_names), members=sorted(member_refs),
        )
        return await self.groups.get(group_id)

    async def update_group(self, group_id: str, patch: Mapping[str, Any], actor: Optional[str] = None) -> Group:
        group = await self.groups.update(group_id, patch, actor)
        await self._emit("GROUP_UPDATED", "GROUP", group_id, actor, **dict(patch))
        return group

    async def delete_group(self, group_id: str, actor: Optional[str] = None) -> None:
        group = await self.groups.delete(group_id)
        await self.membership.detach_group(group_id)
        await self._emit("GROUP_DELETED", "GROUP", group_id, actor, name=group.name)

    async def assign_group_role(self, group_id: str, role_name: str, actor: Optional[str] = None) -> None:
        if await self.groups.assign_role(group_id, role_name, actor):
            await self._emit("ROLE_ASSIGNED", "GROUP", group_id, actor, role_name=role_name)

    async def remove_group_role(self, group_id: str, role_name: str, actor: Optional[str] = None) -> None:
        if await self.groups.remove_role(group_id, role_name, actor):
            await self._emit("ROLE_REMOVED", "GROUP", group_id, actor, role_name=role_name)

    # ------------------------------------------------------------------
    # Users

    async def create_user(
        self,
        user_ref: str,
        email: str,
        name: str,
        role_names: Iterable[str] = (),
        group_ids: Iterable[str] = (),
        actor: Optional[str] = None,
        appwrite_id: Optional[str] = None,
    ) -> User:
        role_names = list(role_names)
        await self._require_roles(role_names)
        group_ids = list(group_ids)
        for group_id in group_ids:
            await self.groups.get(group_id)

        user = await self.users.create(user_ref, email, name, role_names, appwrite_id)
        direct_roles = list(user.direct_role_names)
        for group_id in group_ids:
            await self.membership.add_member(group_id, user_ref, actor)
        await self._emit(
            "USER_CREATED", "USER", user_ref, actor,
            roles=direct_roles, groups=sorted(group_ids),
        )
        return await self.users.get(user_ref)

    async def update_user(self, user_ref: str, patch: Mapping[str, Any], actor: Optional[str] = None) -> User:
        user = await self.users.update(user_ref, patch)
        ref = user.user_ref
        if patch.get("is_active") is False:
            log.warning("SECURITY_AUDIT: user %s deactivated by %s", ref, actor or "system")
        await self._emit("USER_UPDATED", "USER", ref, actor, **dict(patch))
        return await self.users.get(ref)

    async def set_user_roles(self, user_ref: str, role_names: Iterable[str], actor: Optional[str] = None) -> User:
        role_names = list(role_names)
        user = await self.users.get(user_ref)
        await self._require_roles(role_names)
        old_roles = list(user.direct_role_names)
        user = await self.users.set_roles(user_ref, role_names)
        await self._emit(
            "ROLE_CHANGE", "USER", user.user_ref, actor,
            old_roles=old_roles, new_roles=list(user.direct_role_names),
        )
        return user

    async def delete_user(self, user_ref: str, actor: Optional[str] = None) -> None:
        user = await self.users.get(user_ref)
        ref, email = user.user_ref, user.email
        # Group side first: a crash in between leaves only unbacked
        # group_refs, which reconciliation drops
        await self.membership.forget_user(ref)
        await self.users.delete(ref)
        await self._emit("USER_DELETED", "USER", ref, actor, email=email)

    # ------------------------------------------------------------------
    # Roles

    async def create_role(
        self,
        name: str,
        description: Optional[str],
        permissions: Iterable,
        actor: Optional[str] = None,
    ) -> Role:
        role = await self.roles.create_custom_role(name, description, permissions, actor)
        await self._emit("ROLE_CREATED", "ROLE", name, actor, permissions=list(role.permissions))
        return role

    async def update_role(
        self,
        name: str,
        description: Optional[str] = None,
        permissions: Optional[Iterable] = None,
        actor: Optional[str] = None,
    ) -> Role:
        role = await self.roles.update_role(name, description, permissions, actor)
        await self._emit("ROLE_UPDATED", "ROLE", name, actor, permissions=list(role.permissions))
        return role

    async def delete_role(self, name: str, actor: Optional[str] = None) -> None:
        try:
            await self.roles.delete_role(name)
        except ForbiddenOperation as exc:
            await self._emit("FORBIDDEN_OPERATION", "ROLE", name, actor, success=False, reason=exc.detail)
            raise
        await self._emit("ROLE_DELETED", "ROLE", name, actor)

    async def _require_roles(self, role_names: Iterable[str]) -> None:
        for role_name in role_names:
            await self.roles.get_by_name(role_name)

    async def _emit(self, event_type: str, resource_type: str, resource_id: Optional[str],
                    actor: Optional[str], success: bool = True, **details) -> None:
        await self.audit.emit(AuditEvent(
            event_type=event_type,
            resource_type=resource_type,
            resource_id=resource_id,
            performed_by=actor or "system",
            details=details,
            success=success,
        ))
