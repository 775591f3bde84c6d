"""
Permission matrix builder.

Read-only audit view built from a full scan of roles, groups and users.
Nothing is materialized between calls.
"""
from collections import Counter

from app.features.access.resolver import EffectiveAccessResolver
from app.features.access.schemas import (
    GroupPermissionEntry,
    PermissionMatrixResponse,
    RolePermissionEntry,
    UserPermissionEntry,
)
from app.features.users.service import UserDirectory
from app.utils import get_logger


log = get_logger(__name__)


class PermissionMatrixBuilder:
    def __init__(self, resolver: EffectiveAccessResolver, users: UserDirectory):
        self.resolver = resolver
        self.users = users

    async def build(self) -> PermissionMatrixResponse:
        log.info("Generating permission matrix")

        roles = await self.resolver.roles.list_all()
        groups = await self.resolver.groups.list_all()
        users = await self.users.list_all()

        roles_by_name = {role.name: role for role in roles}
        groups_by_id = {group.id: group for group in groups}

        def permissions_of(role_names) -> list[str]:
            # Dangling names resolve to nothing
            resolved = [roles_by_name[name] for name in role_names if name in roles_by_name]
            return sorted(self.resolver.permissions_from(resolved))

        user_counts: Counter = Counter()
        for user in users:
            user_counts.update(set(user.direct_role_names or ()))
        group_counts: Counter = Counter()
        for group in groups:
            group_counts.update(set(group.role_names or ()))

        permissions_by_role = {role.name: permissions_of([role.name]) for role in roles}

        role_entries = [
            RolePermissionEntry(
                role_name=role.name,
                role_type=role.kind,
                is_unrestricted=role.is_unrestricted,
                permissions=permissions_by_role[role.name],
                user_count=user_counts.get(role.name, 0),
                group_count=group_counts.get(role.name, 0),
            )
            for role in roles
        ]

        user_entries = []
        for user in users:
            direct_roles = set(user.direct_role_names or ())
            user_groups = [groups_by_id[ref] for ref in user.group_refs or () if ref in groups_by_id]
            group_roles = await self.resolver.group_roles(user, user_groups)
            effective_roles = direct_roles | group_roles
            user_entries.append(UserPermissionEntry(
                user_id=user.id,
                user_ref=user.user_ref,
                email=user.email,
                direct_roles=sorted(direct_roles),
                group_roles=sorted(group_roles),
                effective_roles=sorted(effective_roles),
                effective_permissions=permissions_of(effective_roles),
                group_names=sorted(group.name for group in user_groups),
            ))

        group_entries = [
            GroupPermissionEntry(
                group_id=group.id,
                group_name=group.name,
                roles=sorted(group.role_names or ()),
                member_count=group.member_count,
                effective_permissions=permissions_of(group.role_names or ()),
            )
            for group in groups
        ]

        return PermissionMatrixResponse(
            roles=role_entries,
            users=user_entries,
            groups=group_entries,
            permissions_by_role=permissions_by_role,
        )
