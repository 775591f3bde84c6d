"""
Effective-access resolution.

effective roles       = direct roles | roles of every group in user.group_refs
effective permissions = union of the effective roles' permission sets, or the
                        whole catalog when any of them is unrestricted

Dangling group or role references contribute nothing and never raise.
Results are snapshots: they are embedded into access tokens at issuance and
are not re-evaluated per request.
"""
from typing import Iterable, Optional

from app.features.groups.models import Group
from app.features.groups.service import GroupStore
from app.features.permissions.catalog import all_permissions
from app.features.roles.models import Role
from app.features.roles.service import RoleRegistry
from app.features.users.models import User


class EffectiveAccessResolver:
    def __init__(
        self,
        roles: RoleRegistry,
        groups: GroupStore,
        catalog: Optional[Iterable[str]] = None,
    ):
        self.roles = roles
        self.groups = groups
        self._catalog = frozenset(catalog) if catalog is not None else None

    @property
    def catalog(self) -> frozenset[str]:
        if self._catalog is not None:
            return self._catalog
        return all_permissions()

    async def groups_of(self, user: User) -> list[Group]:
        return await self.groups.get_many(user.group_refs or ())

    async def group_roles(self, user: User, groups: Optional[list[Group]] = None) -> set[str]:
        if groups is None:
            groups = await self.groups_of(user)
        names: set[str] = set()
        for group in groups:
            names.update(group.role_names or ())
        return names

    async def group_names(self, user: User) -> list[str]:
        return sorted(group.name for group in await self.groups_of(user))

    async def effective_roles(self, user: User) -> set[str]:
        return set(user.direct_role_names or ()) | await self.group_roles(user)

    def permissions_from(self, roles: Iterable[Role]) -> set[str]:
        """Same rule as ``permissions_for_roles`` over already loaded roles."""
        roles = list(roles)
        if any(role.is_unrestricted for role in roles):
            return set(self.catalog)
        permissions: set[str] = set()
        for role in roles:
            permissions.update(role.permissions or ())
        return permissions

    async def permissions_for_roles(self, role_names: Iterable[str]) -> set[str]:
        role_names = set(role_names)
        resolved = await self.roles.find_by_names(role_names)
        if any(role.is_unrestricted for role in resolved):
            return set(self.catalog)
        return await self.roles.permissions_for(role_names)

    async def effective_permissions(self, user: User) -> set[str]:
        return await self.permissions_for_roles(await self.effective_roles(user))
