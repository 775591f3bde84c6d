"""
Role registry: CRUD over named roles and permission aggregation.
"""
from typing import Iterable, Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import Conflict, ForbiddenOperation, NotFound
from app.features.permissions.catalog import Permission
from app.features.roles.models import Role, RoleKind
from app.utils import get_logger


log = get_logger(__name__)


_VIEW = [
    Permission.INCIDENT_VIEW, Permission.EVIDENCE_VIEW,
    Permission.USER_VIEW, Permission.GROUP_VIEW, Permission.ROLE_VIEW,
]

SYSTEM_ROLES = {
    "VIEWER": {
        "description": "Read-only viewer",
        "permissions": _VIEW,
    },
    "RESPONDER": {
        "description": "Incident responder",
        "permissions": _VIEW + [
            Permission.INCIDENT_CREATE, Permission.INCIDENT_UPDATE, Permission.INCIDENT_ASSIGN,
            Permission.EVIDENCE_UPLOAD, Permission.EVIDENCE_DOWNLOAD,
        ],
    },
    "MANAGER": {
        "description": "Manager with incident management capabilities",
        "permissions": _VIEW + [
            Permission.INCIDENT_CREATE, Permission.INCIDENT_UPDATE, Permission.INCIDENT_DELETE,
            Permission.INCIDENT_EXPORT, Permission.INCIDENT_ASSIGN,
            Permission.EVIDENCE_UPLOAD, Permission.EVIDENCE_DELETE, Permission.EVIDENCE_DOWNLOAD,
            Permission.USER_CREATE, Permission.USER_UPDATE, Permission.USER_MANAGE_ROLES,
            Permission.GROUP_CREATE, Permission.GROUP_UPDATE, Permission.GROUP_MANAGE_MEMBERS,
            Permission.EXPORT_CSV, Permission.EXPORT_PDF, Permission.EXPORT_COMBINED,
        ],
    },
    "ADMIN": {
        "description": "Administrator with full incident, user and group management",
        "permissions": [p for p in Permission if p is not Permission.SYSTEM_ADMIN],
    },
    "SYSTEM_ADMIN": {
        "description": "Unrestricted system administrator",
        "permissions": [],
        "is_unrestricted": True,
    },
}


def _permission_values(permissions: Iterable) -> list[str]:
    return sorted({Permission(p).value for p in permissions})


class RoleRegistry:
    """Named roles, each a flat set of permissions, tagged SYSTEM or CUSTOM."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def bootstrap_system_roles(self) -> list[Role]:
        """Seed the predefined SYSTEM roles that do not exist yet."""
        log.info("Initializing system roles...")
        roles = []
        for name, role_config in SYSTEM_ROLES.items():
            role = await self.create_system_role_if_absent(
                name,
                role_config["description"],
                role_config["permissions"],
                is_unrestricted=role_config.get("is_unrestricted", False),
            )
            roles.append(role)
        log.info("System roles initialized successfully")
        return roles

    async def create_system_role_if_absent(
        self,
        name: str,
        description: str,
        permissions: Iterable,
        is_unrestricted: bool = False,
    ) -> Role:
        existing = await self._find(name)
        if existing is not None:
            log.debug("Role '%s' already exists, skipping", name)
            return existing

        role = Role(
            name=name,
            description=description,
            kind=RoleKind.SYSTEM,
            permissions=_permission_values(permissions),
            is_unrestricted=is_unrestricted,
            parent_roles=[],
            created_by="system",
            updated_by="system",
        )
        self.db.add(role)
        await self.db.commit()
        log.info("Created system role: %s", name)
        return role

    async def create_custom_role(
        self,
        name: str,
        description: Optional[str],
        permissions: Iterable,
        actor: Optional[str] = None,
    ) -> Role:
        if await self._find(name) is not None:
            raise Conflict(f"Role already exists: {name}")

        role = Role(
            name=name,
            description=description,
            kind=RoleKind.CUSTOM,
            permissions=_permission_values(permissions),
            is_unrestricted=False,
            parent_roles=[],
            created_by=actor,
            updated_by=actor,
        )
        self.db.add(role)
        await self.db.commit()
        log.info("Created custom role: %s by %s", name, actor)
        return role

    async def get_by_name(self, name: str) -> Role:
        role = await self._find(name)
        if role is None:
            raise NotFound(f"Role not found: {name}")
        return role

    async def list_all(self) -> list[Role]:
        result = await self.db.execute(select(Role))
        return list(result.scalars().all())

    async def find_by_names(self, names: Iterable[str]) -> list[Role]:
        """Resolvable subset of ``names``; unknown names are skipped."""
        names = set(names)
        if not names:
            return []
        result = await self.db.execute(select(Role).where(Role.name.in_(names)))
        return list(result.scalars().all())

    async def permissions_for(self, names: Iterable[str]) -> set[str]:
        """
        Union of the permission sets of every resolvable role in ``names``.

        Unknown names are skipped. Never raises, because it sits on the
        credential-issuance path.
        """
        permissions: set[str] = set()
        for role in await self.find_by_names(names):
            permissions.update(role.permissions or ())
        return permissions

    async def update_role(
        self,
        name: str,
        description: Optional[str] = None,
        permissions: Optional[Iterable] = None,
        actor: Optional[str] = None,
    ) -> Role:
        """Edit description and/or permission set. Allowed on SYSTEM roles too."""
        role = await self.get_by_name(name)
        if description is not None:
            role.description = description
        if permissions is not None:
            role.permissions = _permission_values(permissions)
        role.updated_by = actor
        await self.db.commit()
        log.info("Updated role: %s by %s", name, actor)
        return role

    async def delete_role(self, name: str) -> Role:
        """
        Delete a CUSTOM role.

        References held by groups and users are left in place; they dangle
        and resolve to no permissions.
        """
        role = await self.get_by_name(name)
        if role.is_system:
            raise ForbiddenOperation(f"System role cannot be deleted: {name}")
        await self.db.delete(role)
        await self.db.commit()
        log.info("Deleted custom role: %s", name)
        return role

    async def _find(self, name: str) -> Optional[Role]:
        result = await self.db.execute(select(Role).where(Role.name == name))
        return result.scalar_one_or_none()
