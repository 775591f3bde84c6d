"""
Static catalog of fine-grained permissions.

Permissions are never created at runtime; roles reference them by value.
"""
import enum


class Permission(str, enum.Enum):
    """Fine-grained permission, named ``<RESOURCE>_<ACTION>``."""

    # Incidents
    INCIDENT_VIEW = "INCIDENT_VIEW"
    INCIDENT_CREATE = "INCIDENT_CREATE"
    INCIDENT_UPDATE = "INCIDENT_UPDATE"
    INCIDENT_DELETE = "INCIDENT_DELETE"
    INCIDENT_EXPORT = "INCIDENT_EXPORT"
    INCIDENT_ASSIGN = "INCIDENT_ASSIGN"

    # User management
    USER_VIEW = "USER_VIEW"
    USER_CREATE = "USER_CREATE"
    USER_UPDATE = "USER_UPDATE"
    USER_DELETE = "USER_DELETE"
    USER_MANAGE_ROLES = "USER_MANAGE_ROLES"
    USER_RESET_PASSWORD = "USER_RESET_PASSWORD"

    # Group management
    GROUP_VIEW = "GROUP_VIEW"
    GROUP_CREATE = "GROUP_CREATE"
    GROUP_UPDATE = "GROUP_UPDATE"
    GROUP_DELETE = "GROUP_DELETE"
    GROUP_MANAGE_MEMBERS = "GROUP_MANAGE_MEMBERS"
    GROUP_MANAGE_ROLES = "GROUP_MANAGE_ROLES"

    # Evidence
    EVIDENCE_VIEW = "EVIDENCE_VIEW"
    EVIDENCE_UPLOAD = "EVIDENCE_UPLOAD"
    EVIDENCE_DELETE = "EVIDENCE_DELETE"
    EVIDENCE_DOWNLOAD = "EVIDENCE_DOWNLOAD"

    # Export
    EXPORT_CSV = "EXPORT_CSV"
    EXPORT_PDF = "EXPORT_PDF"
    EXPORT_COMBINED = "EXPORT_COMBINED"

    # Role management
    ROLE_VIEW = "ROLE_VIEW"
    ROLE_CREATE = "ROLE_CREATE"
    ROLE_UPDATE = "ROLE_UPDATE"
    ROLE_DELETE = "ROLE_DELETE"

    # System administration
    SYSTEM_ADMIN = "SYSTEM_ADMIN"
    SYSTEM_CONFIG = "SYSTEM_CONFIG"
    SYSTEM_AUDIT = "SYSTEM_AUDIT"

    @property
    def resource(self) -> str:
        return self.value.split("_", 1)[0].lower()

    @property
    def action(self) -> str:
        return self.value.split("_", 1)[1].lower()

    @property
    def description(self) -> str:
        return DESCRIPTIONS[self]


DESCRIPTIONS: dict[Permission, str] = {
    Permission.INCIDENT_VIEW: "View incidents",
    Permission.INCIDENT_CREATE: "Create incidents",
    Permission.INCIDENT_UPDATE: "Update incidents",
    Permission.INCIDENT_DELETE: "Delete incidents",
    Permission.INCIDENT_EXPORT: "Export incidents",
    Permission.INCIDENT_ASSIGN: "Assign incidents to users",
    Permission.USER_VIEW: "View users",
    Permission.USER_CREATE: "Create users",
    Permission.USER_UPDATE: "Update users",
    Permission.USER_DELETE: "Delete users",
    Permission.USER_MANAGE_ROLES: "Manage user roles",
    Permission.USER_RESET_PASSWORD: "Reset user passwords",
    Permission.GROUP_VIEW: "View groups",
    Permission.GROUP_CREATE: "Create groups",
    Permission.GROUP_UPDATE: "Update groups",
    Permission.GROUP_DELETE: "Delete groups",
    Permission.GROUP_MANAGE_MEMBERS: "Manage group members",
    Permission.GROUP_MANAGE_ROLES: "Manage group roles",
    Permission.EVIDENCE_VIEW: "View evidence",
    Permission.EVIDENCE_UPLOAD: "Upload evidence",
    Permission.EVIDENCE_DELETE: "Delete evidence",
    Permission.EVIDENCE_DOWNLOAD: "Download evidence",
    Permission.EXPORT_CSV: "Export to CSV",
    Permission.EXPORT_PDF: "Export to PDF",
    Permission.EXPORT_COMBINED: "Export combined (PDF + Evidence)",
    Permission.ROLE_VIEW: "View roles",
    Permission.ROLE_CREATE: "Create custom roles",
    Permission.ROLE_UPDATE: "Update custom roles",
    Permission.ROLE_DELETE: "Delete custom roles",
    Permission.SYSTEM_ADMIN: "Full system administration",
    Permission.SYSTEM_CONFIG: "Configure system settings",
    Permission.SYSTEM_AUDIT: "View audit logs",
}


def all_permissions() -> frozenset[str]:
    """Every permission in the catalog, as plain strings."""
    return frozenset(p.value for p in Permission)


def by_resource() -> dict[str, list[Permission]]:
    """Catalog grouped by resource area, in declaration order."""
    grouped: dict[str, list[Permission]] = {}
    for permission in Permission:
        grouped.setdefault(permission.resource, []).append(permission)
    return grouped
