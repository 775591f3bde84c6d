"""
Role model.

A role is a named, flat set of permissions. SYSTEM roles are seeded at
startup and cannot be deleted; CUSTOM roles are fully administrator-managed.
"""
import enum
from typing import Any
from sqlalchemy import Boolean, Enum as SQLEnum, Integer, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TimestampMixin, generate_ulid


class RoleKind(str, enum.Enum):
    SYSTEM = "SYSTEM"
    CUSTOM = "CUSTOM"


class Role(Base, TimestampMixin):
    """
    Role document.

    ``permissions`` is a sorted JSON array of catalog values.
    ``is_unrestricted`` grants the whole catalog regardless of ``permissions``,
    including permissions added to the catalog after the role was created.
    ``parent_roles`` is stored for compatibility and ignored by resolution.
    """
    __tablename__ = "roles"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    kind: Mapped[RoleKind] = mapped_column(SQLEnum(RoleKind, name="role_kind"), nullable=False, default=RoleKind.CUSTOM)

    permissions: Mapped[list[Any]] = mapped_column(JSON, nullable=False, default=list)
    is_unrestricted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    parent_roles: Mapped[list[Any]] = mapped_column(JSON, nullable=False, default=list)

    created_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    updated_by: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Optimistic locking
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    __mapper_args__ = {
        "version_id_col": version,
        "eager_defaults": True,
    }

    @property
    def is_system(self) -> bool:
        return self.kind == RoleKind.SYSTEM

    def __repr__(self) -> str:
        return f"<Role(id={self.id}, name={self.name!r}, kind={self.kind.value})>"
