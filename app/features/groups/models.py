"""
Group model.

Groups hold a set of member user refs and a set of role names. Members
inherit the group's roles (one level, no nesting).
"""
from typing import Any
from sqlalchemy import Boolean, Integer, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TimestampMixin, generate_ulid


class Group(Base, TimestampMixin):
    __tablename__ = "groups"

    # Primary key using ULID
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    # Group definition
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Sorted JSON arrays; member refs are User.user_ref values
    member_user_refs: Mapped[list[Any]] = mapped_column(JSON, nullable=False, default=list)
    role_names: Mapped[list[Any]] = mapped_column(JSON, nullable=False, default=list)

    created_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    updated_by: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Optimistic locking
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    __mapper_args__ = {
        "version_id_col": version,
        "eager_defaults": True,
    }

    @property
    def member_count(self) -> int:
        return len(self.member_user_refs or ())

    def __repr__(self) -> str:
        return f"<Group(id={self.id}, name={self.name!r})>"
