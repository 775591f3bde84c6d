"""
User model with ULID primary keys.
"""
from datetime import datetime
from typing import Any
from sqlalchemy import Boolean, DateTime, Integer, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TimestampMixin, generate_ulid


class User(Base, TimestampMixin):
    """
    User as seen by access control.

    ``user_ref`` is the stable identifier groups store in their member sets
    (never the storage id). ``group_refs`` holds group ids and mirrors the
    member sets; the group side is authoritative when they disagree.
    """
    __tablename__ = "users"

    # Primary key using ULID (Universally Unique Lexicographically Sortable Identifier)
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    # Stable user identifier (username)
    user_ref: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)

    # Appwrite user ID (for linking with Appwrite authentication)
    appwrite_id: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True, index=True)

    # User information
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Status flags
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Access control
    direct_role_names: Mapped[list[Any]] = mapped_column(JSON, nullable=False, default=list)
    group_refs: Mapped[list[Any]] = mapped_column(JSON, nullable=False, default=list)

    # Track last login
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Optimistic locking
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    __mapper_args__ = {
        "version_id_col": version,
        "eager_defaults": True,
    }

    def __repr__(self) -> str:
        return f"<User(id={self.id}, user_ref={self.user_ref!r})>"
