"""
Security audit log.

Tracks who changed which access-control record, and when.
"""
from typing import Any, Dict
from sqlalchemy import Boolean, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TimestampMixin, generate_ulid


class AuditLog(Base, TimestampMixin):
    __tablename__ = "audit_logs"

    # Primary key using ULID
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    # GROUP_CREATED, MEMBER_ADDED, ROLE_ASSIGNED, ...
    event_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)

    # Who performed the action (user_ref, or "system")
    performed_by: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)

    # Target
    resource_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    resource_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)

    success: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    details: Mapped[Dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    def __repr__(self) -> str:
        return f"<AuditLog(id={self.id}, event={self.event_type}, resource={self.resource_type}:{self.resource_id})>"
