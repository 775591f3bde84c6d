"""
Audit sink for access-control facts.

The engine emits facts after the mutation they describe has committed.
Emission never fails the caller: errors are logged and dropped.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.features.audit.models import AuditLog
from app.utils import get_logger


log = get_logger(__name__)


@dataclass
class AuditEvent:
    event_type: str
    resource_type: str
    resource_id: Optional[str] = None
    performed_by: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)
    success: bool = True


class AuditSink:
    """Base sink: logs the fact. Subclasses persist it in ``write``."""

    async def emit(self, event: AuditEvent) -> None:
        log.info(
            "SECURITY_AUDIT: %s - by: %s, %s: %s, details: %s",
            event.event_type, event.performed_by, event.resource_type, event.resource_id, event.details,
        )
        try:
            await self.write(event)
        except Exception:
            log.exception("Failed to persist audit event %s", event.event_type)

    async def write(self, event: AuditEvent) -> None:
        pass


class DatabaseAuditSink(AuditSink):
    """Writes each event as an ``AuditLog`` row in its own session."""

    def __init__(self, session_factory: Optional[async_sessionmaker[AsyncSession]] = None):
        if session_factory is None:
            from app.core.database.engine import AsyncSessionLocal
            session_factory = AsyncSessionLocal
        self.session_factory = session_factory

    async def write(self, event: AuditEvent) -> None:
        async with self.session_factory() as db:
            db.add(AuditLog(
                event_type=event.event_type,
                performed_by=event.performed_by,
                resource_type=event.resource_type,
                resource_id=event.resource_id,
                success=event.success,
                details=event.details or None,
            ))
            await db.commit()
