"""
Audit sink.

Writes AuditEvent rows through the unit of work. Recording is
fire-and-forget: a failing write is logged locally and never reaches the
caller.
"""

import logging
from typing import Any, Dict, Optional

from portal.app.services.unit_of_work import UnitOfWork
from portal.domain.entities import AuditEvent, AuditSeverity

logger = logging.getLogger(__name__)


class AuditService:
    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    async def record(
        self,
        action: str,
        entity_type: str,
        entity_id: Optional[str] = None,
        actor_id: Optional[str] = None,
        severity: AuditSeverity = AuditSeverity.info,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Optional[AuditEvent]:
        """Persist an audit event, returning None if the sink is unavailable"""
        event = AuditEvent(
            actor_id=actor_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            severity=severity,
            event_metadata=metadata or {},
        )
        try:
            async with self.uow:
                await self.uow.audit_events.create(event)
                await self.uow.commit()
        except Exception as exc:
            logger.warning(f"Audit sink write failed for {action}: {exc!r}")
            return None
        return event
