from datetime import datetime
from typing import List, Optional, Sequence

from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from portal.app.repositories.audit_event_repository import IAuditEventRepository
from portal.domain.entities import AuditEvent


class AuditEventRepository(IAuditEventRepository):
    """AuditEvent repository implementation using SQLModel"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, audit_event: AuditEvent) -> AuditEvent:
        """Create a new audit event (immutable)"""
        self.session.add(audit_event)
        await self.session.flush()
        await self.session.refresh(audit_event)
        return audit_event

    async def list_by_actions(
        self, actions: Sequence[str], since: Optional[datetime] = None
    ) -> List[AuditEvent]:
        """Get audit events for the given actions, oldest first"""
        stmt = select(AuditEvent).where(col(AuditEvent.action).in_(list(actions)))
        if since is not None:
            stmt = stmt.where(AuditEvent.created_at >= since)
        stmt = stmt.order_by(AuditEvent.created_at.asc())

        result = await self.session.exec(stmt)
        return list(result.all())
