from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional, Sequence

from portal.domain.entities import AuditEvent


class IAuditEventRepository(ABC):
    """AuditEvent repository interface - application layer"""

    @abstractmethod
    async def create(self, audit_event: AuditEvent) -> AuditEvent:
        """Create a new audit event (immutable)"""
        pass

    @abstractmethod
    async def list_by_actions(
        self, actions: Sequence[str], since: Optional[datetime] = None
    ) -> List[AuditEvent]:
        """
        Get audit events whose action is one of `actions`.

        Returns:
            Events ordered by created_at ASC, optionally limited to
            events created at or after `since`
        """
        pass
