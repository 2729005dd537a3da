from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from portal.domain.entities import Invitation


class IInvitationRepository(ABC):
    """Invitation repository interface - application layer

    Status transitions are conditional single-statement updates; each
    returns True only when this call performed the transition.
    """

    @abstractmethod
    async def get_by_id(self, invitation_id: str) -> Optional[Invitation]:
        """Get invitation by ID (token hash)"""
        pass

    @abstractmethod
    async def create(self, invitation: Invitation) -> Invitation:
        """Create a new invitation"""
        pass

    @abstractmethod
    async def mark_used_if_active(
        self, invitation_id: str, used_by: str, used_at: datetime
    ) -> bool:
        """Set status=used, used_at, used_by only if status is currently active,
        or already used by `used_by` (a retried write that landed)"""
        pass

    @abstractmethod
    async def mark_expired_if_active(self, invitation_id: str) -> bool:
        """Set status=expired only if status is currently active"""
        pass

    @abstractmethod
    async def reactivate_if_used(
        self, invitation_id: str, used_by: Optional[str] = None
    ) -> bool:
        """Set status back to active and clear usage, only if currently used
        (and used by `used_by` when given)"""
        pass
