from datetime import datetime
from typing import Optional

from sqlalchemy import and_, or_, update
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from portal.app.repositories.invitation_repository import IInvitationRepository
from portal.domain.entities import Invitation, InvitationStatus


class InvitationRepository(IInvitationRepository):
    """Invitation repository implementation using SQLModel

    Transitions are single UPDATE ... WHERE status = ... statements; the
    rowcount tells whether this call won.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, invitation_id: str) -> Optional[Invitation]:
        """Get invitation by ID"""
        stmt = (
            select(Invitation)
            .where(Invitation.id == invitation_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def create(self, invitation: Invitation) -> Invitation:
        """Create a new invitation"""
        self.session.add(invitation)
        await self.session.flush()
        await self.session.refresh(invitation)
        return invitation

    async def mark_used_if_active(
        self, invitation_id: str, used_by: str, used_at: datetime
    ) -> bool:
        # a retried redemption by the same uid finds its own write
        stmt = (
            update(Invitation)
            .where(
                Invitation.id == invitation_id,
                or_(
                    Invitation.status == InvitationStatus.active,
                    and_(
                        Invitation.status == InvitationStatus.used,
                        Invitation.used_by == used_by,
                    ),
                ),
            )
            .values(status=InvitationStatus.used, used_by=used_by, used_at=used_at)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def mark_expired_if_active(self, invitation_id: str) -> bool:
        stmt = (
            update(Invitation)
            .where(
                Invitation.id == invitation_id,
                Invitation.status == InvitationStatus.active,
            )
            .values(status=InvitationStatus.expired)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def reactivate_if_used(
        self, invitation_id: str, used_by: Optional[str] = None
    ) -> bool:
        conditions = [
            Invitation.id == invitation_id,
            Invitation.status == InvitationStatus.used,
        ]
        if used_by is not None:
            conditions.append(Invitation.used_by == used_by)

        stmt = (
            update(Invitation)
            .where(*conditions)
            .values(status=InvitationStatus.active, used_by=None, used_at=None)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1
