from typing import Optional

from portal.app.services.audit_service import AuditService
from portal.app.services.clock import Clock
from portal.app.services.invitation_service import InvitationService
from portal.app.services.resilient_executor import ResilientExecutor
from portal.app.services.unit_of_work import UnitOfWork
from portal.libs.result import Result, Return

from .dtos import InvitationPreviewResponse


class ValidateInvitationUseCase:
    """Checks a raw token before the signup form is shown (does not redeem it)"""

    def __init__(
        self,
        uow: UnitOfWork,
        executor: Optional[ResilientExecutor] = None,
        clock: Optional[Clock] = None,
    ):
        audit = AuditService(uow)
        self.invitations = InvitationService(
            uow, executor or ResilientExecutor(audit=audit), audit, clock=clock
        )

    async def execute(self, raw_token: str) -> Result[InvitationPreviewResponse]:
        result = await self.invitations.validate(raw_token)
        if result.is_err():
            return Return.err(result.error)

        invitation = result.value
        return Return.ok(
            InvitationPreviewResponse(
                invite_id=invitation.id,
                role=invitation.role.value,
                property_id=invitation.property_id,
                unit_id=invitation.unit_id,
                target_email=invitation.target_email,
                expires_at=invitation.expires_at.isoformat(),
            )
        )
