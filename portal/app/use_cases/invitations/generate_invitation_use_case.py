"""
Generate Invitation Use Case

Creates a single-use registration link for a property or unit.
"""

from functools import partial
from typing import Optional

from portal.app.services.audit_service import AuditService
from portal.app.services.clock import Clock
from portal.app.services.invitation_service import DEFAULT_TTL_DAYS, InvitationService
from portal.app.services.resilient_executor import ResilientExecutor
from portal.app.services.unit_of_work import UnitOfWork
from portal.domain.actor import Actor
from portal.domain.entities import Property, UserRole
from portal.domain.errors import StorageError
from portal.libs.result import Error, Result, Return

from .dtos import InvitationCreatedResponse


class GenerateInvitationUseCase:
    """
    Use case for generating invitations.

    Business Rules:
    - pmc invitations: owner or admin only
    - tenant invitations: owner, pmc or admin
    - Impersonation sessions cannot generate invitations
    - Non-admin actors must own (owner) or manage (pmc) the property
    - unit_id, when given, must name a unit of the property
    - Link expires 7 days after generation
    """

    def __init__(
        self,
        uow: UnitOfWork,
        executor: Optional[ResilientExecutor] = None,
        clock: Optional[Clock] = None,
        ttl_days: int = DEFAULT_TTL_DAYS,
        link_base_url: str = "",
    ):
        self.uow = uow
        audit = AuditService(uow)
        self.executor = executor or ResilientExecutor(audit=audit)
        self.invitations = InvitationService(
            uow,
            self.executor,
            audit,
            clock=clock,
            ttl_days=ttl_days,
            link_base_url=link_base_url,
        )

    async def execute(
        self,
        actor: Actor,
        role: str,
        property_id: str,
        unit_id: Optional[str] = None,
        target_email: Optional[str] = None,
    ) -> Result[InvitationCreatedResponse]:
        """
        Execute generate invitation use case.

        Returns:
            Result with InvitationCreatedResponse DTO, or Error
        """
        try:
            property = await self.executor.execute(
                partial(self._get_property, property_id), name="property.get"
            )
        except StorageError as exc:
            return Return.err(
                Error("STORAGE_UNAVAILABLE", exc.message, {"code": exc.code.value})
            )

        if property is None:
            return Return.err(
                Error("PROPERTY_NOT_FOUND", f"Property {property_id} not found")
            )

        if not self._can_manage(actor, property):
            return Return.err(
                Error("PERMISSION_DENIED", "You do not manage this property")
            )

        if unit_id is not None and not any(
            unit.get("id") == unit_id for unit in property.units or []
        ):
            return Return.err(Error("UNIT_NOT_FOUND", f"Unit {unit_id} not found"))

        result = await self.invitations.generate(
            actor, role, property_id, unit_id=unit_id, target_email=target_email
        )
        if result.is_err():
            return Return.err(result.error)

        generated = result.value
        invitation = generated.invitation
        return Return.ok(
            InvitationCreatedResponse(
                invite_id=invitation.id,
                link=generated.link,
                role=invitation.role.value,
                property_id=invitation.property_id,
                unit_id=invitation.unit_id,
                status=invitation.status.value,
                expires_at=invitation.expires_at.isoformat(),
            )
        )

    @staticmethod
    def _can_manage(actor: Actor, property: Property) -> bool:
        if actor.role == UserRole.admin:
            return True
        if actor.role == UserRole.owner:
            return actor.uid in (property.owner_ids or [])
        if actor.role == UserRole.pmc:
            return actor.uid in (property.manager_ids or [])
        return False

    async def _get_property(self, property_id: str) -> Optional[Property]:
        async with self.uow:
            return await self.uow.properties.get_by_id(property_id)
