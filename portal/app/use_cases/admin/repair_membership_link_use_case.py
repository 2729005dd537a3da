"""
Use Case: Repair Membership Link

Re-runs the membership linking step of signup on its own, for accounts
whose signup finished with MEMBERSHIP_LINK_DEGRADED.
"""

from functools import partial
from typing import Optional

from pydantic import BaseModel

from portal.app.services.audit_service import AuditService
from portal.app.services.membership_projection import MembershipDelta
from portal.app.services.membership_service import MembershipService
from portal.app.services.resilient_executor import ResilientExecutor
from portal.app.services.unit_of_work import UnitOfWork
from portal.domain.entities import UserProfile
from portal.domain.errors import StorageError
from portal.libs.result import Error, Result, Return


class RepairMembershipLinkResponse(BaseModel):
    """Response DTO for RepairMembershipLinkUseCase"""

    uid: str
    property_id: str
    unit_id: Optional[str] = None
    status: str


class RepairMembershipLinkUseCase:
    """
    Link an existing profile into its property's membership.

    Business Logic:
    1. Load the profile
    2. Reject profiles without a linked property
    3. Apply the membership projection to the property
    4. Create audit event

    Idempotent: repairing an already linked profile changes nothing
    """

    def __init__(self, uow: UnitOfWork, executor: Optional[ResilientExecutor] = None):
        self.uow = uow
        self.audit = AuditService(uow)
        self.executor = executor or ResilientExecutor(audit=self.audit)
        self.memberships = MembershipService(uow, self.executor)

    async def execute(self, uid: str) -> Result[RepairMembershipLinkResponse]:
        try:
            profile = await self.executor.execute(
                partial(self._get_profile, uid), name="profile.get"
            )
        except StorageError as exc:
            return Return.err(
                Error("STORAGE_UNAVAILABLE", exc.message, {"code": exc.code.value})
            )

        if profile is None:
            return Return.err(Error("PROFILE_NOT_FOUND", "Profile not found"))

        if not profile.linked_property_id:
            return Return.err(
                Error("NO_LINKED_PROPERTY", "Profile is not linked to a property")
            )

        linked = await self.memberships.link(
            profile.linked_property_id,
            MembershipDelta(
                uid=profile.id,
                role=profile.role,
                unit_id=profile.linked_unit_id,
                name=profile.name,
                email=profile.email,
            ),
        )
        if linked.is_err():
            return Return.err(linked.error)

        await self.audit.record(
            action="signup.membership_repaired",
            entity_type="property",
            entity_id=profile.linked_property_id,
            actor_id=profile.id,
            metadata={"unit_id": profile.linked_unit_id},
        )

        return Return.ok(
            RepairMembershipLinkResponse(
                uid=profile.id,
                property_id=profile.linked_property_id,
                unit_id=profile.linked_unit_id,
                status="linked",
            )
        )

    async def _get_profile(self, uid: str) -> Optional[UserProfile]:
        async with self.uow:
            return await self.uow.profiles.get_by_id(uid)
