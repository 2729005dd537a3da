"""
Use Case: Sweep Orphaned Signups

Finds signup runs that stopped between stages (client crash, process
restart) or whose compensations failed, using the events the signup saga
writes to the audit log, and finishes their cleanup.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from functools import partial
from typing import Dict, List, Optional

from pydantic import BaseModel

from portal.app.services.audit_service import AuditService
from portal.app.services.clock import Clock
from portal.app.services.identity_service import IdentityService
from portal.app.services.invitation_service import InvitationService
from portal.app.services.membership_projection import MembershipDelta
from portal.app.services.membership_service import MembershipService
from portal.app.services.resilient_executor import ResilientExecutor
from portal.app.services.unit_of_work import UnitOfWork
from portal.app.use_cases.auth.signup_use_case import (
    CHECKPOINT_ACTION,
    COMPENSATION_FAILED_ACTION,
    COMPLETED_ACTION,
    FAILED_ACTION,
)
from portal.domain.entities import AuditEvent, AuditSeverity, UserProfile
from portal.domain.errors import StorageError
from portal.libs.result import Error, Result, Return

SWEPT_ACTION = "signup.swept"
SIGNUP_ACTIONS = (
    CHECKPOINT_ACTION,
    COMPENSATION_FAILED_ACTION,
    COMPLETED_ACTION,
    FAILED_ACTION,
    SWEPT_ACTION,
)


@dataclass
class SignupRun:
    """Signup events of one saga folded oldest first"""

    latest: Optional[AuditEvent] = None
    metadata: dict = field(default_factory=dict)
    # A compensation failed and no sweep has run since
    unresolved: bool = False

    def observe(self, event: AuditEvent) -> None:
        self.latest = event
        self.metadata.update(
            {k: v for k, v in (event.event_metadata or {}).items() if v is not None}
        )
        if event.action == COMPENSATION_FAILED_ACTION:
            self.unresolved = True
        elif event.action == SWEPT_ACTION:
            self.unresolved = False

    def is_orphaned(self, cutoff: datetime) -> bool:
        if self.latest is None or self.latest.created_at >= cutoff:
            return False
        return self.latest.action == CHECKPOINT_ACTION or self.unresolved


class SweptSignup(BaseModel):
    saga_id: str
    stage: str
    uid: Optional[str] = None
    invite_id: Optional[str] = None
    actions: List[str]


class SweepOrphanedSignupsResponse(BaseModel):
    """Response DTO for SweepOrphanedSignupsUseCase"""

    swept: List[SweptSignup]


class SweepOrphanedSignupsUseCase:
    """
    Reconcile signup runs that went quiet before the threshold without
    reaching a clean end.

    Business Logic:
    1. Load signup events from the lookback window
    2. Keep runs older than `older_than` whose latest event is a checkpoint,
       or that logged a compensation failure no later sweep has resolved
    3. Profile missing: revert the run's invite redemption and delete its identity
    4. Profile present: retry the membership link
    5. Record signup.swept so the run is not picked up again
    """

    def __init__(
        self,
        uow: UnitOfWork,
        executor: Optional[ResilientExecutor] = None,
        clock: Optional[Clock] = None,
    ):
        self.uow = uow
        self.clock = clock or Clock()
        self.audit = AuditService(uow)
        self.executor = executor or ResilientExecutor(audit=self.audit)
        self.identities = IdentityService(uow)
        self.invitations = InvitationService(
            uow, self.executor, self.audit, clock=self.clock
        )
        self.memberships = MembershipService(uow, self.executor)

    async def execute(
        self, older_than: timedelta, lookback: timedelta = timedelta(days=30)
    ) -> Result[SweepOrphanedSignupsResponse]:
        now = self.clock.now()
        try:
            events = await self.executor.execute(
                partial(self._load_events, now - lookback), name="audit.list_signups"
            )
        except StorageError as exc:
            return Return.err(
                Error("STORAGE_UNAVAILABLE", exc.message, {"code": exc.code.value})
            )

        runs: Dict[str, SignupRun] = {}
        for event in events:
            saga_id = (event.event_metadata or {}).get("saga_id") or event.entity_id
            if saga_id:
                runs.setdefault(saga_id, SignupRun()).observe(event)

        cutoff = now - older_than
        swept = []
        for saga_id, run in runs.items():
            if run.is_orphaned(cutoff):
                swept.append(await self._sweep(saga_id, dict(run.metadata)))

        return Return.ok(SweepOrphanedSignupsResponse(swept=swept))

    async def _sweep(self, saga_id: str, metadata: dict) -> SweptSignup:
        uid = metadata.get("uid")
        invite_id = metadata.get("invite_id")
        actions: List[str] = []

        if uid is not None:
            try:
                actions = await self._reconcile(uid, invite_id)
            except StorageError as exc:
                actions.append(f"failed:{exc.code.value}")

        await self.audit.record(
            action=SWEPT_ACTION,
            entity_type="signup",
            entity_id=saga_id,
            actor_id=uid,
            severity=AuditSeverity.warning,
            metadata={**metadata, "saga_id": saga_id, "actions": actions},
        )
        return SweptSignup(
            saga_id=saga_id,
            stage=metadata.get("stage", "unknown"),
            uid=uid,
            invite_id=invite_id,
            actions=actions,
        )

    async def _reconcile(self, uid: str, invite_id: Optional[str]) -> List[str]:
        actions: List[str] = []
        profile = await self.executor.execute(
            partial(self._get_profile, uid), name="profile.get"
        )

        if profile is not None:
            if profile.linked_property_id:
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
                actions.append("membership_linked" if linked.is_ok() else "membership_pending")
            return actions

        if invite_id:
            reverted = await self.invitations.revert(invite_id, uid)
            if reverted.is_ok() and reverted.value:
                actions.append("invite_reverted")

        deleted = await self.executor.execute(
            partial(self.identities.delete_principal, uid), name="identity.delete"
        )
        if deleted:
            actions.append("identity_deleted")
        return actions

    async def _load_events(self, since) -> List[AuditEvent]:
        async with self.uow:
            return await self.uow.audit_events.list_by_actions(SIGNUP_ACTIONS, since=since)

    async def _get_profile(self, uid: str) -> Optional[UserProfile]:
        async with self.uow:
            return await self.uow.profiles.get_by_id(uid)
