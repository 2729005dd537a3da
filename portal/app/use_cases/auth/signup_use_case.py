import logging
from dataclasses import dataclass, field
from functools import partial
from typing import Awaitable, Callable, List, Optional, Tuple

from portal.app.services.audit_service import AuditService
from portal.app.services.clock import Clock
from portal.app.services.identity_service import MAX_PASSWORD_BYTES, IdentityService
from portal.app.services.invitation_service import InvitationService
from portal.app.services.membership_projection import MembershipDelta
from portal.app.services.membership_service import MembershipService
from portal.app.services.resilient_executor import ResilientExecutor
from portal.app.services.unit_of_work import UnitOfWork
from portal.domain.base import generate_uuid
from portal.domain.entities import (
    AuditSeverity,
    Invitation,
    SignupStage,
    UserProfile,
    UserRole,
)
from portal.domain.errors import (
    IdentityAlreadyExistsError,
    StorageError,
    StorageErrorCode,
)
from portal.libs.result import Error, Result, Return

from .signup_dto import ProfileInfo, SignupCommand, SignupResponse, UserInfo

logger = logging.getLogger(__name__)

# Roles that can only be obtained through an invitation
INVITE_REQUIRED_ROLES = frozenset({UserRole.tenant})
# Roles that can never be self-registered
RESTRICTED_ROLES = frozenset({UserRole.admin})

MEMBERSHIP_LINK_DEGRADED = "MEMBERSHIP_LINK_DEGRADED"

CHECKPOINT_ACTION = "signup.checkpoint"
COMPLETED_ACTION = "signup.completed"
FAILED_ACTION = "signup.failed"
COMPENSATION_FAILED_ACTION = "signup.compensation_failed"

Compensation = Callable[[], Awaitable[None]]


@dataclass
class SignupSaga:
    """In-flight state of one signup run"""

    saga_id: str
    email: str
    uid: Optional[str] = None
    invite_id: Optional[str] = None
    stages: List[SignupStage] = field(default_factory=list)
    compensations: List[Tuple[SignupStage, Compensation]] = field(default_factory=list)

    def checkpoint_metadata(self, stage: SignupStage) -> dict:
        return {
            "saga_id": self.saga_id,
            "stage": stage.value,
            "uid": self.uid,
            "invite_id": self.invite_id,
            "email": self.email,
        }


class SignupUseCase:
    """
    Signup Use Case - invitation-gated account provisioning

    There is no transaction spanning identity, invitation, profile and
    property, so the flow is a saga: every completed stage registers a
    compensation that runs in reverse order if a later stage fails.

    Stages:
    0. Pre-check: password fits bcrypt; tenant role needs an invite; admin
       cannot self-register
    1. CreateIdentity (compensation: delete identity)
    2. ValidateInvite, when a token is present; the invite's role wins
    3. ConsumeInvite, atomic (compensation: revert invite)
    4. PersistProfile
    5. LinkMembership - never rolled back; a failure is reported as the
       MEMBERSHIP_LINK_DEGRADED warning and repaired by RepairMembershipLinkUseCase
    6. Complete

    Each stage boundary is checkpointed to the audit log so runs that died
    mid-flight can be found by SweepOrphanedSignupsUseCase.
    """

    def __init__(
        self,
        uow: UnitOfWork,
        executor: Optional[ResilientExecutor] = None,
        clock: Optional[Clock] = None,
        invite_link_base_url: str = "",
    ):
        self.uow = uow
        self.clock = clock or Clock()
        self.audit = AuditService(uow)
        self.executor = executor or ResilientExecutor(audit=self.audit)
        self.identities = IdentityService(uow)
        self.invitations = InvitationService(
            uow,
            self.executor,
            self.audit,
            clock=self.clock,
            link_base_url=invite_link_base_url,
        )
        self.memberships = MembershipService(uow, self.executor)

    async def execute(self, command: SignupCommand) -> Result[SignupResponse]:
        """
        Execute signup use case

        Args:
            command: SignupCommand with email, password, name, requested role
                and optional invite token

        Returns:
            Result[SignupResponse], or Error(INVALID_PASSWORD, PERMISSION_DENIED,
            INVITE_NOT_FOUND, INVITE_EXPIRED, INVITE_ALREADY_USED,
            EMAIL_ALREADY_EXISTS, IDENTITY_CREATE_FAILED,
            PROFILE_CREATE_FAILED, STORAGE_UNAVAILABLE)
        """
        saga = SignupSaga(saga_id=generate_uuid(), email=command.email.strip().lower())

        denied = self._precheck(command)
        if denied is not None:
            return await self._fail(saga, SignupStage.precheck, denied)
        await self._checkpoint(saga, SignupStage.precheck)

        try:
            return await self._run(saga, command)
        except Exception:
            # Unexpected errors still unwind whatever was completed
            await self._compensate(saga)
            raise

    def _precheck(self, command: SignupCommand) -> Optional[Error]:
        if len(command.password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            return Error(
                "INVALID_PASSWORD",
                f"Password must be at most {MAX_PASSWORD_BYTES} bytes",
            )
        if command.invite_token:
            return None
        if command.role in RESTRICTED_ROLES:
            return Error(
                "PERMISSION_DENIED", f"The {command.role.value} role cannot self-register"
            )
        if command.role in INVITE_REQUIRED_ROLES:
            return Error(
                "PERMISSION_DENIED",
                f"An invitation is required to register as {command.role.value}",
            )
        return None

    async def _run(self, saga: SignupSaga, command: SignupCommand) -> Result[SignupResponse]:
        # S0: identity
        try:
            identity = await self.executor.execute(
                partial(
                    self.identities.create_principal,
                    saga.email,
                    command.password,
                    command.name,
                ),
                name="identity.create",
            )
        except IdentityAlreadyExistsError:
            return await self._fail(
                saga,
                SignupStage.create_identity,
                Error("EMAIL_ALREADY_EXISTS", "Email already registered"),
            )
        except StorageError as exc:
            return await self._fail(
                saga,
                SignupStage.create_identity,
                Error(
                    "IDENTITY_CREATE_FAILED",
                    "Could not create the account identity",
                    {"code": exc.code.value},
                ),
            )

        saga.uid = identity.uid
        saga.compensations.append(
            (SignupStage.create_identity, partial(self._delete_identity, identity.uid))
        )
        await self._checkpoint(saga, SignupStage.create_identity)

        final_role = command.role
        invitation: Optional[Invitation] = None

        if command.invite_token:
            # S1: validate
            validated = await self.invitations.validate(command.invite_token)
            if validated.is_err():
                return await self._fail(saga, SignupStage.validate_invite, validated.error)

            invitation = validated.value
            if invitation.target_email and invitation.target_email != saga.email:
                return await self._fail(
                    saga,
                    SignupStage.validate_invite,
                    Error(
                        "PERMISSION_DENIED",
                        "This invitation was issued for a different email address",
                    ),
                )
            final_role = invitation.role
            saga.invite_id = invitation.id
            await self._checkpoint(saga, SignupStage.validate_invite)

            # S2: consume
            consumed = await self.invitations.consume(invitation.id, identity.uid)
            if consumed.is_err():
                error = consumed.error
                if error.code == "INVITE_CONFLICT":
                    error = Error(
                        "INVITE_ALREADY_USED", "This invitation has already been used"
                    )
                return await self._fail(saga, SignupStage.consume_invite, error)

            saga.compensations.append(
                (
                    SignupStage.consume_invite,
                    partial(self._revert_invite, invitation.id, identity.uid),
                )
            )
            await self._checkpoint(saga, SignupStage.consume_invite)

        # S3: profile
        profile = UserProfile(
            id=identity.uid,
            name=command.name,
            email=saga.email,
            role=final_role,
            linked_property_id=invitation.property_id if invitation else None,
            linked_unit_id=invitation.unit_id if invitation else None,
            invite_id=invitation.id if invitation else None,
        )
        try:
            profile = await self.executor.execute(
                partial(self._persist_profile, profile), name="profile.create"
            )
        except StorageError as exc:
            return await self._fail(
                saga,
                SignupStage.persist_profile,
                Error(
                    "PROFILE_CREATE_FAILED",
                    "Could not create the user profile",
                    {"code": exc.code.value},
                ),
            )

        # Identity and profile are durable from here on; nothing is rolled back
        saga.compensations.clear()
        await self._checkpoint(saga, SignupStage.persist_profile)

        # S4: membership
        warnings: List[str] = []
        if invitation is not None:
            linked = await self.memberships.link(
                invitation.property_id,
                MembershipDelta(
                    uid=identity.uid,
                    role=final_role,
                    unit_id=invitation.unit_id,
                    name=command.name,
                    email=saga.email,
                ),
            )
            if linked.is_err():
                warnings.append(MEMBERSHIP_LINK_DEGRADED)
                logger.warning(
                    f"Membership link pending for {identity.uid} on "
                    f"{invitation.property_id}: {linked.error.code}"
                )
                await self.audit.record(
                    action="signup.membership_degraded",
                    entity_type="property",
                    entity_id=invitation.property_id,
                    actor_id=identity.uid,
                    severity=AuditSeverity.warning,
                    metadata={
                        "saga_id": saga.saga_id,
                        "unit_id": invitation.unit_id,
                        "reason": linked.error.code,
                    },
                )
            else:
                await self._checkpoint(saga, SignupStage.link_membership)

        # S5: complete
        saga.stages.append(SignupStage.complete)
        await self.audit.record(
            action=COMPLETED_ACTION,
            entity_type="signup",
            entity_id=saga.saga_id,
            actor_id=identity.uid,
            metadata={**saga.checkpoint_metadata(SignupStage.complete), "warnings": warnings},
        )
        logger.info(f"Provisioned {final_role.value} account {identity.uid}")

        # Import JWT utility here to avoid circular dependency
        from portal.api.utils.jwt import generate_jwt

        return Return.ok(
            SignupResponse(
                user=UserInfo(uid=identity.uid, email=identity.email),
                profile=ProfileInfo(
                    id=profile.id,
                    name=profile.name,
                    email=profile.email,
                    role=profile.role.value,
                    linked_property_id=profile.linked_property_id,
                    linked_unit_id=profile.linked_unit_id,
                    invite_id=profile.invite_id,
                ),
                access_token=generate_jwt(user_id=identity.uid, role=final_role.value),
                warnings=warnings,
            )
        )

    async def _persist_profile(self, profile: UserProfile) -> UserProfile:
        async with self.uow:
            # Profile ids are identity uids, so an existing row is a retried write
            existing = await self.uow.profiles.get_by_id(profile.id)
            if existing is not None:
                return existing
            profile = await self.uow.profiles.create(profile)
            await self.uow.commit()
            return profile

    async def _delete_identity(self, uid: str) -> None:
        await self.executor.execute(
            partial(self.identities.delete_principal, uid), name="identity.delete"
        )

    async def _revert_invite(self, invite_id: str, uid: str) -> None:
        reverted = await self.invitations.revert(invite_id, uid)
        if reverted.is_err():
            raise StorageError(
                StorageErrorCode(reverted.error.details.get("code", "unknown")),
                reverted.error.message,
            )

    async def _checkpoint(self, saga: SignupSaga, stage: SignupStage) -> None:
        saga.stages.append(stage)
        await self.audit.record(
            action=CHECKPOINT_ACTION,
            entity_type="signup",
            entity_id=saga.saga_id,
            actor_id=saga.uid,
            metadata=saga.checkpoint_metadata(stage),
        )

    async def _compensate(self, saga: SignupSaga) -> None:
        """Run registered compensations in reverse order"""
        while saga.compensations:
            stage, compensation = saga.compensations.pop()
            try:
                await compensation()
            except StorageError as exc:
                logger.error(
                    f"Compensation for {stage.value} failed in signup {saga.saga_id}: {exc}"
                )
                await self.audit.record(
                    action=COMPENSATION_FAILED_ACTION,
                    entity_type="signup",
                    entity_id=saga.saga_id,
                    actor_id=saga.uid,
                    severity=AuditSeverity.critical,
                    metadata={
                        **saga.checkpoint_metadata(stage),
                        "code": exc.code.value,
                    },
                )
                continue

            await self.audit.record(
                action="signup.compensated",
                entity_type="signup",
                entity_id=saga.saga_id,
                actor_id=saga.uid,
                severity=AuditSeverity.warning,
                metadata=saga.checkpoint_metadata(stage),
            )

    async def _fail(
        self, saga: SignupSaga, stage: SignupStage, error: Error
    ) -> Result[SignupResponse]:
        await self._compensate(saga)
        logger.warning(f"Signup {saga.saga_id} failed at {stage.value}: {error.code}")
        await self.audit.record(
            action=FAILED_ACTION,
            entity_type="signup",
            entity_id=saga.saga_id,
            actor_id=saga.uid,
            severity=AuditSeverity.error,
            metadata={**saga.checkpoint_metadata(stage), "error": error.code},
        )
        return Return.err(error)
