"""
Invitation lifecycle.

Invitations are addressed by the SHA-256 hash of a random token; only the
hash is stored. Status changes go through conditional single-statement
updates, so two concurrent redemptions of one token can never both succeed.
"""

import hashlib
import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta
from functools import partial
from typing import Optional
from urllib.parse import urlencode

from portal.app.services.audit_service import AuditService
from portal.app.services.clock import Clock
from portal.app.services.resilient_executor import ResilientExecutor
from portal.app.services.unit_of_work import UnitOfWork
from portal.domain.actor import Actor
from portal.domain.entities import AuditSeverity, Invitation, InvitationStatus, UserRole
from portal.domain.errors import StorageError
from portal.libs.result import Error, Result, Return

logger = logging.getLogger(__name__)

DEFAULT_TTL_DAYS = 7

# Invite role -> actor roles allowed to generate it
INVITE_AUTHORITY = {
    UserRole.pmc: frozenset({UserRole.owner, UserRole.admin}),
    UserRole.tenant: frozenset({UserRole.owner, UserRole.pmc, UserRole.admin}),
}


def hash_token(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def build_invite_link(base_url: str, raw_token: str, role: UserRole) -> str:
    """<base>/<surface>/signup?invite=<raw>&role=<role>"""
    surface = "tenant" if role == UserRole.tenant else "portal"
    query = urlencode({"invite": raw_token, "role": role.value})
    return f"{base_url.rstrip('/')}/{surface}/signup?{query}"


def storage_error(exc: StorageError) -> Error:
    return Error("STORAGE_UNAVAILABLE", exc.message, {"code": exc.code.value})


@dataclass(frozen=True)
class GeneratedInvitation:
    raw_token: str
    invitation: Invitation
    link: str


class InvitationService:
    def __init__(
        self,
        uow: UnitOfWork,
        executor: ResilientExecutor,
        audit: AuditService,
        clock: Optional[Clock] = None,
        ttl_days: int = DEFAULT_TTL_DAYS,
        link_base_url: str = "",
    ):
        self.uow = uow
        self.executor = executor
        self.audit = audit
        self.clock = clock or Clock()
        self.ttl_days = ttl_days
        self.link_base_url = link_base_url

    async def generate(
        self,
        actor: Actor,
        role: str,
        property_id: str,
        unit_id: Optional[str] = None,
        target_email: Optional[str] = None,
    ) -> Result[GeneratedInvitation]:
        """
        Create an active invitation and return its raw token once.

        Returns:
            Result with GeneratedInvitation, or Error(INVALID_ROLE,
            PERMISSION_DENIED, STORAGE_UNAVAILABLE)
        """
        try:
            invite_role = UserRole(role)
        except ValueError:
            return Return.err(Error("INVALID_ROLE", f"Invalid invite role: {role}"))

        allowed_roles = INVITE_AUTHORITY.get(invite_role)
        if allowed_roles is None:
            return Return.err(
                Error("INVALID_ROLE", f"Invitations cannot grant the {role} role")
            )

        if actor.is_impersonating:
            return Return.err(
                Error(
                    "PERMISSION_DENIED",
                    "Invitations cannot be generated from an impersonation session",
                )
            )

        if actor.role not in allowed_roles:
            return Return.err(
                Error(
                    "PERMISSION_DENIED",
                    f"Role {actor.role.value} cannot create {role} invitations",
                )
            )

        raw_token = secrets.token_urlsafe(32)
        now = self.clock.now()
        invitation = Invitation(
            id=hash_token(raw_token),
            role=invite_role,
            property_id=property_id,
            unit_id=unit_id,
            target_email=target_email.strip().lower() if target_email else None,
            status=InvitationStatus.active,
            created_by=actor.uid,
            created_at=now,
            expires_at=now + timedelta(days=self.ttl_days),
        )

        try:
            invitation = await self.executor.execute(
                partial(self._create, invitation), name="invitation.create"
            )
        except StorageError as exc:
            logger.error(f"Failed to persist invitation for {property_id}: {exc}")
            return Return.err(storage_error(exc))

        await self.audit.record(
            action="invite.create",
            entity_type="invitation",
            entity_id=invitation.id,
            actor_id=actor.uid,
            metadata={
                "role": invite_role.value,
                "property_id": property_id,
                "unit_id": unit_id,
            },
        )

        return Return.ok(
            GeneratedInvitation(
                raw_token=raw_token,
                invitation=invitation,
                link=build_invite_link(self.link_base_url, raw_token, invite_role),
            )
        )

    async def validate(self, raw_token: str) -> Result[Invitation]:
        """
        Resolve a raw token to a redeemable invitation.

        An active invitation found past its expiry is flipped to expired.

        Returns:
            Result with Invitation, or Error(INVITE_NOT_FOUND, INVITE_EXPIRED,
            INVITE_ALREADY_USED, STORAGE_UNAVAILABLE)
        """
        invite_id = hash_token(raw_token)
        try:
            invitation = await self.executor.execute(
                partial(self._get, invite_id), name="invitation.get"
            )
        except StorageError as exc:
            return Return.err(storage_error(exc))

        if invitation is None:
            return Return.err(Error("INVITE_NOT_FOUND", "Invitation not found"))

        if invitation.status == InvitationStatus.used:
            return Return.err(
                Error("INVITE_ALREADY_USED", "This invitation has already been used")
            )

        if invitation.status == InvitationStatus.expired:
            return Return.err(Error("INVITE_EXPIRED", "This invitation has expired"))

        if invitation.is_expired(self.clock.now()):
            await self._expire(invitation)
            return Return.err(Error("INVITE_EXPIRED", "This invitation has expired"))

        return Return.ok(invitation)

    async def consume(self, invite_id: str, redeemer_uid: str) -> Result[None]:
        """
        Atomically mark an active invitation as used by `redeemer_uid`.

        Returns:
            Ok, or Error(INVITE_CONFLICT) when the invitation was not active
        """
        try:
            consumed = await self.executor.execute(
                partial(self._mark_used, invite_id, redeemer_uid),
                name="invitation.consume",
            )
        except StorageError as exc:
            return Return.err(storage_error(exc))

        if not consumed:
            return Return.err(
                Error("INVITE_CONFLICT", "Invitation is no longer active")
            )

        await self.audit.record(
            action="invite.consume",
            entity_type="invitation",
            entity_id=invite_id,
            actor_id=redeemer_uid,
        )
        return Return.ok(None)

    async def revert(
        self, invite_id: str, redeemer_uid: Optional[str] = None
    ) -> Result[bool]:
        """
        Compensation for consume: reactivate a used invitation.

        A no-op for an invitation that is already active. When `redeemer_uid`
        is given only a redemption by that uid is reverted.

        Returns:
            Result with True if the invitation was reactivated by this call
        """
        try:
            reverted = await self.executor.execute(
                partial(self._reactivate, invite_id, redeemer_uid),
                name="invitation.revert",
            )
        except StorageError as exc:
            return Return.err(storage_error(exc))

        if reverted:
            await self.audit.record(
                action="invite.revert",
                entity_type="invitation",
                entity_id=invite_id,
                actor_id=redeemer_uid,
                severity=AuditSeverity.warning,
            )
        return Return.ok(reverted)

    async def _expire(self, invitation: Invitation) -> None:
        try:
            expired = await self.executor.execute(
                partial(self._mark_expired, invitation.id), name="invitation.expire"
            )
        except StorageError as exc:
            logger.warning(f"Could not mark invitation {invitation.id} expired: {exc}")
            return

        if expired:
            await self.audit.record(
                action="invite.expire",
                entity_type="invitation",
                entity_id=invitation.id,
                metadata={"expires_at": invitation.expires_at.isoformat()},
            )

    async def _create(self, invitation: Invitation) -> Invitation:
        async with self.uow:
            invitation = await self.uow.invitations.create(invitation)
            await self.uow.commit()
            return invitation

    async def _get(self, invite_id: str) -> Optional[Invitation]:
        async with self.uow:
            return await self.uow.invitations.get_by_id(invite_id)

    async def _mark_used(self, invite_id: str, redeemer_uid: str) -> bool:
        async with self.uow:
            consumed = await self.uow.invitations.mark_used_if_active(
                invite_id, used_by=redeemer_uid, used_at=self.clock.now()
            )
            await self.uow.commit()
            return consumed

    async def _mark_expired(self, invite_id: str) -> bool:
        async with self.uow:
            expired = await self.uow.invitations.mark_expired_if_active(invite_id)
            await self.uow.commit()
            return expired

    async def _reactivate(self, invite_id: str, redeemer_uid: Optional[str]) -> bool:
        async with self.uow:
            reverted = await self.uow.invitations.reactivate_if_used(
                invite_id, used_by=redeemer_uid
            )
            await self.uow.commit()
            return reverted
