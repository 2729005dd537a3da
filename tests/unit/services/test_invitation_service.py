import hashlib
from datetime import timedelta
from urllib.parse import parse_qs, urlparse

import pytest

from portal.app.services.audit_service import AuditService
from portal.app.services.invitation_service import (
    InvitationService,
    build_invite_link,
    hash_token,
)
from portal.domain.actor import Actor
from portal.domain.entities import Invitation, InvitationStatus, UserRole
from portal.domain.errors import StorageError, StorageErrorCode
from tests.fixtures.audit import audit_actions

OWNER = Actor(uid="owner-1", role=UserRole.owner)


@pytest.fixture
def service(mock_uow, executor, clock):
    return InvitationService(
        mock_uow,
        executor,
        AuditService(mock_uow),
        clock=clock,
        link_base_url="https://portal.example.com/",
    )


def make_invitation(clock, raw_token="raw-token", **overrides):
    values = dict(
        id=hash_token(raw_token),
        role=UserRole.tenant,
        property_id="P1",
        unit_id="U1",
        status=InvitationStatus.active,
        created_by="owner-1",
        created_at=clock.now(),
        expires_at=clock.now() + timedelta(days=7),
    )
    values.update(overrides)
    return Invitation(**values)


@pytest.mark.asyncio
async def test_generate_tenant_invitation(service, mock_uow, clock):
    """Owner generates a tenant invite: hash stored, raw token only in the link"""
    result = await service.generate(OWNER, "tenant", "P1", unit_id="U1")

    assert result.is_ok()
    generated = result.value
    invitation = generated.invitation

    assert invitation.id == hashlib.sha256(generated.raw_token.encode()).hexdigest()
    assert invitation.id != generated.raw_token
    assert invitation.status == InvitationStatus.active
    assert invitation.role == UserRole.tenant
    assert invitation.created_by == "owner-1"
    assert invitation.expires_at == clock.now() + timedelta(days=7)

    link = urlparse(generated.link)
    assert link.netloc == "portal.example.com"
    assert link.path == "/tenant/signup"
    assert parse_qs(link.query) == {"invite": [generated.raw_token], "role": ["tenant"]}

    mock_uow.invitations.create.assert_awaited_once()
    assert audit_actions(mock_uow) == ["invite.create"]


@pytest.mark.asyncio
async def test_generate_normalizes_target_email(service):
    result = await service.generate(OWNER, "pmc", "P1", target_email="  Pat@Example.COM ")

    assert result.is_ok()
    assert result.value.invitation.target_email == "pat@example.com"
    assert "/portal/signup?" in result.value.link


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "actor_role,invite_role,allowed",
    [
        (UserRole.owner, "pmc", True),
        (UserRole.admin, "pmc", True),
        (UserRole.pmc, "pmc", False),
        (UserRole.tenant, "pmc", False),
        (UserRole.owner, "tenant", True),
        (UserRole.pmc, "tenant", True),
        (UserRole.admin, "tenant", True),
        (UserRole.tenant, "tenant", False),
    ],
)
async def test_generate_authorization(service, mock_uow, actor_role, invite_role, allowed):
    result = await service.generate(Actor(uid="actor", role=actor_role), invite_role, "P1")

    assert result.is_ok() is allowed
    if not allowed:
        assert result.error.code == "PERMISSION_DENIED"
        mock_uow.invitations.create.assert_not_called()


@pytest.mark.asyncio
@pytest.mark.parametrize("role", ["owner", "admin", "landlord"])
async def test_generate_rejects_invalid_role(service, mock_uow, role):
    result = await service.generate(OWNER, role, "P1")

    assert result.is_err()
    assert result.error.code == "INVALID_ROLE"
    mock_uow.invitations.create.assert_not_called()


@pytest.mark.asyncio
async def test_generate_refused_while_impersonating(service, mock_uow):
    ghost = Actor(uid="owner-1", role=UserRole.owner, impersonator_id="admin-1")

    result = await service.generate(ghost, "tenant", "P1")

    assert result.is_err()
    assert result.error.code == "PERMISSION_DENIED"
    mock_uow.invitations.create.assert_not_called()


@pytest.mark.asyncio
async def test_generate_storage_failure(service, mock_uow, sleep):
    mock_uow.invitations.create.side_effect = StorageError(StorageErrorCode.unavailable)

    result = await service.generate(OWNER, "tenant", "P1")

    assert result.is_err()
    assert result.error.code == "STORAGE_UNAVAILABLE"
    assert mock_uow.invitations.create.await_count == 3
    assert sleep.await_count == 2


@pytest.mark.asyncio
async def test_validate_unknown_token(service, mock_uow):
    result = await service.validate("no-such-token")

    assert result.is_err()
    assert result.error.code == "INVITE_NOT_FOUND"
    mock_uow.invitations.get_by_id.assert_awaited_once_with(hash_token("no-such-token"))


@pytest.mark.asyncio
async def test_validate_active_invitation(service, mock_uow, clock):
    invitation = make_invitation(clock)
    mock_uow.invitations.get_by_id.return_value = invitation

    result = await service.validate("raw-token")

    assert result.is_ok()
    assert result.value is invitation
    mock_uow.invitations.mark_expired_if_active.assert_not_called()


@pytest.mark.asyncio
async def test_validate_flips_stale_invitation_to_expired(service, mock_uow, clock):
    """Active invitation past expires_at is conditionally marked expired"""
    mock_uow.invitations.get_by_id.return_value = make_invitation(clock)
    clock.advance(days=8)

    result = await service.validate("raw-token")

    assert result.is_err()
    assert result.error.code == "INVITE_EXPIRED"
    mock_uow.invitations.mark_expired_if_active.assert_awaited_once_with(hash_token("raw-token"))
    assert audit_actions(mock_uow) == ["invite.expire"]


@pytest.mark.asyncio
async def test_validate_expiry_boundary_is_inclusive(service, mock_uow, clock):
    mock_uow.invitations.get_by_id.return_value = make_invitation(clock)
    clock.advance(days=7)

    result = await service.validate("raw-token")

    assert result.error.code == "INVITE_EXPIRED"


@pytest.mark.asyncio
async def test_validate_already_expired_is_idempotent(service, mock_uow, clock):
    mock_uow.invitations.get_by_id.return_value = make_invitation(
        clock, status=InvitationStatus.expired
    )

    first = await service.validate("raw-token")
    second = await service.validate("raw-token")

    assert first.error.code == second.error.code == "INVITE_EXPIRED"
    mock_uow.invitations.mark_expired_if_active.assert_not_called()


@pytest.mark.asyncio
async def test_validate_used_invitation(service, mock_uow, clock):
    mock_uow.invitations.get_by_id.return_value = make_invitation(
        clock, status=InvitationStatus.used, used_by="someone"
    )

    result = await service.validate("raw-token")

    assert result.is_err()
    assert result.error.code == "INVITE_ALREADY_USED"


@pytest.mark.asyncio
async def test_consume_marks_used(service, mock_uow, clock):
    result = await service.consume("invite-1", "user-1")

    assert result.is_ok()
    mock_uow.invitations.mark_used_if_active.assert_awaited_once_with(
        "invite-1", used_by="user-1", used_at=clock.now()
    )
    assert audit_actions(mock_uow) == ["invite.consume"]


@pytest.mark.asyncio
async def test_consume_conflict_when_not_active(service, mock_uow):
    mock_uow.invitations.mark_used_if_active.return_value = False

    result = await service.consume("invite-1", "user-2")

    assert result.is_err()
    assert result.error.code == "INVITE_CONFLICT"
    assert audit_actions(mock_uow) == []


@pytest.mark.asyncio
async def test_revert_reactivates_used_invitation(service, mock_uow):
    result = await service.revert("invite-1", "user-1")

    assert result.is_ok()
    assert result.value is True
    mock_uow.invitations.reactivate_if_used.assert_awaited_once_with(
        "invite-1", used_by="user-1"
    )
    assert audit_actions(mock_uow) == ["invite.revert"]


@pytest.mark.asyncio
async def test_revert_of_active_invitation_is_noop(service, mock_uow):
    mock_uow.invitations.reactivate_if_used.return_value = False

    result = await service.revert("invite-1")

    assert result.is_ok()
    assert result.value is False
    assert audit_actions(mock_uow) == []


def test_build_invite_link_surfaces():
    assert (
        build_invite_link("http://localhost:5173", "abc", UserRole.tenant)
        == "http://localhost:5173/tenant/signup?invite=abc&role=tenant"
    )
    assert (
        build_invite_link("http://localhost:5173/", "abc", UserRole.pmc)
        == "http://localhost:5173/portal/signup?invite=abc&role=pmc"
    )
