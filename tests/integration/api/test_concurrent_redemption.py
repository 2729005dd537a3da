import asyncio
from datetime import timedelta

import pytest
import pytest_asyncio

from portal.adapter.repositories.identity_repository import IdentityRepository
from portal.adapter.repositories.invitation_repository import InvitationRepository
from portal.adapter.repositories.property_repository import PropertyRepository
from portal.adapter.services.error_translation import classify_error
from portal.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from portal.app.services.audit_service import AuditService
from portal.app.services.invitation_service import InvitationService, hash_token
from portal.app.services.resilient_executor import ResilientExecutor
from portal.app.use_cases.auth import SignupCommand, SignupUseCase
from portal.domain.entities import Invitation, InvitationStatus, UserRole

RAW_TOKEN = "race-token"


@pytest_asyncio.fixture
async def invitation(db_session, seeded_property, clock):
    invitation = Invitation(
        id=hash_token(RAW_TOKEN),
        role=UserRole.tenant,
        property_id="P1",
        unit_id="U1",
        status=InvitationStatus.active,
        created_by="owner-1",
        created_at=clock.now(),
        expires_at=clock.now() + timedelta(days=7),
    )
    db_session.add(invitation)
    await db_session.commit()
    return invitation


def make_executor(uow, policy):
    return ResilientExecutor(classify=classify_error, policy=policy, audit=AuditService(uow))


@pytest.mark.asyncio
async def test_only_one_concurrent_consume_wins(
    session_factory, db_session, invitation, clock, fast_retry_policy
):
    """Two redemptions racing on separate connections: exactly one succeeds"""

    async def redeem(uid):
        async with session_factory() as session:
            uow = SqlAlchemyUnitOfWork(session)
            service = InvitationService(
                uow, make_executor(uow, fast_retry_policy), AuditService(uow), clock=clock
            )
            return await service.consume(invitation.id, uid)

    results = await asyncio.gather(redeem("user-a"), redeem("user-b"))

    assert sorted(result.is_ok() for result in results) == [False, True]
    [loser] = [result for result in results if result.is_err()]
    assert loser.error.code == "INVITE_CONFLICT"

    stored = await InvitationRepository(db_session).get_by_id(invitation.id)
    assert stored.status == InvitationStatus.used
    winner = "user-a" if results[0].is_ok() else "user-b"
    assert stored.used_by == winner


@pytest.mark.asyncio
async def test_concurrent_signups_with_one_invite(
    session_factory, db_session, invitation, clock, fast_retry_policy
):
    """Two users sign up with the same token at once

    Exactly one account is provisioned; the other gets INVITE_ALREADY_USED
    and its identity is rolled back.
    """

    async def signup(email):
        async with session_factory() as session:
            uow = SqlAlchemyUnitOfWork(session)
            use_case = SignupUseCase(
                uow, executor=make_executor(uow, fast_retry_policy), clock=clock
            )
            return await use_case.execute(
                SignupCommand(
                    email=email,
                    password="SecurePass123!",
                    name=email.split("@")[0],
                    role=UserRole.tenant,
                    invite_token=RAW_TOKEN,
                )
            )

    emails = ["amy@example.com", "ben@example.com"]
    results = await asyncio.gather(*(signup(email) for email in emails))

    assert sorted(result.is_ok() for result in results) == [False, True]
    [loser] = [result for result in results if result.is_err()]
    assert loser.error.code == "INVITE_ALREADY_USED"

    [winner] = [result.value for result in results if result.is_ok()]
    loser_email = next(email for email in emails if email != winner.user.email)

    identities = IdentityRepository(db_session)
    assert await identities.get_by_email(winner.user.email) is not None
    assert await identities.get_by_email(loser_email) is None

    property = await PropertyRepository(db_session).get_by_id("P1")
    assert property.tenant_ids == [winner.user.uid]
    assert property.units[0]["tenant_id"] == winner.user.uid

    stored = await InvitationRepository(db_session).get_by_id(invitation.id)
    assert stored.used_by == winner.user.uid
