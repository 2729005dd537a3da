import random
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from portal.app.services.resilient_executor import ResilientExecutor, RetryPolicy
from tests.fixtures.clock import FixedClock


@pytest.fixture
def mock_uow():
    """Mock UnitOfWork with all repositories"""
    uow = MagicMock()
    uow.__aenter__ = AsyncMock(return_value=uow)
    uow.__aexit__ = AsyncMock(return_value=False)  # Must return False to not suppress exceptions
    uow.commit = AsyncMock()
    uow.rollback = AsyncMock()

    # Mock repositories
    uow.identities = MagicMock()
    uow.identities.get_by_uid = AsyncMock(return_value=None)
    uow.identities.get_by_email = AsyncMock(return_value=None)
    uow.identities.create = AsyncMock(side_effect=lambda identity: identity)
    uow.identities.delete = AsyncMock(return_value=True)
    uow.identities.update_password_hash = AsyncMock(return_value=True)

    uow.profiles = MagicMock()
    uow.profiles.get_by_id = AsyncMock(return_value=None)
    uow.profiles.create = AsyncMock(side_effect=lambda profile: profile)

    uow.properties = MagicMock()
    uow.properties.get_by_id = AsyncMock(return_value=None)
    uow.properties.create = AsyncMock(side_effect=lambda property: property)
    uow.properties.update_membership_if_version = AsyncMock(return_value=True)

    uow.invitations = MagicMock()
    uow.invitations.get_by_id = AsyncMock(return_value=None)
    uow.invitations.create = AsyncMock(side_effect=lambda invitation: invitation)
    uow.invitations.mark_used_if_active = AsyncMock(return_value=True)
    uow.invitations.mark_expired_if_active = AsyncMock(return_value=True)
    uow.invitations.reactivate_if_used = AsyncMock(return_value=True)

    uow.audit_events = MagicMock()
    uow.audit_events.create = AsyncMock(side_effect=lambda event: event)
    uow.audit_events.list_by_actions = AsyncMock(return_value=[])

    return uow


@pytest.fixture
def clock():
    return FixedClock(datetime(2026, 3, 1, 12, 0, 0))


@pytest.fixture
def sleep():
    """Records requested delays instead of sleeping"""
    return AsyncMock()


@pytest.fixture
def executor(sleep):
    return ResilientExecutor(
        policy=RetryPolicy(max_attempts=3, base_delay=0.3, jitter=0.1),
        sleep=sleep,
        rng=random.Random(7),
    )
