import asyncio

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel.ext.asyncio.session import AsyncSession

from portal.adapter.repositories.audit_event_repository import AuditEventRepository
from portal.adapter.repositories.identity_repository import IdentityRepository
from portal.adapter.repositories.invitation_repository import InvitationRepository
from portal.adapter.repositories.property_repository import PropertyRepository
from portal.adapter.repositories.user_profile_repository import UserProfileRepository
from portal.adapter.services.error_translation import translate_error
from portal.app.services.unit_of_work import UnitOfWork

TRANSLATED_ERRORS = (SQLAlchemyError, asyncio.TimeoutError, ConnectionError)


class SqlAlchemyUnitOfWork(UnitOfWork):
    """SQLAlchemy implementation of UnitOfWork pattern

    Provider exceptions escaping the block are rolled back and re-raised as
    StorageError. Entities loaded inside the block are detached on exit so
    they stay readable after the transaction ends.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def __aenter__(self):
        # Initialize all repositories with the session
        self.identities = IdentityRepository(self.session)
        self.profiles = UserProfileRepository(self.session)
        self.properties = PropertyRepository(self.session)
        self.invitations = InvitationRepository(self.session)
        self.audit_events = AuditEventRepository(self.session)
        return self

    async def __aexit__(self, exc_type, exc, tb):
        # rollback expires everything still attached to the session
        self.session.expunge_all()
        await self.rollback()
        if exc is not None and isinstance(exc, TRANSLATED_ERRORS):
            raise translate_error(exc) from exc
        return False

    async def commit(self):
        await self.session.commit()

    async def rollback(self):
        await self.session.rollback()
