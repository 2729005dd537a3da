from abc import ABC, abstractmethod

from portal.app.repositories.audit_event_repository import IAuditEventRepository
from portal.app.repositories.identity_repository import IIdentityRepository
from portal.app.repositories.invitation_repository import IInvitationRepository
from portal.app.repositories.property_repository import IPropertyRepository
from portal.app.repositories.user_profile_repository import IUserProfileRepository


class UnitOfWork(ABC):
    """Abstract UnitOfWork - defines repository access and transaction management

    A unit of work covers a single document write. Callers enter it once per
    operation and commit before leaving; multi-document workflows chain
    several units and compensate by hand.
    """

    # Repository properties (initialized in __aenter__)
    identities: IIdentityRepository
    profiles: IUserProfileRepository
    properties: IPropertyRepository
    invitations: IInvitationRepository
    audit_events: IAuditEventRepository

    @abstractmethod
    async def __aenter__(self):
        pass

    @abstractmethod
    async def __aexit__(self, *args):
        pass

    @abstractmethod
    async def commit(self):
        pass

    @abstractmethod
    async def rollback(self):
        pass
