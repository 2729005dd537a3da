from abc import ABC, abstractmethod
from typing import Optional

from portal.domain.entities import Identity


class IIdentityRepository(ABC):
    """Identity repository interface - application layer"""

    @abstractmethod
    async def get_by_uid(self, uid: str) -> Optional[Identity]:
        """Get identity by uid"""
        pass

    @abstractmethod
    async def get_by_email(self, email: str) -> Optional[Identity]:
        """Get identity by email address"""
        pass

    @abstractmethod
    async def create(self, identity: Identity) -> Identity:
        """Create a new identity, raising IdentityAlreadyExistsError on duplicate email"""
        pass

    @abstractmethod
    async def delete(self, uid: str) -> bool:
        """Delete identity, returns False if it did not exist"""
        pass

    @abstractmethod
    async def update_password_hash(self, uid: str, password_hash: str) -> bool:
        """Replace the stored credential"""
        pass
