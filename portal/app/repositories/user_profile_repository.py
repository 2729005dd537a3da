from abc import ABC, abstractmethod
from typing import Optional

from portal.domain.entities import UserProfile


class IUserProfileRepository(ABC):
    """UserProfile repository interface - application layer"""

    @abstractmethod
    async def get_by_id(self, profile_id: str) -> Optional[UserProfile]:
        """Get profile by identity uid"""
        pass

    @abstractmethod
    async def create(self, profile: UserProfile) -> UserProfile:
        """Create a new profile"""
        pass
