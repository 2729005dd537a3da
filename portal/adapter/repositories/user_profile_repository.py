from typing import Optional

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from portal.app.repositories.user_profile_repository import IUserProfileRepository
from portal.domain.entities import UserProfile


class UserProfileRepository(IUserProfileRepository):
    """UserProfile repository implementation using SQLModel"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, profile_id: str) -> Optional[UserProfile]:
        """Get profile by identity uid"""
        stmt = (
            select(UserProfile)
            .where(UserProfile.id == profile_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.exec(stmt)
        return result.one_or_none()

    async def create(self, profile: UserProfile) -> UserProfile:
        """Create a new profile"""
        self.session.add(profile)
        await self.session.flush()
        await self.session.refresh(profile)
        return profile
