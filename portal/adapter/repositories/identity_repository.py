from typing import Optional

from sqlalchemy import delete, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from portal.app.repositories.identity_repository import IIdentityRepository
from portal.domain.entities import Identity
from portal.domain.errors import IdentityAlreadyExistsError


class IdentityRepository(IIdentityRepository):
    """Identity repository implementation using SQLModel"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_uid(self, uid: str) -> Optional[Identity]:
        """Get identity by uid"""
        stmt = (
            select(Identity)
            .where(Identity.uid == uid)
            .execution_options(populate_existing=True)
        )
        result = await self.session.exec(stmt)
        return result.one_or_none()

    async def get_by_email(self, email: str) -> Optional[Identity]:
        """Get identity by email address"""
        stmt = (
            select(Identity)
            .where(Identity.email == email)
            .execution_options(populate_existing=True)
        )
        result = await self.session.exec(stmt)
        return result.one_or_none()

    async def create(self, identity: Identity) -> Identity:
        """Create a new identity"""
        self.session.add(identity)
        try:
            await self.session.flush()
        except IntegrityError as exc:
            raise IdentityAlreadyExistsError(identity.email) from exc
        await self.session.refresh(identity)
        return identity

    async def delete(self, uid: str) -> bool:
        """Delete identity by uid"""
        stmt = delete(Identity).where(Identity.uid == uid)
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def update_password_hash(self, uid: str, password_hash: str) -> bool:
        """Replace the stored credential"""
        stmt = (
            update(Identity)
            .where(Identity.uid == uid)
            .values(password_hash=password_hash)
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0
