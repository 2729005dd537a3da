from typing import List, Optional

from sqlalchemy import update
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from portal.app.repositories.property_repository import IPropertyRepository
from portal.domain.entities import Property


class PropertyRepository(IPropertyRepository):
    """Property repository implementation using SQLModel"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, property_id: str) -> Optional[Property]:
        """Get property by ID"""
        stmt = (
            select(Property)
            .where(Property.id == property_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.exec(stmt)
        return result.one_or_none()

    async def create(self, property: Property) -> Property:
        """Create a new property"""
        self.session.add(property)
        await self.session.flush()
        await self.session.refresh(property)
        return property

    async def update_membership_if_version(
        self,
        property_id: str,
        expected_version: int,
        owner_ids: List[str],
        manager_ids: List[str],
        tenant_ids: List[str],
        units: List[dict],
    ) -> bool:
        """Version-checked replacement of membership arrays and units"""
        stmt = (
            update(Property)
            .where(Property.id == property_id, Property.version == expected_version)
            .values(
                owner_ids=owner_ids,
                manager_ids=manager_ids,
                tenant_ids=tenant_ids,
                units=units,
                version=expected_version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1
