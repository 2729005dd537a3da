from abc import ABC, abstractmethod
from typing import List, Optional

from portal.domain.entities import Property


class IPropertyRepository(ABC):
    """Property repository interface - application layer"""

    @abstractmethod
    async def get_by_id(self, property_id: str) -> Optional[Property]:
        """Get property by ID"""
        pass

    @abstractmethod
    async def create(self, property: Property) -> Property:
        """Create a new property"""
        pass

    @abstractmethod
    async def update_membership_if_version(
        self,
        property_id: str,
        expected_version: int,
        owner_ids: List[str],
        manager_ids: List[str],
        tenant_ids: List[str],
        units: List[dict],
    ) -> bool:
        """
        Replace membership arrays and units if the stored version still equals
        expected_version. Bumps the version. Returns False on a version clash.
        """
        pass
