"""
Applies membership projections to stored properties.

The write is a version-checked single-document update. A version clash is
raised as an aborted StorageError, which the executor retries with a fresh
read.
"""

import logging
from functools import partial
from typing import Optional

from portal.app.services.resilient_executor import ResilientExecutor
from portal.app.services.unit_of_work import UnitOfWork
from portal.app.services.membership_projection import (
    MembershipDelta,
    MembershipSnapshot,
    project_membership,
)
from portal.domain.errors import StorageError, StorageErrorCode
from portal.libs.result import Error, Result, Return

logger = logging.getLogger(__name__)


class MembershipService:
    def __init__(self, uow: UnitOfWork, executor: ResilientExecutor):
        self.uow = uow
        self.executor = executor

    async def link(
        self, property_id: str, delta: MembershipDelta
    ) -> Result[MembershipSnapshot]:
        """
        Add `delta` to the property's membership.

        Returns:
            Result with the stored snapshot, or Error(PROPERTY_NOT_FOUND,
            STORAGE_UNAVAILABLE)
        """
        try:
            snapshot = await self.executor.execute(
                partial(self._apply, property_id, delta), name="property.link_member"
            )
        except StorageError as exc:
            logger.warning(
                f"Membership link for {delta.uid} on {property_id} failed: {exc}"
            )
            return Return.err(
                Error("STORAGE_UNAVAILABLE", exc.message, {"code": exc.code.value})
            )

        if snapshot is None:
            return Return.err(
                Error("PROPERTY_NOT_FOUND", f"Property {property_id} not found")
            )
        return Return.ok(snapshot)

    async def _apply(
        self, property_id: str, delta: MembershipDelta
    ) -> Optional[MembershipSnapshot]:
        async with self.uow:
            property = await self.uow.properties.get_by_id(property_id)
            if property is None:
                return None

            current = MembershipSnapshot.from_property(property)
            projected = project_membership(current, delta)
            if projected == current:
                return current

            updated = await self.uow.properties.update_membership_if_version(
                property_id,
                expected_version=property.version,
                owner_ids=projected.owner_ids,
                manager_ids=projected.manager_ids,
                tenant_ids=projected.tenant_ids,
                units=projected.units,
            )
            if not updated:
                raise StorageError(
                    StorageErrorCode.aborted,
                    f"Property {property_id} changed concurrently",
                )
            await self.uow.commit()
            return projected
