"""
Membership projection.

Pure, idempotent computation of a property's membership arrays and unit
assignments after a user joins. Arrays behave as sets with add-if-absent
semantics; units other than the targeted one are returned untouched.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from portal.domain.entities import Property, UserRole

ROLE_MEMBERSHIP_FIELD = {
    UserRole.owner: "owner_ids",
    UserRole.pmc: "manager_ids",
    UserRole.tenant: "tenant_ids",
}


@dataclass(frozen=True)
class MembershipSnapshot:
    owner_ids: List[str] = field(default_factory=list)
    manager_ids: List[str] = field(default_factory=list)
    tenant_ids: List[str] = field(default_factory=list)
    units: List[dict] = field(default_factory=list)

    @classmethod
    def from_property(cls, property: Property) -> "MembershipSnapshot":
        return cls(
            owner_ids=list(property.owner_ids or []),
            manager_ids=list(property.manager_ids or []),
            tenant_ids=list(property.tenant_ids or []),
            units=list(property.units or []),
        )


@dataclass(frozen=True)
class MembershipDelta:
    uid: str
    role: UserRole
    unit_id: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None


def add_if_absent(ids: List[str], uid: str) -> List[str]:
    if uid in ids:
        return list(ids)
    return [*ids, uid]


def assign_unit_tenant(unit: dict, delta: MembershipDelta) -> dict:
    return {**unit, "tenant_id": delta.uid, "tenant": delta.name or delta.email or ""}


def project_membership(
    snapshot: MembershipSnapshot, delta: MembershipDelta
) -> MembershipSnapshot:
    arrays = {
        "owner_ids": list(snapshot.owner_ids),
        "manager_ids": list(snapshot.manager_ids),
        "tenant_ids": list(snapshot.tenant_ids),
    }
    membership_field = ROLE_MEMBERSHIP_FIELD.get(delta.role)
    if membership_field is not None:
        arrays[membership_field] = add_if_absent(arrays[membership_field], delta.uid)

    units = list(snapshot.units)
    # Only tenants occupy units
    if delta.unit_id is not None and delta.role == UserRole.tenant:
        units = [
            assign_unit_tenant(unit, delta) if unit.get("id") == delta.unit_id else unit
            for unit in snapshot.units
        ]

    return MembershipSnapshot(units=units, **arrays)
