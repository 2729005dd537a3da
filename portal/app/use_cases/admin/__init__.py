"""Admin use cases for reconciliation of signup state."""

from .repair_membership_link_use_case import (
    RepairMembershipLinkResponse,
    RepairMembershipLinkUseCase,
)
from .sweep_orphaned_signups_use_case import (
    SweepOrphanedSignupsResponse,
    SweepOrphanedSignupsUseCase,
    SweptSignup,
)

__all__ = [
    "RepairMembershipLinkUseCase",
    "RepairMembershipLinkResponse",
    "SweepOrphanedSignupsUseCase",
    "SweepOrphanedSignupsResponse",
    "SweptSignup",
]
