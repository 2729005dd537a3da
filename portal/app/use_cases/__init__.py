"""
Use Cases

Organized into domain folders:
- auth/: Account provisioning
- invitations/: Invitation generation and preview
- admin/: Signup reconciliation
"""

from .auth import SignupCommand, SignupResponse, SignupUseCase
from .invitations import GenerateInvitationUseCase, ValidateInvitationUseCase
from .admin import RepairMembershipLinkUseCase, SweepOrphanedSignupsUseCase

__all__ = [
    # Auth
    "SignupUseCase",
    "SignupCommand",
    "SignupResponse",
    # Invitations
    "GenerateInvitationUseCase",
    "ValidateInvitationUseCase",
    # Admin
    "RepairMembershipLinkUseCase",
    "SweepOrphanedSignupsUseCase",
]
