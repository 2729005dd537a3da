"""
Invitation Use Cases

Generating and previewing property invitations.
"""

from .dtos import InvitationCreatedResponse, InvitationPreviewResponse
from .generate_invitation_use_case import GenerateInvitationUseCase
from .validate_invitation_use_case import ValidateInvitationUseCase

__all__ = [
    "GenerateInvitationUseCase",
    "ValidateInvitationUseCase",
    "InvitationCreatedResponse",
    "InvitationPreviewResponse",
]
