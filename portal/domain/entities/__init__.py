"""
Portal Domain Entities

All domain entities organized by model.
Each entity in its own file for better maintainability.
"""

# Export all enums
from .enums import (
    AuditSeverity,
    InvitationStatus,
    SignupStage,
    UserRole,
)

# Export all entities
from .identity import Identity
from .user_profile import UserProfile
from .property import Property
from .invitation import Invitation
from .audit_event import AuditEvent

__all__ = [
    # Enums
    "AuditSeverity",
    "InvitationStatus",
    "SignupStage",
    "UserRole",
    # Entities
    "Identity",
    "UserProfile",
    "Property",
    "Invitation",
    "AuditEvent",
]
