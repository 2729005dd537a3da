"""
Portal Domain Enums

All enumeration types used across domain entities.
"""

from enum import Enum


class UserRole(str, Enum):
    """Portal role of a user profile"""

    owner = "owner"
    pmc = "pmc"
    tenant = "tenant"
    admin = "admin"


class InvitationStatus(str, Enum):
    """Invitation status - transitions are one-way out of active"""

    active = "active"
    used = "used"
    expired = "expired"


class AuditSeverity(str, Enum):
    """Audit event severity"""

    info = "info"
    warning = "warning"
    error = "error"
    critical = "critical"


class SignupStage(str, Enum):
    """Stages of the account provisioning saga, in execution order"""

    precheck = "precheck"
    create_identity = "create_identity"
    validate_invite = "validate_invite"
    consume_invite = "consume_invite"
    persist_profile = "persist_profile"
    link_membership = "link_membership"
    complete = "complete"
