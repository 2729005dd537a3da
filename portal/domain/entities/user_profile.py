"""
UserProfile Entity

Portal profile keyed by identity uid.
"""

from datetime import datetime
from typing import Optional

from sqlmodel import Column, DateTime, Field, JSON, SQLModel

from ..base import utcnow
from .enums import UserRole


def default_preferences() -> dict:
    return {"currency": "USD", "is_demo_mode": False}


class UserProfile(SQLModel, table=True):
    """
    UserProfile entity - one per identity.

    Business Rules:
    - id equals the Identity uid
    - role is authoritative; for invite signups it is the invite's role
    - linked_property_id/linked_unit_id mirror the redeemed invite
    """

    __tablename__ = "user_profiles"

    id: str = Field(primary_key=True, max_length=64)
    name: str = Field(max_length=255)
    email: str = Field(index=True, max_length=255)
    role: UserRole = Field(nullable=False)

    # Onboarding
    onboarding_step: int = Field(default=1)
    onboarding_completed: bool = Field(default=False)

    # Invite linkage
    linked_property_id: Optional[str] = Field(default=None, max_length=64)
    linked_unit_id: Optional[str] = Field(default=None, max_length=64)
    invite_id: Optional[str] = Field(default=None, max_length=64)

    preferences: dict = Field(default_factory=default_preferences, sa_column=Column(JSON))

    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime))
