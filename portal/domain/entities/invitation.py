"""
Invitation Entity

Single-use, time-boxed invitation to join a property.
"""

from datetime import datetime
from typing import Optional

from sqlmodel import Column, DateTime, Field, Index, SQLModel

from .enums import InvitationStatus, UserRole


class Invitation(SQLModel, table=True):
    """
    Invitation entity - hash-addressed registration link.

    Business Rules:
    - id is the SHA-256 hex digest of the raw token; the raw token is never stored
    - Expires 7 days after creation
    - Status leaves active exactly once (used or expired) except for saga compensation
    - Never deleted, kept for audit
    """

    __tablename__ = "invitations"

    id: str = Field(primary_key=True, max_length=64)

    role: UserRole = Field(nullable=False)
    property_id: str = Field(nullable=False, index=True, max_length=64)
    unit_id: Optional[str] = Field(default=None, max_length=64)
    target_email: Optional[str] = Field(default=None, max_length=255)

    status: InvitationStatus = Field(default=InvitationStatus.active)

    created_by: str = Field(max_length=64)
    used_by: Optional[str] = Field(default=None, max_length=64)

    # Timestamps
    expires_at: datetime = Field(sa_column=Column(DateTime, nullable=False))
    created_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime))
    used_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime))

    __table_args__ = (
        Index("idx_invitation_expires_at", "expires_at"),
        Index("idx_invitation_status", "status"),
    )

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at
