"""
AuditEvent Entity

Immutable log of provisioning, invitation and retry events.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlmodel import Column, DateTime, Field, Index, JSON, SQLModel

from ..base import utcnow
from .enums import AuditSeverity


class AuditEvent(SQLModel, table=True):
    """
    AuditEvent entity - immutable log of portal events.

    Business Rules:
    - Immutable (never updated or deleted)
    - actor_id nullable for system events (retries, sweeps)
    - Signup checkpoints carry saga_id and stage in event_metadata
    """

    __tablename__ = "audit_events"

    id: UUID = Field(default_factory=uuid4, primary_key=True)

    actor_id: Optional[str] = Field(default=None, index=True, max_length=64)
    action: str = Field(max_length=100)  # e.g., "invite.create", "signup.checkpoint"
    entity_type: str = Field(max_length=50)
    entity_id: Optional[str] = Field(default=None, max_length=64)
    severity: AuditSeverity = Field(default=AuditSeverity.info)
    event_metadata: Optional[dict] = Field(default=None, sa_column=Column(JSON))

    # Timestamps
    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime))

    __table_args__ = (
        Index("idx_audit_created_at", "created_at"),
        Index("idx_audit_action_created", "action", "created_at"),
        Index("idx_audit_entity", "entity_type", "entity_id"),
    )
